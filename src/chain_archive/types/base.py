"""Reusable, strict base models for the archiver."""

from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """
    A strict, immutable pydantic base model.

    No coercion: a height must be an int and a payload must be bytes, so a
    malformed node answer fails loudly instead of being silently converted.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        strict=True,
        validate_default=True,
    )
