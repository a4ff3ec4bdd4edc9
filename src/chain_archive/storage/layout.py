"""
Archive layout: the bucketing scheme.

Every archived block lives at::

    <root>/<top-bucket>/<sub-bucket>/<height>_<hash>.<ext>

The Bucketing Scheme
--------------------
Heights are grouped in two levels:

- **Top bucket**: ``floor(height / 100000) * 100000``, named ``"0"`` or
  ``"<N>k"`` where N is the bucket start in thousands (``"100k"``, ``"800k"``).
- **Sub bucket**: ``floor(height / 1000) * 1000``, named ``"0"`` or the
  literal bucket start (``"1000"``, ``"812000"``).

A sub bucket holds at most 1000 entries and a top bucket at most 100 sub
buckets. Directory listings stay small and a height range maps to a handful
of directories, without any index file.

The bucket of a height is a pure function of the height. An entry never moves,
except for the delete-and-rewrite that happens when a reorg replaces a hash.

Everything in this module is pure: no filesystem access.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Final

from chain_archive.types import ChainTip, is_block_hash

TOP_BUCKET_SIZE: Final = 100_000
"""Heights per top-level bucket."""

SUB_BUCKET_SIZE: Final = 1_000
"""Heights per second-level bucket."""

DEFAULT_EXTENSION: Final = "block"
"""File extension of archive entries."""

_THOUSANDS_SUFFIX: Final = "k"


def top_bucket(height: int) -> int:
    """First height of the top-level bucket containing ``height``."""
    return (height // TOP_BUCKET_SIZE) * TOP_BUCKET_SIZE


def sub_bucket(height: int) -> int:
    """First height of the second-level bucket containing ``height``."""
    return (height // SUB_BUCKET_SIZE) * SUB_BUCKET_SIZE


def top_bucket_name(height: int) -> str:
    """Directory name of the top-level bucket containing ``height``."""
    start = top_bucket(height)
    if start == 0:
        return "0"
    return f"{start // 1000}{_THOUSANDS_SUFFIX}"


def sub_bucket_name(height: int) -> str:
    """Directory name of the second-level bucket containing ``height``."""
    return str(sub_bucket(height))


def entry_filename(height: int, block_hash: str, extension: str = DEFAULT_EXTENSION) -> str:
    """File name of the entry for (height, hash)."""
    return f"{height}_{block_hash}.{extension}"


def entry_relpath(height: int, block_hash: str, extension: str = DEFAULT_EXTENSION) -> PurePath:
    """Path of the entry for (height, hash), relative to the archive root."""
    return PurePath(
        top_bucket_name(height),
        sub_bucket_name(height),
        entry_filename(height, block_hash, extension),
    )


def _parse_canonical_int(text: str) -> int | None:
    """Parse ASCII decimal digits without leading zeros, as written by the namers."""
    if not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    if str(value) != text:
        return None
    return value


def parse_top_bucket_name(name: str) -> int | None:
    """
    Parse a top-level bucket directory name back to its first height.

    Returns:
        The bucket start, or None if the name is not a top bucket name.
    """
    if name == "0":
        return 0
    if not name.endswith(_THOUSANDS_SUFFIX):
        return None
    thousands = _parse_canonical_int(name[: -len(_THOUSANDS_SUFFIX)])
    if thousands is None:
        return None
    start = thousands * 1000
    if start == 0 or start % TOP_BUCKET_SIZE != 0:
        return None
    return start


def parse_sub_bucket_name(name: str) -> int | None:
    """
    Parse a second-level bucket directory name back to its first height.

    Returns:
        The bucket start, or None if the name is not a sub bucket name.
    """
    start = _parse_canonical_int(name)
    if start is None or start % SUB_BUCKET_SIZE != 0:
        return None
    return start


def parse_entry_filename(name: str, extension: str = DEFAULT_EXTENSION) -> ChainTip | None:
    """
    Parse an entry file name back to its (height, hash).

    Foreign files (temporary files, ``.gitattributes``, other extensions) are
    reported as None so scans can skip them.
    """
    suffix = f".{extension}"
    if not name.endswith(suffix):
        return None
    stem = name[: -len(suffix)]
    height_part, sep, hash_part = stem.partition("_")
    height = _parse_canonical_int(height_part)
    if not sep or height is None or not is_block_hash(hash_part):
        return None
    return ChainTip(height=height, hash=hash_part)
