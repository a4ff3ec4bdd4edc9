"""Exception hierarchy for node clients."""

from __future__ import annotations

from typing import Final

RPC_INVALID_PARAMETER: Final = -8
"""
JSON-RPC error code for an invalid parameter.

``getblockhash`` answers a height the node has not produced yet with this
code ("Block height out of range"). It is the only error the sync loop
treats as expected.
"""


class NodeClientError(Exception):
    """
    Base class for node client failures.

    Any NodeClientError aborts the current sync cycle. The next trigger retries.
    """


class NodeRpcError(NodeClientError):
    """
    Raised when the node answers with an error or with malformed data.

    Attributes:
        method: The RPC method that failed.
        code: The node's error code, if it reported one.
        message: The node's error message.
    """

    def __init__(self, method: str, message: str, *, code: int | None = None) -> None:
        self.method = method
        self.code = code
        self.message = message

        if code is not None:
            msg = f"{method} failed with error code {code}: {message}"
        else:
            msg = f"{method} failed: {message}"
        super().__init__(msg)


class NodeTransportError(NodeClientError):
    """Raised when the node cannot be reached (connection, timeout, HTTP status)."""
