"""Exception types raised by the decoder."""

from __future__ import annotations


class ProtopeekError(Exception):
    """Base class for protopeek errors."""


class FormatError(ProtopeekError, ValueError):
    """Input text is neither valid hex nor valid base64."""


class InputTooLargeError(ProtopeekError, ValueError):
    """Input exceeds the caller's size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"input is {size} bytes, limit is {limit} bytes")
        self.size = size
        self.limit = limit


class TruncatedError(ProtopeekError, EOFError):
    """A read would run past the end of the buffer."""


class VarintOverflowError(ProtopeekError, OverflowError):
    """A varint ran past ten groups without terminating."""
