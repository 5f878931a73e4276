"""Turn pasted hex / base64 text into the raw bytes to decode."""

from __future__ import annotations

import base64
import binascii
import re
from enum import Enum

from protopeek.errors import FormatError

GRPC_HEADER_SIZE = 5

_WHITESPACE = re.compile(r"\s+")
_HEX = re.compile(r"[0-9a-fA-F]+")


class InputFormat(str, Enum):
    AUTO = "auto"
    HEX = "hex"
    BASE64 = "base64"


def _strip(text: str) -> str:
    return _WHITESPACE.sub("", text)


def is_hex(text: str) -> bool:
    return _HEX.fullmatch(_strip(text)) is not None


def hex_to_bytes(text: str) -> bytes:
    compact = _strip(text)
    if len(compact) % 2:
        raise FormatError(f"hex input has odd length ({len(compact)} digits)")
    if compact and not _HEX.fullmatch(compact):
        raise FormatError("hex input contains non-hex characters")
    return bytes.fromhex(compact)


def base64_to_bytes(text: str) -> bytes:
    """Decode standard or URL-safe base64, padding optional."""
    compact = _strip(text).replace("-", "+").replace("_", "/")
    compact += "=" * (-len(compact) % 4)
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FormatError(f"input is neither hex nor base64: {e}") from e


def detect_format(text: str) -> InputFormat:
    return InputFormat.HEX if is_hex(text) else InputFormat.BASE64


def normalize(text: str, format: InputFormat | str = InputFormat.AUTO) -> bytes:
    """Decode ``text`` as hex or base64 (``auto`` picks hex when it can)."""
    try:
        fmt = InputFormat(format)
    except ValueError:
        raise FormatError(f"unknown input format: {format!r}") from None
    if not _strip(text):
        return b""
    if fmt is InputFormat.AUTO:
        fmt = detect_format(text)
    if fmt is InputFormat.HEX:
        return hex_to_bytes(text)
    return base64_to_bytes(text)


def strip_grpc_header(data: bytes) -> bytes:
    """Drop the 5-byte gRPC frame header (flag + big-endian length).

    The declared length is not checked against what follows. Buffers of
    five bytes or fewer are returned unchanged.
    """
    if len(data) > GRPC_HEADER_SIZE:
        return data[GRPC_HEADER_SIZE:]
    return data
