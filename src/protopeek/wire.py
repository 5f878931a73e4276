"""Wire-level tokenizer: bytes to (field number, wire type, payload, range)."""

from __future__ import annotations

import logging

from protopeek.errors import TruncatedError, VarintOverflowError
from protopeek.model import Field, ParseResult, WireType

_log = logging.getLogger("protopeek")

DEFAULT_MAX_DEPTH = 10
MAX_DEPTH_LIMIT = 64
MAX_VARINT_GROUPS = 10


def read_varint(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Read a base-128 varint at ``offset``; return ``(value, bytes_consumed)``."""
    result = 0
    shift = 0
    pos = offset
    while True:
        if pos >= len(data):
            raise TruncatedError(f"varint at offset {offset} runs past end of buffer")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not (byte & 0x80):
            return result, pos - offset
        shift += 7
        if pos - offset >= MAX_VARINT_GROUPS:
            raise VarintOverflowError(
                f"varint at offset {offset} exceeds {MAX_VARINT_GROUPS} groups"
            )


def read_tag(data: bytes, offset: int = 0) -> tuple[int, int, int]:
    """Return ``(field_number, wire_type, bytes_consumed)`` for the tag at ``offset``."""
    tag, consumed = read_varint(data, offset)
    return tag >> 3, tag & 0x07, consumed


def _read_exact(data: bytes, offset: int, length: int) -> bytes:
    if offset + length > len(data):
        raise TruncatedError(
            f"need {length} bytes at offset {offset}, {len(data) - offset} left"
        )
    return data[offset : offset + length]


def tokenize(
    data: bytes,
    offset: int = 0,
    depth: int = 0,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ParseResult:
    """Split ``data`` into fields, stopping quietly at the first malformed tag.

    Whatever cannot be tokenized is returned as ``trailing``; a stop is never
    raised. Length-delimited payloads are handed to the interpreter, which
    may tokenize them again one level deeper. ``max_depth`` is capped at
    ``MAX_DEPTH_LIMIT``.
    """
    from protopeek.interpret import interpret_field

    max_depth = min(max_depth, MAX_DEPTH_LIMIT)
    data = bytes(data)
    fields: list[Field] = []
    pos = offset

    while pos < len(data):
        start = pos
        try:
            field_number, wire_number, consumed = read_tag(data, pos)
        except (TruncatedError, VarintOverflowError) as e:
            _log.debug("depth %d: stop at %d reading tag: %s", depth, start, e)
            break

        if field_number == 0:
            _log.debug("depth %d: stop at %d: field number 0", depth, start)
            break
        try:
            wire_type = WireType(wire_number)
        except ValueError:
            _log.debug("depth %d: stop at %d: unknown wire type %d", depth, start, wire_number)
            break
        if wire_type.is_group:
            _log.debug("depth %d: stop at %d: group wire type %d", depth, start, wire_number)
            break

        pos += consumed
        raw: int | bytes
        try:
            match wire_type:
                case WireType.VARINT:
                    raw, consumed = read_varint(data, pos)
                    pos += consumed
                case WireType.FIXED64:
                    raw = int.from_bytes(_read_exact(data, pos, 8), "little")
                    pos += 8
                case WireType.FIXED32:
                    raw = int.from_bytes(_read_exact(data, pos, 4), "little")
                    pos += 4
                case WireType.LENGTH_DELIMITED:
                    length, consumed = read_varint(data, pos)
                    pos += consumed
                    raw = _read_exact(data, pos, length)
                    pos += length
                case WireType.START_GROUP | WireType.END_GROUP:
                    raise AssertionError("group wire types are rejected above")
        except (TruncatedError, VarintOverflowError) as e:
            _log.debug("depth %d: stop at %d reading field %d: %s", depth, start, field_number, e)
            pos = start
            break

        interpretations, nested = interpret_field(wire_type, raw, depth, max_depth)
        fields.append(
            Field(
                field_number=field_number,
                wire_type=wire_type,
                raw=raw,
                start=start,
                end=pos,
                interpretations=interpretations,
                nested=nested,
            )
        )

    return ParseResult(fields=tuple(fields), trailing=data[pos:])
