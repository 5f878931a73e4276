"""Value interpreter and nested-message resolver.

The wire format does not say whether a varint is a uint64, an int32, a
zigzag sint or a bool, nor whether a length-delimited payload is a message,
a string or raw bytes. Every plausible reading is surfaced here, the
unsigned / most structured one first.

Two varint readings are deliberately narrower than a naive listing of every
interpretation:

- a signed ``int<bits>`` reading is offered only when the value fits in
  ``bits`` and the two's-complement result differs, so wide values are not
  shown truncated to 8 or 16 bits;
- the zigzag ``sint`` reading is offered only when it is negative, so a
  plain positive count such as 300 is shown as ``uint`` alone.
"""

from __future__ import annotations

import logging
import struct

from protopeek.model import Interpretation, ParseResult, WireType

_log = logging.getLogger("protopeek")

VARINT_WIDTHS = (8, 16, 32, 64)

INTEGRAL_KINDS = frozenset(
    {"uint", "int8", "int16", "int32", "int64", "uint32", "uint64"}
)
FLOAT_KINDS = frozenset({"float", "double"})
TEXT_KINDS = frozenset({"string"})


# ── Numeric helpers ────────────────────────────────────────────────


def zigzag_decode(n: int) -> int:
    return (n >> 1) ^ -(n & 1)


def twos_complement(n: int, bits: int) -> int:
    """Reinterpret an unsigned ``bits``-wide value as signed."""
    if n & (1 << (bits - 1)):
        return n - (1 << bits)
    return n


# ── Per wire type ──────────────────────────────────────────────────


def interpret_varint(n: int) -> tuple[Interpretation, ...]:
    """``uint`` first, then distinct signed widths, then a negative zigzag reading."""
    out = [Interpretation("uint", str(n))]
    for bits in VARINT_WIDTHS:
        if n >= 1 << bits:
            continue
        signed = twos_complement(n, bits)
        if signed != n:
            out.append(Interpretation(f"int{bits}", str(signed)))
    sint = zigzag_decode(n)
    if sint != n and sint < 0:
        out.append(Interpretation("sint", str(sint)))
    return tuple(out)


def interpret_fixed32(raw: bytes | int) -> tuple[Interpretation, ...]:
    if isinstance(raw, int):
        raw = raw.to_bytes(4, "little")
    (as_int,) = struct.unpack("<i", raw)
    (as_uint,) = struct.unpack("<I", raw)
    (as_float,) = struct.unpack("<f", raw)
    out = [Interpretation("int32", str(as_int))]
    if as_uint != as_int:
        out.append(Interpretation("uint32", str(as_uint)))
    out.append(Interpretation("float", repr(as_float)))
    return tuple(out)


def interpret_fixed64(raw: bytes | int) -> tuple[Interpretation, ...]:
    if isinstance(raw, int):
        raw = raw.to_bytes(8, "little")
    (as_int,) = struct.unpack("<q", raw)
    (as_uint,) = struct.unpack("<Q", raw)
    (as_double,) = struct.unpack("<d", raw)
    out = [Interpretation("int64", str(as_int))]
    if as_uint != as_int:
        out.append(Interpretation("uint64", str(as_uint)))
    out.append(Interpretation("double", repr(as_double)))
    return tuple(out)


def bytes_to_hex(data: bytes, sep: str = " ") -> str:
    return sep.join(f"{b:02x}" for b in data)


def decode_string_or_bytes(payload: bytes) -> Interpretation:
    try:
        return Interpretation("string", payload.decode("utf-8", errors="strict"))
    except UnicodeDecodeError:
        return Interpretation("bytes", bytes_to_hex(payload))


# ── Nested messages ────────────────────────────────────────────────


def resolve_nested(payload: bytes, depth: int, max_depth: int) -> ParseResult | None:
    """Trial-tokenize ``payload`` as a message at ``depth``.

    Accepted only when it yields at least one field and consumes every byte;
    otherwise ``None``. The payload is never modified, so a rejection needs
    no rewinding.
    """
    from protopeek.wire import tokenize

    trial = tokenize(payload, 0, depth, max_depth)
    if trial.fields and not trial.trailing:
        return trial
    _log.debug(
        "depth %d: %d-byte payload is not a message (%d fields, %d trailing)",
        depth,
        len(payload),
        len(trial.fields),
        len(trial.trailing),
    )
    return None


def interpret_length_delimited(
    payload: bytes, depth: int, max_depth: int
) -> tuple[tuple[Interpretation, ...], ParseResult | None]:
    """Message, then UTF-8 string, then opaque bytes, in that order.

    At the depth bound the payload is left as opaque bytes.
    """
    if depth >= max_depth:
        return (Interpretation("bytes", bytes_to_hex(payload)),), None
    nested = resolve_nested(payload, depth + 1, max_depth)
    if nested is not None:
        return (Interpretation("message", f"{len(nested.fields)} fields"),), nested
    return (decode_string_or_bytes(payload),), None


def interpret_field(
    wire_type: WireType, raw: int | bytes, depth: int, max_depth: int
) -> tuple[tuple[Interpretation, ...], ParseResult | None]:
    match wire_type:
        case WireType.VARINT:
            assert isinstance(raw, int)
            return interpret_varint(raw), None
        case WireType.FIXED64:
            return interpret_fixed64(raw), None
        case WireType.FIXED32:
            return interpret_fixed32(raw), None
        case WireType.LENGTH_DELIMITED:
            assert isinstance(raw, bytes)
            return interpret_length_delimited(raw, depth, max_depth)
        case WireType.START_GROUP | WireType.END_GROUP:
            return (), None
