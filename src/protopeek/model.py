"""Data model shared by the tokenizer, interpreter and projections."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class WireType(IntEnum):
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5

    @property
    def label(self) -> str:
        return _WIRE_LABELS[self]

    @property
    def is_group(self) -> bool:
        return self in (WireType.START_GROUP, WireType.END_GROUP)


_WIRE_LABELS = {
    WireType.VARINT: "Varint",
    WireType.FIXED64: "64-bit",
    WireType.LENGTH_DELIMITED: "Length-delimited",
    WireType.START_GROUP: "Start group (deprecated)",
    WireType.END_GROUP: "End group (deprecated)",
    WireType.FIXED32: "32-bit",
}


@dataclass(frozen=True)
class Interpretation:
    """One plausible typed reading of a field's bits."""

    kind: str
    value: str

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "value": self.value}


@dataclass(frozen=True)
class Field:
    """A single tag/value pair as it appeared on the wire.

    ``start``/``end`` index into the buffer the field was tokenized from, so
    fields of a nested message are relative to their parent's payload.
    ``raw`` is an ``int`` for varint and fixed-width fields and ``bytes`` for
    length-delimited ones.
    """

    field_number: int
    wire_type: WireType
    raw: int | bytes
    start: int
    end: int
    interpretations: tuple[Interpretation, ...] = ()
    nested: ParseResult | None = None

    @property
    def byte_range(self) -> tuple[int, int]:
        return self.start, self.end

    @property
    def size(self) -> int:
        return self.end - self.start

    @property
    def primary(self) -> Interpretation | None:
        return self.interpretations[0] if self.interpretations else None

    @property
    def type_label(self) -> str:
        """Compact type name used by the table and tree views."""
        match self.wire_type:
            case WireType.VARINT:
                return "varint"
            case WireType.FIXED64:
                return "fixed64"
            case WireType.FIXED32:
                return "fixed32"
            case WireType.LENGTH_DELIMITED:
                if self.nested is not None:
                    return "protobuf"
                return self.primary.kind if self.primary else "len_delim"
            case WireType.START_GROUP | WireType.END_GROUP:
                return "group"


@dataclass(frozen=True)
class ParseResult:
    """Ordered fields plus whatever bytes could not be tokenized."""

    fields: tuple[Field, ...] = ()
    trailing: bytes = b""

    @property
    def consumed(self) -> int:
        return sum(f.size for f in self.fields)

    def field_count(self, recursive: bool = True) -> int:
        count = len(self.fields)
        if recursive:
            for f in self.fields:
                if f.nested is not None:
                    count += f.nested.field_count()
        return count
