"""Renderer-agnostic projections of a ParseResult: tree, table, canonical JSON."""

from __future__ import annotations

import json
import math
from typing import Any

from protopeek.interpret import FLOAT_KINDS, INTEGRAL_KINDS, TEXT_KINDS, bytes_to_hex
from protopeek.model import Field, Interpretation, ParseResult

MAX_CELL_CHARS = 200
MAX_SAFE_INTEGER = 2**53 - 1


def _truncate(text: str, limit: int = MAX_CELL_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


# ── Tree ───────────────────────────────────────────────────────────


def _tree_node(f: Field) -> dict[str, Any]:
    primary = f.primary
    return {
        "kind": "field",
        "field": f.field_number,
        "wire_type": f.wire_type.label,
        "type": f.type_label,
        "range": [f.start, f.end],
        "primary": primary.as_dict() if primary else None,
        "alternatives": [i.as_dict() for i in f.interpretations[1:]],
        "children": to_tree(f.nested) if f.nested is not None else [],
    }


def to_tree(result: ParseResult) -> list[dict[str, Any]]:
    """Depth-first list of field nodes; nested messages become ``children``."""
    return [_tree_node(f) for f in result.fields]


# ── Table ──────────────────────────────────────────────────────────


def to_table(result: ParseResult) -> dict[str, Any]:
    """Rows of byte range / field / type / content; nested messages become sub-tables."""
    rows: list[dict[str, Any]] = []
    for f in result.fields:
        nested = to_table(f.nested) if f.nested is not None else None
        content = []
        if nested is None:
            content = [
                {"kind": i.kind, "value": _truncate(i.value)} for i in f.interpretations
            ]
        rows.append(
            {
                "bytes": f"{f.start}-{f.end}",
                "field": f.field_number,
                "type": f.type_label,
                "content": content,
                "nested": nested,
            }
        )
    return {"kind": "table", "rows": rows, "trailing": bytes_to_hex(result.trailing)}


# ── Canonical JSON ─────────────────────────────────────────────────


def _first(interps: tuple[Interpretation, ...], kinds: frozenset[str]) -> Interpretation | None:
    for i in interps:
        if i.kind in kinds:
            return i
    return None


def _integral_value(text: str) -> int | str:
    n = int(text)
    if -MAX_SAFE_INTEGER <= n <= MAX_SAFE_INTEGER:
        return n
    return text


def _float_value(text: str) -> float | str:
    value = float(text)
    return value if math.isfinite(value) else text


def _scalar(f: Field) -> Any:
    interps = f.interpretations
    if not interps:
        return None
    text = _first(interps, TEXT_KINDS)
    if text is not None:
        return text.value
    integral = _first(interps, INTEGRAL_KINDS)
    if integral is not None:
        return _integral_value(integral.value)
    floating = _first(interps, FLOAT_KINDS)
    if floating is not None:
        return _float_value(floating.value)
    return interps[0].value


def to_canonical_json(result: ParseResult) -> dict[str, Any]:
    """Map ``field_<n>`` to values; repeated numbers collapse into lists in wire order.

    Integers outside the double-precision safe range are kept as decimal
    strings so 64-bit values survive a round trip through JSON consumers.
    """
    out: dict[str, Any] = {}
    for f in result.fields:
        key = f"field_{f.field_number}"
        value = to_canonical_json(f.nested) if f.nested is not None else _scalar(f)
        if key not in out:
            out[key] = value
        elif isinstance(out[key], list):
            out[key].append(value)
        else:
            out[key] = [out[key], value]
    return out


def dump_json(result: ParseResult, indent: int | None = 2) -> str:
    return json.dumps(to_canonical_json(result), indent=indent, ensure_ascii=False)


# ── Summary ────────────────────────────────────────────────────────


def summarize(data: bytes, result: ParseResult) -> dict[str, int]:
    return {
        "bytes": len(data),
        "fields": result.field_count(),
        "trailing": len(result.trailing),
    }


def describe(summary: dict[str, int]) -> str:
    """One-line parse report, e.g. for the CLI status line."""
    text = f"Parsed {summary['bytes']} bytes, found {summary['fields']} fields"
    if summary["trailing"]:
        text += f", {summary['trailing']} bytes left unparsed"
    return text
