"""JSON API routes for the protopeek server."""

from __future__ import annotations

from typing import Any

import bottle  # type: ignore

from protopeek import __version__
from protopeek import server as _server
from protopeek.decoder import SAMPLE_HEX, decode, to_bytes
from protopeek.errors import FormatError, InputTooLargeError
from protopeek.inputs import InputFormat
from protopeek.model import ParseResult
from protopeek.server import (
    HAS_BROTLI,
    HAS_ZSTD,
    _json_err,
    _json_ok,
    app,
    request,
)
from protopeek.views import summarize, to_canonical_json, to_table, to_tree
from protopeek.wire import MAX_DEPTH_LIMIT

VIEWS = ("tree", "table", "json")


def _parse_depth(value: Any) -> int:
    if value is None or value == "":
        return _server.SETTINGS.max_depth
    return min(max(int(value), 0), MAX_DEPTH_LIMIT)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def decode_request(
    text: str, fmt: str, grpc: bool, max_depth: int
) -> tuple[bytes, ParseResult]:
    """Decode one request's input under the server's size ceiling."""
    buf = to_bytes(
        text,
        format=fmt or _server.SETTINGS.format,
        grpc=grpc,
        max_input_bytes=_server.SETTINGS.max_input_bytes,
    )
    return buf, decode(buf, max_depth=max_depth)


def render_view(result: ParseResult, view: str) -> Any:
    if view == "tree":
        return to_tree(result)
    if view == "table":
        return to_table(result)
    return to_canonical_json(result)


@app.get("/api/health")
def handle_api_health() -> bytes:
    settings = _server.SETTINGS
    return _json_ok(
        {
            "version": __version__,
            "extras": {
                "brotli": HAS_BROTLI,
                "zstd": HAS_ZSTD,
            },
            "limits": {
                "max_depth": settings.max_depth,
                "max_input_bytes": settings.max_input_bytes,
            },
            "cors": _server.CORS_ENABLED,
        }
    )


@app.post("/api/decode")
def handle_api_decode() -> bytes | Any:
    try:
        params = request.json
    except (ValueError, bottle.HTTPError):
        params = None
    if not isinstance(params, dict):
        return _json_err(400, {"error": "expected a JSON object body"})

    text = params.get("input")
    if not isinstance(text, str):
        return _json_err(400, {"error": "missing input"})
    fmt = str(params.get("format") or InputFormat.AUTO.value)
    view = str(params.get("view") or "json")
    if view not in VIEWS:
        return _json_err(400, {"error": f"unknown view {view!r}, use one of {', '.join(VIEWS)}"})
    try:
        max_depth = _parse_depth(params.get("max_depth"))
    except (TypeError, ValueError):
        return _json_err(400, {"error": "invalid max_depth"})

    try:
        buf, result = decode_request(text, fmt, _parse_bool(params.get("grpc", False)), max_depth)
    except InputTooLargeError as e:
        return _json_err(413, {"error": str(e)})
    except FormatError as e:
        return _json_err(400, {"error": str(e)})

    return _json_ok(
        {
            "summary": summarize(buf, result),
            "view": view,
            "result": render_view(result, view),
        },
        Cache_Control="no-store",
    )


@app.get("/api/sample")
def handle_api_sample() -> bytes:
    buf, result = decode_request(SAMPLE_HEX, "hex", False, _server.SETTINGS.max_depth)
    return _json_ok(
        {
            "input": SAMPLE_HEX,
            "summary": summarize(buf, result),
            "result": to_canonical_json(result),
        },
        Cache_Control="public, max-age=3600",
    )
