"""HTML routes for the protopeek server."""

from __future__ import annotations

from typing import Any

from protopeek import server as _server
from protopeek.api import _parse_bool, _parse_depth, decode_request, render_view
from protopeek.decoder import SAMPLE_HEX
from protopeek.errors import FormatError, InputTooLargeError
from protopeek.page import VIEW_TABS, render_page
from protopeek.server import HTTPResponse, _compressed, app, request
from protopeek.views import describe, summarize

_VIEW_NAMES = {name for name, _ in VIEW_TABS}


@app.get("/")
@app.post("/")
@app.get("/index.html")
def handle_index() -> bytes | Any:
    params = request.params
    view = params.get("view", "table")
    if view not in _VIEW_NAMES:
        view = "table"
    fmt = params.get("format", "") or _server.SETTINGS.format
    grpc = _parse_bool(params.get("grpc", ""))
    text = SAMPLE_HEX if params.get("sample") else params.getunicode("input", "")
    try:
        max_depth = _parse_depth(params.get("max_depth"))
    except ValueError:
        max_depth = _server.SETTINGS.max_depth

    ctx: dict[str, Any] = {
        "view": view,
        "input_text": text,
        "fmt": fmt,
        "grpc": grpc,
        "max_depth": max_depth,
    }
    status = 200
    if text.strip():
        try:
            buf, result = decode_request(text, fmt, grpc, max_depth)
        except (FormatError, InputTooLargeError) as e:
            ctx["error"] = str(e)
            status = 413 if isinstance(e, InputTooLargeError) else 400
        else:
            summary = summarize(buf, result)
            ctx["info_line"] = describe(summary)
            ctx["field_count"] = summary["fields"]
            ctx["body"] = render_view(result, view)
            ctx["trailing"] = result.trailing

    body = render_page(**ctx).encode("utf-8")
    if status != 200:
        return HTTPResponse(status=status, body=body, Content_Type="text/html; charset=utf-8")
    return _compressed(
        body,
        "text/html; charset=utf-8",
        Cache_Control="no-cache, no-store, must-revalidate",
    )
