#!/usr/bin/env python3
"""protopeek dev server: paste-and-decode page plus a JSON API.

Serves at http://localhost:8001. Every request decodes its own input; no
result is kept between requests.
"""

from __future__ import annotations

import gzip
import json
import logging
import platform
import subprocess
import webbrowser
from typing import Any, cast

import bottle  # type: ignore

from protopeek.config import Settings, load_settings

Bottle = cast(Any, bottle.Bottle)
request = cast(Any, bottle.request)
response = cast(Any, bottle.response)
HTTPResponse = cast(Any, bottle.HTTPResponse)

_log = logging.getLogger("protopeek")

# CORS, set from Settings.cors by configure()
CORS_ENABLED = False

# Replaced by the CLI before serving; tests may swap it too.
SETTINGS: Settings = Settings()

# Request bodies carry the input as hex, base64 or form-encoded text.
BODY_EXPANSION = 4

try:
    import brotli  # type: ignore

    HAS_BROTLI = True
except ImportError:
    HAS_BROTLI = False

try:
    import zstandard as zstd  # type: ignore

    HAS_ZSTD = True
except ImportError:
    HAS_ZSTD = False


def configure(settings: Settings | None = None) -> Settings:
    """Install ``settings`` (or the ones found on disk) for request handlers."""
    global SETTINGS, CORS_ENABLED
    SETTINGS = settings if settings is not None else load_settings()
    CORS_ENABLED = SETTINGS.cors
    bottle.BaseRequest.MEMFILE_MAX = max(
        bottle.BaseRequest.MEMFILE_MAX, BODY_EXPANSION * SETTINGS.max_input_bytes
    )
    return SETTINGS


# ── Compression ────────────────────────────────────────────────────


def _best_encoding(accept_encoding: str) -> str:
    if HAS_ZSTD and "zstd" in accept_encoding:
        return "zstd"
    if HAS_BROTLI and "br" in accept_encoding:
        return "br"
    if "gzip" in accept_encoding:
        return "gzip"
    return ""


def compress_payload(body: bytes, accept_encoding: str) -> tuple[bytes, str]:
    """Compress payload using the best available algorithm."""
    encoding = _best_encoding(accept_encoding)
    if encoding == "zstd":
        return zstd.ZstdCompressor(level=3).compress(body), "zstd"  # type: ignore
    if encoding == "br":
        return brotli.compress(body), "br"  # type: ignore
    if encoding == "gzip":
        return gzip.compress(body), "gzip"
    return body, ""


# ── Response helpers ───────────────────────────────────────────────


def _compressed(body: bytes, content_type: str, **headers: str) -> bytes:
    """Compress body, set response headers, return final body."""
    accept_enc = request.headers.get("Accept-Encoding", "")
    body, encoding = compress_payload(body, accept_enc)
    response.content_type = content_type
    if encoding:
        response.set_header("Content-Encoding", encoding)
    response.set_header("Content-Length", str(len(body)))
    for k, v in headers.items():
        response.set_header(k.replace("_", "-"), v)
    return body


def _json_ok(data: Any, **headers: str) -> bytes:
    """Return compressed JSON 200."""
    body = json.dumps(data).encode("utf-8")
    return _compressed(body, "application/json", **headers)


def _json_err(status: int, data: dict[str, Any]) -> Any:
    """Return a JSON error response."""
    body = json.dumps(data).encode("utf-8")
    accept_enc = request.headers.get("Accept-Encoding", "")
    body, encoding = compress_payload(body, accept_enc)
    resp = HTTPResponse(status=status, body=body)
    resp.content_type = "application/json"
    if encoding:
        resp.set_header("Content-Encoding", encoding)
    resp.set_header("Content-Length", str(len(body)))
    return resp


# ── Bottle app ─────────────────────────────────────────────────────

app = Bottle()


@app.hook("after_request")
def _cors_headers() -> None:
    if CORS_ENABLED:
        response.set_header("Access-Control-Allow-Origin", "*")
        response.set_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        response.set_header("Access-Control-Allow-Headers", "Content-Type")


# ── Browser opener ─────────────────────────────────────────────────


def open_browser(url: str) -> None:
    system = platform.system()
    try:
        if system == "Linux":
            subprocess.Popen(
                ["xdg-open", url], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
            )
        elif system == "Darwin":
            subprocess.Popen(
                ["open", url], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
            )
        else:
            webbrowser.open(url)
    except OSError:
        webbrowser.open(url)


# Route modules register themselves on ``app``.
from protopeek import api as _api  # noqa: E402,F401
from protopeek import ui as _ui  # noqa: E402,F401
