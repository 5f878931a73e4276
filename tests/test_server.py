import gzip
import json
from io import BytesIO
from urllib.parse import urlencode
from wsgiref.util import setup_testing_defaults

import bottle
import pytest

from protopeek import server
from protopeek.config import Settings
from protopeek.decoder import SAMPLE_HEX
from protopeek.server import app, compress_payload
from wire_helpers import ld_field


@pytest.fixture(autouse=True)
def _default_settings(monkeypatch):
    monkeypatch.setattr(server, "SETTINGS", Settings())
    monkeypatch.setattr(server, "CORS_ENABLED", False)


def _wsgi(
    path: str,
    method: str = "GET",
    body: bytes = b"",
    content_type: str = "",
    headers: dict[str, str] | None = None,
) -> tuple[str, dict[str, str], bytes]:
    environ: dict[str, str | BytesIO] = {}
    setup_testing_defaults(environ)
    url_path, _, query = path.partition("?")
    environ["REQUEST_METHOD"] = method
    environ["PATH_INFO"] = url_path
    environ["QUERY_STRING"] = query
    environ["wsgi.input"] = BytesIO(body)
    environ["CONTENT_LENGTH"] = str(len(body))
    if content_type:
        environ["CONTENT_TYPE"] = content_type
    if headers:
        for k, v in headers.items():
            environ[f"HTTP_{k.upper().replace('-', '_')}"] = v

    status_holder = {"status": "", "headers": {}}

    def _start_response(status: str, response_headers, exc_info=None):
        status_holder["status"] = status
        status_holder["headers"] = {k: v for k, v in response_headers}
        return None

    result = app(environ, _start_response)
    data = b"".join(result)
    return status_holder["status"], status_holder["headers"], data


def _post_json(payload, headers=None):
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return _wsgi("/api/decode", "POST", raw, "application/json", headers)


def test_health():
    status, headers, body = _wsgi("/api/health")
    assert status.startswith("200")
    doc = json.loads(body)
    assert doc["limits"] == {"max_depth": 10, "max_input_bytes": 1 << 20}
    assert doc["cors"] is False
    assert "version" in doc


def test_decode_json_view():
    status, headers, body = _post_json({"input": "0a03666f6f"})
    assert status.startswith("200")
    assert headers["Cache-Control"] == "no-store"
    doc = json.loads(body)
    assert doc["view"] == "json"
    assert doc["result"] == {"field_1": "foo"}
    assert doc["summary"] == {"bytes": 5, "fields": 1, "trailing": 0}


def test_decode_tree_view_with_options():
    status, _, body = _post_json(
        {"input": "AAAAAAQKAggB", "format": "base64", "grpc": True, "view": "tree"}
    )
    assert status.startswith("200")
    nodes = json.loads(body)["result"]
    assert nodes[0]["type"] == "protobuf"
    assert nodes[0]["children"][0]["primary"] == {"kind": "uint", "value": "1"}


def test_decode_max_depth_option():
    _, _, body = _post_json({"input": "0a020801", "max_depth": 0})
    assert json.loads(body)["result"] == {"field_1": "08 01"}


def test_decode_table_reports_trailing():
    _, _, body = _post_json({"input": "0801ffff", "view": "table"})
    table = json.loads(body)["result"]
    assert table["trailing"] == "ff ff"
    assert table["rows"][0]["bytes"] == "0-2"


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"[1, 2]",
        {"format": "hex"},
        {"input": 42},
        {"input": "0801", "view": "xml"},
        {"input": "0801", "max_depth": "deep"},
        {"input": "abc"},
    ],
)
def test_decode_bad_requests(payload):
    status, headers, body = _post_json(payload)
    assert status.startswith("400")
    assert headers["Content-Type"] == "application/json"
    assert "error" in json.loads(body)


def test_decode_too_large(monkeypatch):
    monkeypatch.setattr(server, "SETTINGS", Settings(max_input_bytes=4))
    status, _, body = _post_json({"input": "08010801080108010801"})
    assert status.startswith("413")
    assert "limit" in json.loads(body)["error"]


def test_sample():
    status, headers, body = _wsgi("/api/sample")
    assert status.startswith("200")
    doc = json.loads(body)
    assert doc["input"] == SAMPLE_HEX
    assert doc["result"]["field_2"] == 2


def test_index_page_empty():
    status, headers, body = _wsgi("/")
    assert status.startswith("200")
    assert headers["Content-Type"].startswith("text/html")
    assert b"<textarea" in body


def test_index_page_sample_views():
    for view in ("table", "tree", "json"):
        status, _, body = _wsgi(f"/?sample=1&view={view}")
        assert status.startswith("200")
        assert b"fields" in body
    _, _, body = _wsgi("/?sample=1&view=json")
    assert b"field_1" in body


def test_index_post_form():
    form = urlencode({"input": "0a03666f6f", "view": "table"}).encode()
    status, _, body = _wsgi("/", "POST", form, "application/x-www-form-urlencoded")
    assert status.startswith("200")
    assert b"foo" in body
    assert b"Parsed 5 bytes" in body


def test_view_tabs_resubmit_large_input_by_post():
    text = ld_field(1, b"\xff" * 40000).hex()
    assert len(text) > 65536
    form = urlencode({"input": text, "view": "json"}).encode()
    status, _, body = _wsgi("/", "POST", form, "application/x-www-form-urlencoded")
    assert status.startswith("200")
    assert b"?view=" not in body
    assert body.count(text.encode()) == 1
    for view in ("table", "tree", "json"):
        assert f'name="view" value="{view}"'.encode() in body
    # the Decode button keeps the current view and submits first
    assert body.index(b'name="view" value="json"') < body.index(b'name="view" value="table"')

    form = urlencode({"input": text, "view": "tree"}).encode()
    status, _, body = _wsgi("/", "POST", form, "application/x-www-form-urlencoded")
    assert status.startswith("200")
    assert b"Parsed 40004 bytes" in body


def test_index_escapes_input():
    form = urlencode({"input": "<script>alert(1)</script>"}).encode()
    status, _, body = _wsgi("/", "POST", form, "application/x-www-form-urlencoded")
    assert status.startswith("400")
    assert b"<script>alert(1)</script>" not in body
    assert b"&lt;script&gt;" in body


def test_index_escapes_decoded_strings():
    payload = b"\x0a\x08<b>x</b>".hex()
    _, _, body = _wsgi(f"/?input={payload}&view=table")
    assert b"<b>x</b>" not in body


def test_gzip_when_accepted(monkeypatch):
    monkeypatch.setattr(server, "HAS_ZSTD", False)
    monkeypatch.setattr(server, "HAS_BROTLI", False)
    status, headers, body = _wsgi("/api/health", headers={"Accept-Encoding": "gzip"})
    assert headers["Content-Encoding"] == "gzip"
    assert json.loads(gzip.decompress(body))["cors"] is False


def test_compress_payload_identity():
    assert compress_payload(b"abc", "") == (b"abc", "")


def test_cors_header(monkeypatch):
    monkeypatch.setattr(server, "CORS_ENABLED", True)
    _, headers, _ = _wsgi("/api/health")
    assert headers["Access-Control-Allow-Origin"] == "*"


def test_configure_sets_cors(monkeypatch):
    monkeypatch.setattr(bottle.BaseRequest, "MEMFILE_MAX", 102400)
    settings = server.configure(Settings(cors=True, max_depth=3))
    assert server.CORS_ENABLED is True
    assert server.SETTINGS.max_depth == 3
    assert settings is server.SETTINGS
    assert bottle.BaseRequest.MEMFILE_MAX == server.BODY_EXPANSION * settings.max_input_bytes
