import json
import logging

from typer.testing import CliRunner

from protopeek.cli import app
from protopeek.wire import MAX_DEPTH_LIMIT
from wire_helpers import ld_field, nest, varint_field

runner = CliRunner()


def test_decode_json_view():
    result = runner.invoke(app, ["decode", "0a03666f6f", "--view", "json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"field_1": "foo"}


def test_decode_base64_argument():
    result = runner.invoke(app, ["decode", "CgNmb28=", "-V", "json", "-f", "base64"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"field_1": "foo"}


def test_decode_table_view():
    result = runner.invoke(app, ["decode", "08960112020801"])
    assert result.exit_code == 0, result.output
    assert "150" in result.output
    assert "protobuf" in result.output
    assert "Parsed 7 bytes" in result.output


def test_decode_tree_view_shows_trailing():
    result = runner.invoke(app, ["decode", "0801ffff", "--view", "tree"])
    assert result.exit_code == 0, result.output
    assert "Field 1" in result.output
    assert "Unparsed" in result.output
    assert "ff ff" in result.output


def test_decode_from_stdin():
    result = runner.invoke(app, ["decode", "-V", "json"], input="0a 03 66 6f 6f\n")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"field_1": "foo"}


def test_decode_raw_file(tmp_path):
    path = tmp_path / "msg.bin"
    path.write_bytes(varint_field(1, 150) + ld_field(2, b"hey"))
    result = runner.invoke(app, ["decode", "--file", str(path), "--raw", "-V", "json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"field_1": 150, "field_2": "hey"}


def test_decode_text_file(tmp_path):
    path = tmp_path / "msg.txt"
    path.write_text("08 96 01\n")
    result = runner.invoke(app, ["decode", "-i", str(path), "-V", "json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"field_1": 150}


def test_decode_missing_file(tmp_path):
    result = runner.invoke(app, ["decode", "-i", str(tmp_path / "missing.bin")])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_decode_grpc_frame():
    result = runner.invoke(app, ["decode", "00000000020801", "--grpc", "-V", "json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"field_1": 1}


def test_decode_max_depth():
    result = runner.invoke(app, ["decode", "0a020801", "-d", "0", "-V", "json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"field_1": "08 01"}


def test_decode_output_file(tmp_path):
    out = tmp_path / "out.json"
    result = runner.invoke(app, ["decode", "1801 1802", "--output", str(out)])
    assert result.exit_code == 0, result.output
    assert json.loads(out.read_text()) == {"field_3": [1, 2]}
    assert "Wrote" in result.output


def test_decode_invalid_text():
    result = runner.invoke(app, ["decode", "abc"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_decode_unknown_view():
    result = runner.invoke(app, ["decode", "0801", "--view", "xml"])
    assert result.exit_code == 1
    assert "Unknown view" in result.output


def test_decode_nothing_parsed_warns():
    result = runner.invoke(app, ["decode", "0000"])
    assert result.exit_code == 0
    assert "No fields could be parsed" in result.output


def test_decode_config_file(tmp_path):
    cfg = tmp_path / "protopeek.toml"
    cfg.write_text("max_depth = 0\n")
    result = runner.invoke(app, ["decode", "0a020801", "--config", str(cfg), "-V", "json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"field_1": "08 01"}


def test_decode_missing_config(tmp_path):
    result = runner.invoke(app, ["decode", "0801", "--config", str(tmp_path / "nope.toml")])
    assert result.exit_code == 1
    assert "cannot read config" in result.output


def test_sample_json():
    result = runner.invoke(app, ["sample", "--view", "json"])
    assert result.exit_code == 0, result.output
    doc = json.loads(result.output)
    assert doc["field_1"] == 1077940818
    assert doc["field_4"] == "1233"


def test_verbose_flag(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
    result = runner.invoke(app, ["-v", "decode", "0801", "-V", "json"])
    assert result.exit_code == 0, result.output
    assert calls and calls[0]["level"] == logging.DEBUG


def test_decode_huge_max_depth_is_clamped():
    data = nest(400).hex()
    result = runner.invoke(app, ["decode", data, "--max-depth", "1000", "--view", "json"])
    assert result.exit_code == 0, result.output
    doc = json.loads(result.output)
    levels = 0
    while isinstance(doc.get("field_1"), dict):
        levels += 1
        doc = doc["field_1"]
    assert levels == MAX_DEPTH_LIMIT
    assert isinstance(doc["field_1"], str)
