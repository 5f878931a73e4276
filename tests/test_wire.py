import struct

import pytest

from protopeek.decoder import SAMPLE_HEX
from protopeek.errors import TruncatedError, VarintOverflowError
from protopeek.model import WireType
from protopeek.wire import read_tag, read_varint, tokenize
from wire_helpers import ld_field, tag, varint, varint_field


def test_read_varint():
    assert read_varint(b"\x01") == (1, 1)
    assert read_varint(b"\xac\x02") == (300, 2)
    assert read_varint(b"\x00\x96\x01", 1) == (150, 2)
    assert read_varint(b"\xff" * 9 + b"\x01") == (2**64 - 1, 10)


def test_read_varint_overflow():
    with pytest.raises(OverflowError):
        read_varint(b"\xff" * 10 + b"\x01")
    with pytest.raises(VarintOverflowError):
        read_varint(b"\x80" * 11)


def test_read_varint_truncated():
    with pytest.raises(TruncatedError):
        read_varint(b"\x80")
    with pytest.raises(EOFError):
        read_varint(b"")


def test_read_tag():
    assert read_tag(b"\x0a") == (1, 2, 1)
    assert read_tag(b"\x08") == (1, 0, 1)
    assert read_tag(tag(1000, 5)) == (1000, 5, 2)


def test_tokenize_varint():
    result = tokenize(b"\x08\x96\x01")
    assert len(result.fields) == 1
    f = result.fields[0]
    assert f.field_number == 1
    assert f.wire_type is WireType.VARINT
    assert f.raw == 150
    assert f.byte_range == (0, 3)
    assert result.trailing == b""


def test_tokenize_fixed_widths():
    data = tag(1, 5) + struct.pack("<f", 1.5) + tag(2, 1) + struct.pack("<d", 2.5)
    result = tokenize(data)
    f32, f64 = result.fields
    assert f32.wire_type is WireType.FIXED32
    assert f32.byte_range == (0, 5)
    assert [i.kind for i in f32.interpretations] == ["int32", "float"]
    assert f32.interpretations[1].value == "1.5"
    assert f64.wire_type is WireType.FIXED64
    assert f64.byte_range == (5, 14)
    assert [i.kind for i in f64.interpretations] == ["int64", "double"]
    assert f64.interpretations[1].value == "2.5"


def test_tokenize_length_delimited():
    result = tokenize(ld_field(2, b"hi") + varint_field(3, 7))
    assert [f.field_number for f in result.fields] == [2, 3]
    assert result.fields[0].raw == b"hi"
    assert result.fields[0].byte_range == (0, 4)
    assert result.fields[1].byte_range == (4, 6)


@pytest.mark.parametrize(
    "data,kept,trailing",
    [
        (b"\x08\x01\x00\x08\x02", 1, b"\x00\x08\x02"),  # field number 0
        (b"\x08\x01\x0b\x08\x02", 1, b"\x0b\x08\x02"),  # start group
        (b"\x08\x01\x0c", 1, b"\x0c"),  # end group
        (b"\x08\x01\x0e\x01", 1, b"\x0e\x01"),  # wire type 6
        (b"\x08\x01\x12\x05ab", 1, b"\x12\x05ab"),  # length past end
        (b"\x09\x01\x02", 0, b"\x09\x01\x02"),  # short fixed64
        (b"\x08\x01\x15\x00", 1, b"\x15\x00"),  # short fixed32
        (b"\x08\x01\x08", 1, b"\x08"),  # value missing
        (b"\x08\x01\x80", 1, b"\x80"),  # tag truncated
    ],
)
def test_tokenize_stops_and_keeps_trailing(data, kept, trailing):
    result = tokenize(data)
    assert len(result.fields) == kept
    assert result.trailing == trailing


def test_tokenize_overflowing_varint_becomes_trailing():
    data = b"\x08\x01" + b"\x08" + b"\xff" * 10 + b"\x01"
    result = tokenize(data)
    assert len(result.fields) == 1
    assert result.trailing == data[2:]


def test_tokenize_empty():
    result = tokenize(b"")
    assert result.fields == ()
    assert result.trailing == b""


def test_tokenize_from_offset():
    result = tokenize(b"\xff\xff\x08\x01", offset=2)
    assert len(result.fields) == 1
    assert result.fields[0].byte_range == (2, 4)
    assert result.trailing == b""


@pytest.mark.parametrize(
    "data",
    [
        bytes.fromhex(SAMPLE_HEX),
        b"\x08\x01\x12\x03abc\x1a\x02\xff\xfe\x00\x01\x02",
        b"\x0a\x05hello\x10",
        b"hello",
        ld_field(1, ld_field(2, varint_field(3, 300))) + b"\x09\x00",
        varint(2**70),
    ],
)
def test_fields_and_trailing_cover_input(data):
    result = tokenize(data)
    assert result.consumed + len(result.trailing) == len(data)
    pos = 0
    for f in result.fields:
        assert f.start == pos
        assert f.end > f.start
        pos = f.end
    assert data[pos:] == result.trailing
