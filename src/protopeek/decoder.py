"""Top-level decode entry point."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from protopeek.errors import InputTooLargeError
from protopeek.inputs import InputFormat, normalize, strip_grpc_header
from protopeek.model import ParseResult
from protopeek.wire import DEFAULT_MAX_DEPTH, tokenize

_log = logging.getLogger("protopeek")

# Mixed varints, strings, nested messages and fixed-width values.
SAMPLE_HEX = (
    "08d2a4808204100218dacbaafd032204313233332a1337353332373331343934313331"
    "313839323536320a323134323834303535313a0634302e302e33421c7630352e30302e"
    "30302d616c7068612e352d6f762d616e64726f696448c0808050520800000000000000"
    "0060b4e49e930d6a06d8954de437b872065eafe04f83fd7a1308e205100a1804280c30"
    "0638f4fff7810d400a82011941773339454b69345f687a73426a316d61456b7a76386b"
    "592d8801b4e49e930d9201100dc81b6dc87ce87cf3be2890d07fe2299a01202fa2f3ad"
    "3f63f54340e27b971d0a66976c75b600194af04fb9d0587a1f8eddeaa2010130a801e2"
    "05ba011d0a07506978656c203610121a0a676f6f676c65706c61792080808a8003c201"
    "84014d44476e475a6a51723355424c5468307954426f6b39537a6e7249714758596755"
    "4446396f766b50535561486668794c4657777748516376534569794e514f6d32656b46"
    "4967544f7852535a7641374f55506232574647586b54715056725a56656f706e6d6856"
    "4b374451787263415546752f6a706e34554e6e4864766f504c4176453dc8010ad20110"
    "0810120c95c422a691f6f51729912e8bd801f4fff7810de001b609e8010af00106f801"
    "84eba78e0682021a645ff7b6088eb3d991a1d58867810f67263c763047f94818866d88"
    "0204"
)


@dataclass(frozen=True)
class DecodeOptions:
    format: InputFormat | str = InputFormat.AUTO
    grpc: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH
    max_input_bytes: int | None = None


def to_bytes(
    data: bytes | bytearray | memoryview | str,
    format: InputFormat | str = InputFormat.AUTO,
    grpc: bool = False,
    max_input_bytes: int | None = None,
) -> bytes:
    """Normalize text (or pass bytes through), then apply the size ceiling and gRPC strip."""
    if isinstance(data, str):
        buf = normalize(data, format)
    else:
        buf = bytes(data)
    if max_input_bytes is not None and len(buf) > max_input_bytes:
        raise InputTooLargeError(len(buf), max_input_bytes)
    if grpc:
        buf = strip_grpc_header(buf)
    return buf


def decode(
    data: bytes | bytearray | memoryview | str,
    format: InputFormat | str = InputFormat.AUTO,
    grpc: bool = False,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_input_bytes: int | None = None,
) -> ParseResult:
    """Decode a Protobuf message without a schema.

    ``data`` may be raw bytes or hex / base64 text. Raises ``FormatError``
    when text cannot be turned into bytes; malformed wire data never raises,
    it ends up in ``ParseResult.trailing``.
    """
    buf = to_bytes(data, format, grpc, max_input_bytes)
    result = tokenize(buf, 0, 0, max_depth)
    _log.debug(
        "decoded %d bytes: %d fields, %d trailing",
        len(buf),
        result.field_count(),
        len(result.trailing),
    )
    return result


def decode_with(data: bytes | bytearray | memoryview | str, options: DecodeOptions) -> ParseResult:
    return decode(
        data,
        format=options.format,
        grpc=options.grpc,
        max_depth=options.max_depth,
        max_input_bytes=options.max_input_bytes,
    )
