"""protopeek: schema-less Protocol Buffers / gRPC wire-format decoder."""

from __future__ import annotations

__version__ = "0.3.0"

from protopeek.decoder import SAMPLE_HEX, DecodeOptions, decode
from protopeek.errors import (
    FormatError,
    InputTooLargeError,
    ProtopeekError,
    TruncatedError,
    VarintOverflowError,
)
from protopeek.inputs import InputFormat, normalize, strip_grpc_header
from protopeek.model import Field, Interpretation, ParseResult, WireType
from protopeek.views import dump_json, to_canonical_json, to_table, to_tree

__all__ = [
    "SAMPLE_HEX",
    "DecodeOptions",
    "Field",
    "FormatError",
    "InputFormat",
    "InputTooLargeError",
    "Interpretation",
    "ParseResult",
    "ProtopeekError",
    "TruncatedError",
    "VarintOverflowError",
    "WireType",
    "__version__",
    "decode",
    "dump_json",
    "normalize",
    "strip_grpc_header",
    "to_canonical_json",
    "to_table",
    "to_tree",
]
