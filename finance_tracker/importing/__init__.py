"""Import decoding package."""

from finance_tracker.importing.decoder import (
    DecodedBatch,
    ImportDecodeError,
    MalformedSourceError,
    UnsupportedFormatError,
    decode,
    parse_amount,
    parse_delimited,
    parse_json_array,
    resolve_format,
    validate_records,
)

__all__ = [
    "DecodedBatch",
    "ImportDecodeError",
    "MalformedSourceError",
    "UnsupportedFormatError",
    "decode",
    "parse_amount",
    "parse_delimited",
    "parse_json_array",
    "resolve_format",
    "validate_records",
]
