"""
Import Decoder

Turns externally sourced text into raw {date, description, amount}
records. Two source shapes are understood:

- Delimited rows (csv / text): the first line is a header, fields are
  matched to the Date, Description and Amount columns by name.
- JSON array (ynab): a list of objects with the same three keys.

Decoding never categorizes and never assigns an account; that happens
when the ledger imports the batch. After decoding, every record passes
the same validation regardless of format: records without a date or
with an unreadable amount are dropped and counted, not raised.
"""

import csv
import json
import re
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, Field

from finance_tracker.models import ZERO, ImportedRecord, ImportFormat, is_valid_amount


logger = structlog.get_logger(__name__)

DATE_FIELD = "Date"
DESCRIPTION_FIELD = "Description"
AMOUNT_FIELD = "Amount"

BYTE_ORDER_MARK = "\ufeff"

# Numeric prefix of an amount string, e.g. "12.50" in "12.50 USD"
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class ImportDecodeError(Exception):
    """Base exception for import decoding."""
    pass


class MalformedSourceError(ImportDecodeError):
    """The source text does not have the expected overall shape."""
    pass


class UnsupportedFormatError(ImportDecodeError):
    """The declared import format is not one we understand."""
    pass


class DecodedBatch(BaseModel):
    """Records decoded from one source, split by validation outcome."""

    accepted: list[ImportedRecord] = Field(default_factory=list)
    rejected: list[ImportedRecord] = Field(default_factory=list)
    error_message: Optional[str] = Field(
        default=None,
        description="Set when the source could not be decoded at all"
    )

    @property
    def accepted_count(self) -> int:
        return len(self.accepted)

    @property
    def rejected_count(self) -> int:
        return len(self.rejected)

    @property
    def total_count(self) -> int:
        return self.accepted_count + self.rejected_count


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Read an amount field.

    Missing or empty values count as zero. Strings are read up to the end
    of their leading number ("12.50 USD" -> 12.50). Returns None when no
    number in the accepted range (see is_valid_amount) can be read.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        return amount if is_valid_amount(amount) else None

    text = str(value).strip()
    if not text:
        return ZERO
    match = _LEADING_NUMBER.match(text)
    if match is None:
        return None
    amount = Decimal(match.group(0))
    return amount if is_valid_amount(amount) else None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_delimited(text: str, delimiter: str = ",") -> list[ImportedRecord]:
    """
    Decode header-plus-rows text.

    Missing columns default to an empty string (date, description) or
    zero (amount). Extra columns are ignored.
    """
    content = text.lstrip(BYTE_ORDER_MARK).strip()
    if not content:
        return []

    try:
        rows = list(csv.reader(StringIO(content), delimiter=delimiter, skipinitialspace=True))
    except csv.Error as e:
        raise MalformedSourceError(f"Could not split rows: {e}") from e

    header = [name.strip() for name in rows[0]]
    records = []
    for values in rows[1:]:
        row = {
            name: values[index].strip() if index < len(values) else ""
            for index, name in enumerate(header)
        }
        records.append(ImportedRecord(
            date=row.get(DATE_FIELD, ""),
            description=row.get(DESCRIPTION_FIELD, ""),
            amount=parse_amount(row.get(AMOUNT_FIELD)),
        ))
    return records


def parse_json_array(text: str) -> list[ImportedRecord]:
    """
    Decode a JSON array of transaction objects.

    Raises:
        MalformedSourceError: If the text is not JSON or not an array
    """
    try:
        data = json.loads(text.lstrip(BYTE_ORDER_MARK))
    except json.JSONDecodeError as e:
        raise MalformedSourceError(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise MalformedSourceError(
            f"Expected a JSON array of transactions, got {type(data).__name__}"
        )

    records = []
    for item in data:
        if not isinstance(item, dict):
            # Kept as an empty record so it is counted as rejected
            item = {}
        records.append(ImportedRecord(
            date=_as_text(item.get(DATE_FIELD)),
            description=_as_text(item.get(DESCRIPTION_FIELD)),
            amount=parse_amount(item.get(AMOUNT_FIELD)),
        ))
    return records


def validate_records(
    records: list[ImportedRecord],
) -> tuple[list[ImportedRecord], list[ImportedRecord]]:
    """
    Split records into (accepted, rejected).

    A record is rejected when its date is empty or its amount is not a
    finite number.
    """
    accepted: list[ImportedRecord] = []
    rejected: list[ImportedRecord] = []

    for record in records:
        if not record.date:
            logger.warning("import_record_skipped", reason="missing_date", record=record.model_dump(mode="json"))
            rejected.append(record)
        elif not record.has_valid_amount:
            logger.warning("import_record_skipped", reason="invalid_amount", record=record.model_dump(mode="json"))
            rejected.append(record)
        else:
            accepted.append(record)

    return accepted, rejected


def resolve_format(fmt: Union[ImportFormat, str]) -> ImportFormat:
    """Normalise a format tag, raising UnsupportedFormatError for unknown ones."""
    try:
        return ImportFormat(str(getattr(fmt, "value", fmt)).strip().lower())
    except ValueError:
        raise UnsupportedFormatError(f"Unsupported file type: {fmt}")


def decode(
    text: str,
    fmt: Union[ImportFormat, str],
    delimiter: str = ",",
) -> DecodedBatch:
    """
    Decode and validate one import source.

    A malformed source is recovered here: the batch comes back empty with
    error_message set.

    Raises:
        UnsupportedFormatError: If fmt is not a known format
    """
    import_format = resolve_format(fmt)

    try:
        if import_format is ImportFormat.YNAB:
            records = parse_json_array(text)
        else:
            records = parse_delimited(text, delimiter=delimiter)
    except MalformedSourceError as e:
        logger.warning("import_source_malformed", format=import_format.value, error=str(e))
        return DecodedBatch(error_message=f"Error parsing file: {e}")

    accepted, rejected = validate_records(records)
    return DecodedBatch(accepted=accepted, rejected=rejected)
