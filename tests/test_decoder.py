"""Tests for import decoding and record validation."""

import json
from decimal import Decimal

import pytest

from finance_tracker.importing import (
    MalformedSourceError,
    UnsupportedFormatError,
    decode,
    parse_amount,
    parse_delimited,
    parse_json_array,
    resolve_format,
    validate_records,
)
from finance_tracker.models import ZERO, ImportedRecord, ImportFormat


class TestParseAmount:
    """Tests for amount field reading."""

    @pytest.mark.parametrize("value,expected", [
        ("12.50", Decimal("12.50")),
        ("-4", Decimal("-4")),
        (" 7.25 ", Decimal("7.25")),
        ("12.50 USD", Decimal("12.50")),
        (".5", Decimal(".5")),
        (42, Decimal("42")),
        (-3.5, Decimal("-3.5")),
    ])
    def test_readable_amounts(self, value, expected):
        """Test numbers and numeric prefixes."""
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_amount_is_zero(self, value):
        """Test that an absent amount counts as zero."""
        assert parse_amount(value) == ZERO

    @pytest.mark.parametrize("value", ["abc", "USD 12", True, float("nan"), float("inf")])
    def test_unreadable_amounts(self, value):
        """Test values with no finite numeric reading."""
        assert parse_amount(value) is None

    @pytest.mark.parametrize("value", ["1e1000000", "-1e1000000", "1e-1000000", "1e16", 1e300])
    def test_out_of_range_amounts(self, value):
        """Test that amounts too large or too small to carry in a balance are unreadable."""
        assert parse_amount(value) is None

    def test_range_limits(self):
        """Test the largest and smallest accepted magnitudes."""
        assert parse_amount("999999999999999.99") == Decimal("999999999999999.99")
        assert parse_amount("0.000000000000001") == Decimal("1e-15")
        assert parse_amount("0e-50") == ZERO


class TestDelimited:
    """Tests for header-plus-rows decoding."""

    def test_basic_rows(self):
        """Test header mapping and trimming."""
        text = "Date, Description, Amount\n2024-01-05, Salary, 1000\n2024-01-07, Rent, -200\n"
        records = parse_delimited(text)
        assert len(records) == 2
        assert records[0] == ImportedRecord(
            date="2024-01-05", description="Salary", amount=Decimal("1000")
        )
        assert records[1].amount == Decimal("-200")

    def test_columns_in_any_order_and_extra_columns(self):
        """Test that columns are matched by name, extras ignored."""
        text = "Amount,Memo,Date,Description\n-5,x,2024-02-01,Coffee\n"
        [record] = parse_delimited(text)
        assert record.date == "2024-02-01"
        assert record.description == "Coffee"
        assert record.amount == Decimal("-5")

    def test_missing_columns_default(self):
        """Test that absent columns give empty text and zero amount."""
        [record] = parse_delimited("Date,Description\n2024-01-01,No amount\n")
        assert record.amount == ZERO

    def test_short_rows(self):
        """Test rows with fewer values than header columns."""
        [record] = parse_delimited("Date,Description,Amount\n2024-01-01\n")
        assert record.description == ""
        assert record.amount == ZERO

    def test_header_names_are_case_sensitive(self):
        """Test that only the exact Date/Description/Amount names match."""
        [record] = parse_delimited("date,description,amount\n2024-01-01,x,5\n")
        assert record.date == ""

    def test_quoted_fields(self):
        """Test that quoted fields may contain the delimiter."""
        [record] = parse_delimited('Date,Description,Amount\n2024-01-01,"Rent, March",-900\n')
        assert record.description == "Rent, March"

    def test_custom_delimiter(self):
        """Test a non-comma delimiter."""
        [record] = parse_delimited("Date;Description;Amount\n2024-01-01;Lunch;-12\n", delimiter=";")
        assert record.amount == Decimal("-12")

    def test_empty_source(self):
        """Test that empty text gives no records."""
        assert parse_delimited("") == []
        assert parse_delimited("  \n ") == []

    def test_header_only(self):
        """Test that a header with no rows gives no records."""
        assert parse_delimited("Date,Description,Amount") == []

    def test_leading_byte_order_mark(self):
        """Test that a byte-order mark before the header is ignored."""
        [record] = parse_delimited("\ufeffDate,Description,Amount\n2024-01-05,Coffee,-4.50\n")
        assert record.date == "2024-01-05"
        assert record.amount == Decimal("-4.50")


class TestJsonArray:
    """Tests for YNAB-style JSON decoding."""

    def test_array_of_objects(self):
        """Test decoding an array of transaction objects."""
        text = json.dumps([
            {"Date": "2024-01-05", "Description": "Netflix", "Amount": -15.99},
            {"Date": "2024-01-06", "Description": "Paycheck", "Amount": "2000"},
        ])
        records = parse_json_array(text)
        assert [r.amount for r in records] == [Decimal("-15.99"), Decimal("2000")]
        assert records[0].description == "Netflix"

    def test_missing_amount_is_zero(self):
        """Test objects without an Amount key."""
        [record] = parse_json_array('[{"Date": "2024-01-05"}]')
        assert record.amount == ZERO

    def test_non_object_items_become_empty_records(self):
        """Test that non-object items are kept as empty records."""
        records = parse_json_array('[1, "x", {"Date": "2024-01-01", "Amount": 1}]')
        assert len(records) == 3
        assert records[0].date == ""

    def test_leading_byte_order_mark(self):
        """Test that a byte-order mark before the array is ignored."""
        [record] = parse_json_array('\ufeff[{"Date": "2024-01-05", "Amount": 3}]')
        assert record.amount == Decimal("3")

    @pytest.mark.parametrize("text", ["not json", "{", '{"Date": "2024-01-01"}', "42"])
    def test_malformed_sources(self, text):
        """Test that non-JSON and non-array sources are malformed."""
        with pytest.raises(MalformedSourceError):
            parse_json_array(text)


class TestValidateRecords:
    """Tests for the post-decode record filter."""

    def test_split(self):
        """Test that records without a date or amount are rejected."""
        records = [
            ImportedRecord(date="2024-01-01", description="ok", amount=Decimal("1")),
            ImportedRecord(date="", description="no date", amount=Decimal("1")),
            ImportedRecord(date="2024-01-01", description="bad amount", amount=None),
            ImportedRecord(date="2024-01-01", description="zero", amount=ZERO),
        ]
        accepted, rejected = validate_records(records)
        assert [r.description for r in accepted] == ["ok", "zero"]
        assert [r.description for r in rejected] == ["no date", "bad amount"]


class TestDecode:
    """Tests for the decode entry point."""

    def test_resolve_format(self):
        """Test format tags are normalised."""
        assert resolve_format("CSV") == ImportFormat.CSV
        assert resolve_format(ImportFormat.YNAB) == ImportFormat.YNAB
        assert resolve_format(" text ") == ImportFormat.TEXT

    def test_unknown_format(self):
        """Test that unknown formats raise."""
        with pytest.raises(UnsupportedFormatError):
            resolve_format("xlsx")
        with pytest.raises(UnsupportedFormatError):
            decode("", "xlsx")

    def test_csv_and_text_decode_identically(self):
        """Test that text imports use the delimited decoder."""
        text = "Date,Description,Amount\n2024-01-05,Salary,1000\n,Missing date,5\n"
        csv_batch = decode(text, ImportFormat.CSV)
        text_batch = decode(text, ImportFormat.TEXT)
        assert csv_batch.accepted == text_batch.accepted
        assert csv_batch.accepted_count == 1
        assert csv_batch.rejected_count == 1

    def test_malformed_json_is_recovered(self):
        """Test that a malformed source gives an empty batch with a message."""
        batch = decode("{not json", ImportFormat.YNAB)
        assert batch.total_count == 0
        assert batch.error_message.startswith("Error parsing file:")

    def test_out_of_range_amount_is_rejected(self):
        """Test that a huge amount is counted as rejected, not accepted."""
        batch = decode("Date,Description,Amount\n2024-01-05,x,1e1000000\n2024-01-06,y,5\n", "csv")
        assert [r.description for r in batch.accepted] == ["y"]
        assert batch.rejected_count == 1

    def test_ynab_batch_counts(self):
        """Test counts for a mixed JSON batch."""
        text = json.dumps([
            {"Date": "2024-01-05", "Description": "A", "Amount": "1"},
            {"Date": "2024-01-05", "Description": "B", "Amount": "oops"},
            {"Description": "C", "Amount": "3"},
        ])
        batch = decode(text, "ynab")
        assert batch.accepted_count == 1
        assert batch.rejected_count == 2
        assert batch.error_message is None
