#!/usr/bin/env python3
"""Tests for common.py module.

Tests cover:
- Quote-aware CSV line splitting
- Unterminated quote detection
- Check-in date parsing
- Report line accessors
"""

from datetime import datetime


class TestSplitCSVLine:
    """Test quote-aware CSV line splitting."""

    def test_plain_fields(self):
        """Test splitting a line without quotes."""
        from reptool.common import split_csv_line

        assert split_csv_line("a,b,c") == ["a", "b", "c"]

    def test_quoted_field_with_comma(self):
        """Test that commas inside quotes do not split the field."""
        from reptool.common import split_csv_line

        assert split_csv_line('1,"Smith, J",x') == ["1", "Smith, J", "x"]

    def test_escaped_quotes(self):
        """Test that a doubled quote inside quotes yields one literal quote."""
        from reptool.common import split_csv_line

        assert split_csv_line('"say ""hi""",2') == ['say "hi"', "2"]

    def test_escaped_quotes_around_word(self):
        """Test escaped quotes in the middle of a quoted field."""
        from reptool.common import split_csv_line

        assert split_csv_line('"a ""b"" c",d') == ['a "b" c', "d"]

    def test_trailing_comma_gives_empty_field(self):
        """Test that a trailing comma produces a trailing empty field."""
        from reptool.common import split_csv_line

        assert split_csv_line("a,") == ["a", ""]
        assert split_csv_line("a,,") == ["a", "", ""]

    def test_empty_line(self):
        """Test that an empty line is a single empty field."""
        from reptool.common import split_csv_line

        assert split_csv_line("") == [""]

    def test_empty_quoted_field(self):
        """Test that "" outside quotes is an empty field."""
        from reptool.common import split_csv_line

        assert split_csv_line('"",x') == ["", "x"]

    def test_quotes_in_middle_of_field(self):
        """Test that quotes mid-field toggle quoting without being emitted."""
        from reptool.common import split_csv_line

        assert split_csv_line('ab"c,d"e,f') == ["abc,de", "f"]

    def test_unterminated_quote_is_tolerated(self):
        """Test that an unbalanced quote swallows the rest of the line."""
        from reptool.common import split_csv_line

        assert split_csv_line('1,"open,field') == ["1", "open,field"]


class TestUnterminatedQuote:
    """Test unterminated quote detection."""

    def test_balanced_quotes(self):
        """Test balanced lines are not flagged."""
        from reptool.common import has_unterminated_quote

        assert not has_unterminated_quote('1,"Smith, J"')
        assert not has_unterminated_quote('"a ""b"""')
        assert not has_unterminated_quote("plain,line")

    def test_unbalanced_quotes(self):
        """Test an open quote at end of line is flagged."""
        from reptool.common import has_unterminated_quote

        assert has_unterminated_quote('1,"open')


class TestParseCheckInDate:
    """Test check-in date parsing."""

    def test_iso_date(self):
        """Test ISO 8601 date."""
        from reptool.common import parse_check_in_date

        assert parse_check_in_date("2024-06-01") == datetime(2024, 6, 1)

    def test_iso_datetime(self):
        """Test ISO 8601 date and time."""
        from reptool.common import parse_check_in_date

        assert parse_check_in_date("2024-06-01T14:30:00") == datetime(2024, 6, 1, 14, 30)
        assert parse_check_in_date("2024-06-01 14:30:00") == datetime(2024, 6, 1, 14, 30)

    def test_iso_with_offset_normalized_to_utc(self):
        """Test that offsets are converted to naive UTC."""
        from reptool.common import parse_check_in_date

        assert parse_check_in_date("2024-06-01T14:30:00+02:00") == datetime(2024, 6, 1, 12, 30)
        assert parse_check_in_date("2024-06-01T14:30:00Z") == datetime(2024, 6, 1, 14, 30)

    def test_us_formats(self):
        """Test MM/DD/YYYY with and without a time."""
        from reptool.common import parse_check_in_date

        assert parse_check_in_date("06/01/2024") == datetime(2024, 6, 1)
        assert parse_check_in_date("6/1/2024") == datetime(2024, 6, 1)
        assert parse_check_in_date("06/01/2024 14:30") == datetime(2024, 6, 1, 14, 30)
        assert parse_check_in_date("06/01/2024 2:30 PM") == datetime(2024, 6, 1, 14, 30)

    def test_iso_without_zero_padding(self):
        """Test dash-separated dates with single-digit month and day."""
        from reptool.common import parse_check_in_date

        assert parse_check_in_date("2024-6-1") == datetime(2024, 6, 1)
        assert parse_check_in_date("2024-6-1 9:05:00") == datetime(2024, 6, 1, 9, 5)

    def test_month_name_formats(self):
        """Test month name formats."""
        from reptool.common import parse_check_in_date

        assert parse_check_in_date("Jun 1, 2024") == datetime(2024, 6, 1)
        assert parse_check_in_date("June 1, 2024") == datetime(2024, 6, 1)

    def test_surrounding_whitespace(self):
        """Test that whitespace around the value is ignored."""
        from reptool.common import parse_check_in_date

        assert parse_check_in_date("  2024-06-01 ") == datetime(2024, 6, 1)

    def test_invalid_dates(self):
        """Test that unparseable values return None."""
        from reptool.common import parse_check_in_date

        assert parse_check_in_date("") is None
        assert parse_check_in_date("   ") is None
        assert parse_check_in_date("not a date") is None
        assert parse_check_in_date("13/45/2024") is None


class TestReport:
    """Test Report line accessors."""

    def test_header_and_data_lines(self):
        """Test header and data line access."""
        from reptool.common import Report

        report = Report("r.csv", "Net ID,Check-In Date\n1,2024-01-01\n")

        assert report.header_line == "Net ID,Check-In Date"
        assert report.header_fields == ["Net ID", "Check-In Date"]
        assert report.first_data_line == "1,2024-01-01"
        assert report.data_lines == ["1,2024-01-01", ""]

    def test_crlf_line_endings(self):
        """Test that CRLF line endings do not leak into fields."""
        from reptool.common import Report

        report = Report("r.csv", "Net ID,Check-In Date\r\n1,2024-01-01\r\n")

        assert report.header_fields == ["Net ID", "Check-In Date"]
        assert report.first_data_line == "1,2024-01-01"

    def test_header_split_ignores_quotes(self):
        """Test that header fields are split on every comma."""
        from reptool.common import Report

        report = Report("r.csv", '"Last, First",Check-In Date')

        assert report.header_fields == ['"Last', ' First"', "Check-In Date"]

    def test_header_only(self):
        """Test a report without data rows."""
        from reptool.common import Report

        report = Report("r.csv", "Net ID,Check-In Date")

        assert report.first_data_line is None
        assert report.data_lines == []
