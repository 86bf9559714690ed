#!/usr/bin/env python3
"""Shared utilities and data structures for reptool.

This module contains the constants, exceptions, and dataclasses used by the
merge engine and the command-line interface, together with the two parsing
primitives everything else builds on: the quote-aware CSV line splitter and
the check-in date parser.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import Final

# ============================================================================
# Constants
# ============================================================================

APP_NAME: Final = "reptool"

# Merged report written into the target directory (never read back as input)
OUTPUT_FILENAME: Final = "MERGED.csv"

# Substring a file name must contain to be treated as a report
CSV_MARKER: Final = ".csv"

# Column used to order reports by recency
CHECK_IN_DATE_HEADER: Final = "Check-In Date"

# Accepted non-ISO date layouts, tried in order after ISO 8601
DATE_FORMATS: Final[tuple[str, ...]] = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %I:%M:%S %p",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d, %Y %I:%M %p",
    "%B %d, %Y %I:%M %p",
)


# ============================================================================
# Exceptions
# ============================================================================


class ReptoolError(Exception):
    """Fatal error that aborts a reptool run."""

    pass


class ArgumentError(ReptoolError):
    """Missing or unknown command, or missing target."""

    pass


class TargetError(ReptoolError):
    """Target path does not exist or is not a directory."""

    pass


class ReportIOError(ReptoolError):
    """Directory listing, report read, or output write failed."""

    pass


class SchemaError(ReptoolError):
    """No usable reports, or no reference header could be derived."""

    pass


class MalformedRowError(ReptoolError):
    """Data row is shorter than a column it must be translated from."""

    pass


# ============================================================================
# Dataclasses
# ============================================================================


@dataclass(frozen=True)
class Report:
    """One input CSV file: where it came from and its full text.

    Lines are the raw text split on newlines, with a single trailing carriage
    return removed from each so CRLF exports behave like LF ones.
    """

    source_id: str
    raw_text: str

    @property
    def lines(self) -> list[str]:
        return [line.removesuffix("\r") for line in self.raw_text.split("\n")]

    @property
    def header_line(self) -> str:
        return self.lines[0]

    @property
    def header_fields(self) -> list[str]:
        """Header split on commas (no quote handling, duplicates kept)."""
        return self.header_line.split(",")

    @property
    def first_data_line(self) -> str | None:
        lines = self.lines
        return lines[1] if len(lines) > 1 else None

    @property
    def data_lines(self) -> list[str]:
        return self.lines[1:]


# ============================================================================
# CSV Line Parsing
# ============================================================================


def _scan_csv_line(line: str) -> tuple[list[str], bool]:
    """Split a CSV line and report whether it ended inside quotes."""
    fields: list[str] = []
    field: list[str] = []
    in_quotes = False
    i = 0

    while i < len(line):
        char = line[i]
        if char == '"' and in_quotes and line[i + 1 : i + 2] == '"':
            # Escaped quote
            field.append('"')
            i += 1
        elif char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(field))
            field = []
        else:
            field.append(char)
        i += 1

    fields.append("".join(field))
    return fields, in_quotes


def split_csv_line(line: str) -> list[str]:
    """Split one CSV record into fields, honouring double quotes.

    Quotes delimit fields that may contain commas and are not part of the
    value; a doubled quote inside a quoted field stands for one literal quote.
    The last field is always emitted, so a trailing comma yields a trailing
    empty field. An unterminated quote is tolerated: the rest of the line
    becomes part of the last field.

    Args:
        line: One line of CSV text, without its line terminator

    Returns:
        List of field values

    Examples:
        >>> split_csv_line('1,"Smith, J",x')
        ['1', 'Smith, J', 'x']
        >>> split_csv_line('"a ""b"" c",d')
        ['a "b" c', 'd']
        >>> split_csv_line('a,')
        ['a', '']
    """
    fields, _ = _scan_csv_line(line)
    return fields


def has_unterminated_quote(line: str) -> bool:
    """Check if a CSV line ends while still inside a quoted field.

    Args:
        line: One line of CSV text

    Returns:
        True if the quotes in the line are unbalanced
    """
    _, in_quotes = _scan_csv_line(line)
    return in_quotes


# ============================================================================
# Date Parsing
# ============================================================================


def parse_check_in_date(date_str: str) -> datetime | None:
    """Parse a check-in date as found in report exports.

    Handles:
    - ISO 8601: "2024-06-01", "2024-06-01T14:30:00", "2024-06-01 14:30:00Z"
    - US exports: "06/01/2024", "06/01/2024 2:30 PM", "06/01/2024 14:30"
    - "2024/06/01", "2024-6-1", "Jun 1, 2024", "June 1, 2024"

    Values carrying a UTC offset are converted to naive UTC so every parsed
    date is comparable with every other.

    Args:
        date_str: Date string with quotes already removed

    Returns:
        Parsed datetime or None if parsing fails

    Examples:
        >>> parse_check_in_date("2024-06-01")
        datetime(2024, 6, 1, 0, 0)
        >>> parse_check_in_date("06/01/2024 2:30 PM")
        datetime(2024, 6, 1, 14, 30)
        >>> parse_check_in_date("yesterday")
        None
    """
    if not date_str or not date_str.strip():
        return None

    date_str = date_str.strip()

    parsed = None
    try:
        parsed = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
    except ValueError:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(date_str, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# ============================================================================
# Version
# ============================================================================


def get_version() -> str:
    """Return the installed reptool version, or "unknown" from a source tree."""
    try:
        return version(APP_NAME)
    except PackageNotFoundError:
        return "unknown"
