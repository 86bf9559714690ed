#!/usr/bin/env python3
"""Merge check-in report CSV files from a directory into MERGED.csv.

The pipeline:
- Discover every *.csv file in the target directory (except MERGED.csv)
- Read all of them in parallel and drop reports without a Check-In Date column
- Sort reports by the Check-In Date of their first data row (newest first)
- Take the newest report's header as the reference schema
- Remap every report's rows onto the reference schema and concatenate
- Write the reference header plus all rows to MERGED.csv
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .common import (
    CHECK_IN_DATE_HEADER,
    CSV_MARKER,
    OUTPUT_FILENAME,
    MalformedRowError,
    Report,
    ReportIOError,
    SchemaError,
    TargetError,
    has_unterminated_quote,
    parse_check_in_date,
    split_csv_line,
)

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Summary of a completed merge."""

    output_path: Path
    reports: list[Report]
    reference_header: str
    record_counts: list[int]
    skipped_files: list[str] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return sum(self.record_counts)


# ============================================================================
# Report Loading
# ============================================================================


def list_candidate_files(directory: Path) -> list[Path]:
    """List report files in a directory.

    Keeps regular files whose name contains ".csv" and skips any file named
    like the merged output, so a previous run's result is never merged again.

    Args:
        directory: Directory to scan

    Returns:
        Candidate paths sorted by file name

    Raises:
        ReportIOError: If the directory cannot be listed
    """
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise ReportIOError(f"Cannot list directory {directory}: {e}") from e

    candidates = []
    for path in entries:
        if not path.is_file() or CSV_MARKER not in path.name:
            continue
        if OUTPUT_FILENAME in path.name:
            logger.info(f"Omitting existing output file from input: {path}")
            continue
        candidates.append(path)

    return candidates


def _read_report(path: Path) -> Report:
    try:
        # utf-8-sig drops the BOM spreadsheet exports like to add
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ReportIOError(f"Cannot read {path}: {e}") from e
    return Report(source_id=str(path), raw_text=text)


def read_reports(paths: list[Path]) -> list[Report]:
    """Read every file in parallel and wait for all of them.

    Args:
        paths: Files to read

    Returns:
        Reports in the same order as paths

    Raises:
        ReportIOError: If any single file cannot be read
    """
    if not paths:
        return []

    with ThreadPoolExecutor() as executor:
        return list(executor.map(_read_report, paths))


def has_check_in_header(report: Report) -> bool:
    """Check if the raw header tokens contain the Check-In Date column."""
    return CHECK_IN_DATE_HEADER in report.header_fields


def load_reports(directory: Path) -> tuple[list[Report], list[str]]:
    """Discover, read, and filter the reports in a directory.

    Args:
        directory: Directory containing report CSV files

    Returns:
        Tuple of (usable reports in file name order, skipped source ids)

    Raises:
        ReportIOError: If listing or reading fails
        SchemaError: If no CSV files exist or none has a Check-In Date column
    """
    paths = list_candidate_files(directory)
    if not paths:
        raise SchemaError(f"No CSV files found in {directory}")

    logger.info(f"Found {len(paths)} CSV file(s) to process")

    reports = []
    skipped = []
    for report in read_reports(paths):
        if has_check_in_header(report):
            reports.append(report)
        else:
            logger.warning(
                f"Ignoring file without '{CHECK_IN_DATE_HEADER}' header: {report.source_id}"
            )
            skipped.append(report.source_id)

    if not reports:
        raise SchemaError(
            f"No report in {directory} has a '{CHECK_IN_DATE_HEADER}' column"
        )

    logger.info(f"Stored {len(reports)} report(s) with valid headers")
    return reports, skipped


# ============================================================================
# Recency Sorting
# ============================================================================


def report_check_in_date(report: Report) -> datetime | None:
    """Get the Check-In Date of a report's first data row.

    The column is looked up in the report's own header. Quotes are stripped
    from the value before parsing.

    Args:
        report: Report to inspect

    Returns:
        Parsed date, or None if the column, the first row, or a parseable
        value is missing
    """
    headers = report.header_fields
    if CHECK_IN_DATE_HEADER not in headers:
        return None
    date_index = headers.index(CHECK_IN_DATE_HEADER)

    first_line = report.first_data_line
    if first_line is None:
        return None

    fields = split_csv_line(first_line)
    if date_index >= len(fields):
        return None

    return parse_check_in_date(fields[date_index].replace('"', ""))


def check_in_sort_key(date: datetime | None) -> tuple[bool, datetime]:
    """Get sort key for a report date, meant for a descending sort.

    Missing dates sort after every real date.
    """
    if date is None:
        return (False, datetime.min)
    return (True, date)


def sort_reports_by_date(reports: list[Report]) -> None:
    """Sort reports in place by first-row Check-In Date, newest first.

    Reports without a usable date go after all dated reports. The sort is
    stable: reports with equal or unusable dates keep their relative order.

    Args:
        reports: Reports to reorder
    """
    dated = [(report_check_in_date(report), report) for report in reports]

    for date, report in dated:
        if date is None:
            logger.warning(
                f"No usable '{CHECK_IN_DATE_HEADER}' in first row of {report.source_id}, "
                "sorting it after dated reports"
            )

    # reverse=True keeps equal keys in their original order
    dated.sort(key=lambda item: check_in_sort_key(item[0]), reverse=True)
    reports[:] = [report for _, report in dated]


# ============================================================================
# Schema Reconciliation and Row Translation
# ============================================================================


def derive_reference_header(reports: list[Report]) -> tuple[str, list[str]]:
    """Take the reference header from the first (newest) report.

    Args:
        reports: Reports already sorted by recency

    Returns:
        Tuple of (verbatim header line, header fields)

    Raises:
        SchemaError: If there is no report or its header line is empty
    """
    if not reports:
        raise SchemaError("Could not determine reference header fields: no reports")

    header_line = reports[0].header_line
    if not header_line:
        raise SchemaError(
            f"Could not determine reference header fields: empty header in {reports[0].source_id}"
        )

    return header_line, header_line.split(",")


def build_translation_map(
    header_fields: list[str], reference_fields: list[str]
) -> dict[str, int]:
    """Map reference column names to their index in a report's own header.

    Only names present in the report are mapped; the first occurrence wins
    when a name is repeated.

    Args:
        header_fields: The report's header fields
        reference_fields: Reference schema

    Returns:
        Dict of reference name -> source column index
    """
    translation = {}
    for name in reference_fields:
        if name in header_fields:
            translation[name] = header_fields.index(name)
    return translation


def translate_record(
    fields: list[str],
    reference_fields: list[str],
    translation: dict[str, int],
) -> str:
    """Render one parsed row in reference column order.

    Columns the report lacks are left empty. Values containing a comma are
    wrapped in double quotes. Every value, the last one included, is followed
    by a comma.

    Args:
        fields: Parsed source row
        reference_fields: Reference schema
        translation: Map from build_translation_map

    Returns:
        Output line

    Raises:
        MalformedRowError: If the row is too short for a mapped column

    Examples:
        >>> translate_record(["1", "Smith, J"], ["Name", "Id"], {"Id": 0, "Name": 1})
        '"Smith, J",1,'
    """
    parts = []
    for name in reference_fields:
        index = translation.get(name)
        if index is not None:
            if index >= len(fields):
                raise MalformedRowError(
                    f"Row has {len(fields)} field(s), column '{name}' expected at index {index}"
                )
            value = fields[index]
            if "," in value:
                value = f'"{value}"'
            parts.append(value)
        parts.append(",")
    return "".join(parts)


def translate_report(report: Report, reference_fields: list[str]) -> list[str]:
    """Translate all non-empty data lines of a report.

    Args:
        report: Report to translate
        reference_fields: Reference schema

    Returns:
        Output lines in the report's original row order

    Raises:
        MalformedRowError: If a row is too short for a mapped column
    """
    translation = build_translation_map(report.header_fields, reference_fields)

    records = []
    # Data lines start on line 2 of the file
    for line_num, line in enumerate(report.data_lines, 2):
        if not line:
            continue
        if has_unterminated_quote(line):
            logger.warning(f"Unterminated quote in {report.source_id} line {line_num}")
        try:
            records.append(
                translate_record(split_csv_line(line), reference_fields, translation)
            )
        except MalformedRowError as e:
            raise MalformedRowError(f"{report.source_id} line {line_num}: {e}") from e

    return records


def translate_reports(
    reports: list[Report], reference_fields: list[str]
) -> tuple[list[str], list[int]]:
    """Translate every report in order.

    Args:
        reports: Reports sorted by recency
        reference_fields: Reference schema

    Returns:
        Tuple of (all output lines, record count per report)
    """
    lines = []
    counts = []
    for i, report in enumerate(reports, 1):
        records = translate_report(report, reference_fields)
        lines.extend(records)
        counts.append(len(records))
        logger.debug(f"Processed {len(records)} record(s) from report {i}: {report.source_id}")
    return lines, counts


# ============================================================================
# Output
# ============================================================================


def build_output(reference_header_line: str, translated_lines: list[str]) -> str:
    """Join the verbatim reference header and translated lines with newlines."""
    return "\n".join([reference_header_line, *translated_lines])


def write_merged_report(output_path: Path, content: str) -> None:
    """Write the merged report, replacing any existing file.

    Args:
        output_path: Path for output file
        content: Full file content

    Raises:
        ReportIOError: If the file cannot be written
    """
    try:
        with output_path.open("w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        raise ReportIOError(f"Cannot write {output_path}: {e}") from e


# ============================================================================
# Pipeline
# ============================================================================


def merge_directory(target: Path) -> MergeResult:
    """Merge every report in a directory into MERGED.csv in that directory.

    Args:
        target: Directory containing report CSV files

    Returns:
        MergeResult describing what was merged

    Raises:
        TargetError: If target is missing or not a directory
        ReportIOError: If reading or writing fails
        SchemaError: If no usable report is found
        MalformedRowError: If a row cannot be translated
    """
    if not target.exists():
        raise TargetError(f"Target {target} does not exist")
    if not target.is_dir():
        raise TargetError(f"Target {target} is not a directory")

    reports, skipped = load_reports(target)

    sort_reports_by_date(reports)
    logger.info("Reports sorted by most recent check-in date")

    reference_header, reference_fields = derive_reference_header(reports)
    logger.info(f"Reference header taken from {reports[0].source_id}")
    logger.debug(f"Reference fields: {reference_fields}")

    lines, counts = translate_reports(reports, reference_fields)

    output_path = target / OUTPUT_FILENAME
    write_merged_report(output_path, build_output(reference_header, lines))
    logger.info(f"Merged report saved to: {output_path}")

    return MergeResult(
        output_path=output_path,
        reports=reports,
        reference_header=reference_header,
        record_counts=counts,
        skipped_files=skipped,
    )
