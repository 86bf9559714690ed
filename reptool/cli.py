#!/usr/bin/env python3
"""Command-line entry point for reptool.

Usage: reptool <command> <target>

The only command is "merge", which combines every check-in report CSV in the
target directory into MERGED.csv. Arguments are parsed once into a
CommandArgs struct and handed to the merge engine explicitly.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Final, NoReturn

from .common import (
    APP_NAME,
    OUTPUT_FILENAME,
    ArgumentError,
    ReptoolError,
    get_version,
)
from .merge_reports import MergeResult, merge_directory

COMMANDS: Final[tuple[str, ...]] = ("merge",)

LOG_FORMAT: Final = "%(asctime)s | %(levelname)-7s | %(message)s"
LOG_DATE_FORMAT: Final = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class CommandArgs:
    """Parsed command line."""

    command: str
    target: Path | None
    verbose: bool = False


class ReptoolArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ArgumentError instead of exiting with code 2."""

    def error(self, message: str) -> NoReturn:
        raise ArgumentError(message)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = ReptoolArgumentParser(
        prog=APP_NAME,
        description="Manage check-in reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available commands: {", ".join(COMMANDS)}

Examples:
  # Merge every report CSV in a folder into {OUTPUT_FILENAME}
  %(prog)s merge ~/Desktop/Reports

  # Same, with debug logging
  %(prog)s -v merge ~/Desktop/Reports

This software is distributed under the MIT license with no warranty.
""",
    )

    parser.add_argument(
        "command",
        nargs="?",
        metavar="COMMAND",
        help=f"command to run ({', '.join(COMMANDS)})",
    )

    parser.add_argument(
        "target",
        nargs="?",
        type=Path,
        metavar="TARGET",
        help="directory containing report CSV files",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="enable debug logging",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}",
    )

    return parser


def parse_args(
    parser: argparse.ArgumentParser, argv: list[str] | None = None
) -> CommandArgs:
    """Parse and validate the command line.

    Args:
        parser: Parser from create_parser()
        argv: Arguments without the program name (default: sys.argv[1:])

    Returns:
        CommandArgs

    Raises:
        ArgumentError: If the command is missing or unknown
    """
    args = parser.parse_args(argv)

    if not args.command:
        raise ArgumentError("Missing command argument")

    if args.command not in COMMANDS:
        raise ArgumentError(f"No such {APP_NAME} command: {args.command}")

    return CommandArgs(command=args.command, target=args.target, verbose=args.verbose)


def setup_logging(verbose: bool) -> logging.Logger:
    """Send reptool log records to stderr.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger(APP_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(handler)

    return logger


def print_merge_summary(result: MergeResult) -> None:
    """Print per-report record counts and the output location."""
    names = [Path(report.source_id).name for report in result.reports]
    max_name_width = max(len(name) for name in names)

    for name, count in zip(names, result.record_counts):
        print(f"✓ {name:<{max_name_width}}  {count:>6,} record(s)")

    for source_id in result.skipped_files:
        print(f"⚠ Skipped: {Path(source_id).name}")

    print()
    print(f"Total: {result.total_records:,} record(s)")
    print(f"Reference header: {names[0]}")
    print(f"Output: {result.output_path}")


def cmd_merge(args: CommandArgs) -> int:
    """Run the merge command."""
    if args.target is None:
        raise ArgumentError("Missing target path argument for merge command")

    result = merge_directory(args.target)
    print_merge_summary(result)
    return 0


def execute_command(args: CommandArgs) -> int:
    """Dispatch to the command handler."""
    if args.command == "merge":
        return cmd_merge(args)
    raise ArgumentError(f"No such {APP_NAME} command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Main execution flow."""
    parser = create_parser()

    print(f"{APP_NAME} (v {get_version()})")
    start_time = time.perf_counter()

    try:
        args = parse_args(parser, argv)
        setup_logging(args.verbose)
        return execute_command(args)
    except ArgumentError as e:
        parser.print_help()
        print(f"✗ Error: {e}", file=sys.stderr)
        return 1
    except ReptoolError as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        return 1
    finally:
        elapsed = time.perf_counter() - start_time
        print(f"Execution time: {elapsed:.2f} seconds")


if __name__ == "__main__":
    sys.exit(main())
