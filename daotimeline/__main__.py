"""Command-line entry for daotimeline.

Fetches the configured sources once and prints the day-grouped timeline as
JSON; optionally exports one event as an .ics file.
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_timeline


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the daotimeline CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="daotimeline",
        description="DAO Timeline - unified calendar, governance and milestone timeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m daotimeline                              # Upcoming events from all sources
  python -m daotimeline --source main-calendar       # Only one source
  python -m daotimeline --export main-calendar-abc   # Also write the event as .ics
        """,
    )

    parser.add_argument("--env-file", metavar="PATH", help="Path to .env file (default: ./.env)")
    parser.add_argument(
        "--source",
        dest="sources",
        action="append",
        metavar="ID",
        help="Only include events from this source id (repeatable)",
    )
    parser.add_argument("--include-past", action="store_true", help="Keep events before today")
    parser.add_argument("--export", metavar="EVENT_ID", help="Write this event as an .ics file")
    parser.add_argument(
        "--output-dir", metavar="DIR", default=".", help="Directory for --export (default: .)"
    )
    parser.add_argument(
        "--strict", action="store_true", help="Fail on invalid configuration instead of using defaults"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Run the daotimeline CLI."""
    args = _create_parser().parse_args(argv)
    sys.exit(run_timeline(args))


if __name__ == "__main__":
    main()
