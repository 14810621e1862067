#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from catalogsync.app import SyncCategoryParams, sync_category
from catalogsync.config import configure_logging
from catalogsync.domain.model import Category
from catalogsync.domain.schema import get_schema

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from catalogsync.domain.batch import SyncReport


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync one page of every catalog category")
    parser.add_argument(
        "--page-size",
        type=int,
        help="Number of themes or items to process per category (defaults to config)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        help="Attempts per fetch or write before giving up (defaults to config)",
    )
    args = parser.parse_args(list(argv))
    for name in ("page_size", "max_attempts"):
        value = getattr(args, name)
        if value is not None and value < 1:
            raise ValueError(f"--{name.replace('_', '-')} must be at least 1")
    return args


def _syncable_categories() -> list[Category]:
    return [category for category in Category if not get_schema(category).is_attachment]


def _summary(report: SyncReport) -> str:
    counts = report.counts or {}
    parts = [f"{status}={count}" for status, count in sorted(counts.items())]
    if report.page is not None:
        parts.append(f"next_offset={report.page.next_offset}")
    return ", ".join(parts) or "nothing to do"


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    try:
        parsed_args = _parse_args(argv if argv is not None else sys.argv[1:])
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging()
    try:
        for category in _syncable_categories():
            report = sync_category(
                SyncCategoryParams(
                    category=category,
                    page_size=parsed_args.page_size,
                    max_attempts=parsed_args.max_attempts,
                )
            )
            print(f"{category}: {_summary(report)}")

    except Exception as e:  # noqa: BLE001
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
