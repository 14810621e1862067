from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from catalogsync.app import (
    RefreshListingsParams,
    SyncCategoryParams,
    refresh_listings,
    sync_category,
)
from catalogsync.config import ConfigurationError, configure_logging
from catalogsync.domain.model import Category, ListingKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Not an integer: {value}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"Must be at least 1: {value}")
    return parsed


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise the customization catalog")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Reconcile one page of a catalog category")
    sync.add_argument(
        "category",
        choices=[category.value for category in Category],
        help="Catalog category to reconcile",
    )
    sync.add_argument(
        "--page-size",
        type=_positive_int,
        default=None,
        help="Number of themes or items to process in this run (defaults to config)",
    )
    sync.add_argument(
        "--max-attempts",
        type=_positive_int,
        default=None,
        help="Attempts per fetch or write before giving up (defaults to config)",
    )
    sync.add_argument(
        "--group",
        dest="groups",
        action="append",
        default=[],
        help="Only reconcile this option group; repeat for several, use Kits for kits",
    )
    sync.add_argument(
        "--cores-only",
        action="store_true",
        help="Reconcile the category's cores and stop",
    )
    sync.add_argument(
        "--force-check",
        action="store_true",
        help="Diff items even when their freshness token is unchanged",
    )

    listings = subparsers.add_parser("listings", help="Refresh shop, pass or challenge listings")
    listings.add_argument(
        "kind",
        choices=[kind.value for kind in ListingKind],
        help="Listing source to refresh",
    )
    listings.add_argument(
        "--channel",
        type=str,
        help="Listing channel (defaults to the kind's main channel)",
    )
    listings.add_argument(
        "--max-attempts",
        type=_positive_int,
        default=None,
        help="Attempts per fetch or write before giving up (defaults to config)",
    )

    return parser.parse_args(list(argv))


def _run_sync(args: argparse.Namespace) -> None:
    report = sync_category(
        SyncCategoryParams(
            category=Category(args.category),
            groups=tuple(args.groups),
            cores_only=args.cores_only,
            page_size=args.page_size,
            max_attempts=args.max_attempts,
            force_check=args.force_check,
        )
    )
    counts = report.counts or {}
    log.info(
        "%s sync finished: %s",
        report.category,
        ", ".join(f"{status}={count}" for status, count in sorted(counts.items())) or "no changes",
    )
    if report.skipped_paths:
        log.warning("Skipped %s paths: %s", len(report.skipped_paths), report.skipped_paths)


def _run_listings(args: argparse.Namespace) -> None:
    report = refresh_listings(
        RefreshListingsParams(
            kind=ListingKind(args.kind),
            channel=args.channel,
            max_attempts=args.max_attempts,
        )
    )
    log.info(
        "%s listings on %s: %s became available, %s became unavailable",
        report.kind,
        report.channel,
        len(report.became_available),
        len(report.became_unavailable),
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "sync":
            _run_sync(parsed_args)
        elif parsed_args.command == "listings":
            _run_listings(parsed_args)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
