#!/usr/bin/env python3
"""
Grants sync - ingest the newest grants.gov XML extract into the grants table.

Run on a schedule (cron, Cloud Scheduler, ...). Each run processes at most one
new extract file; completed files are never processed twice, failed ones are
retried on the next run.

Nonprofit eligibility filter:
  - Government-only grants excluded
  - 501(c)(3) eligible grants included
  - Expired grants removed (close date before yesterday)

Usage:
    python sync_grants.py
    python sync_grants.py --log-file sync.log --log-level DEBUG
    python sync_grants.py --json   # machine-readable result on stdout
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path when run from a checkout
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console
from rich.markup import escape

from grantsync.config import get_log_dir, get_log_level
from grantsync.db import close_connection
from grantsync.services.sync_service import GrantsSyncService
from grantsync.utils.logger import PipelineLogger

console = Console()


def print_summary(result) -> None:
    if result.success:
        console.print("\n[bold green]SYNC COMPLETED SUCCESSFULLY[/bold green]")
    else:
        console.print("\n[bold red]SYNC FAILED[/bold red]")
    console.print("=" * 60)
    console.print("Sync Results:")
    console.print(f"  File Name: {result.file_name or 'N/A'}")
    console.print(f"  File Size: {result.file_size or 'N/A'}")
    console.print(f"  Extracted Date: {result.extracted_date.isoformat() if result.extracted_date else 'N/A'}")
    console.print(f"  Records Processed: {result.records_processed:,}")
    console.print(f"  Records Deleted: {result.records_deleted:,}")
    console.print(f"  Government-only Excluded: {result.records_excluded:,}")
    if result.error_message:
        style = "red" if not result.success else "yellow"
        console.print(f"  Message: [{style}]{escape(result.error_message)}[/{style}]")
    console.print("=" * 60)


def main():
    parser = argparse.ArgumentParser(description="Sync grants from the grants.gov XML extract")
    parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-file", type=str, default=None, help="Also log to this file (under logs/)")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    args = parser.parse_args()

    logger = PipelineLogger(
        log_level=args.log_level or get_log_level(),
        log_file=args.log_file,
        log_dir=get_log_dir(),
        phase="Sync",
    )

    started_at = datetime.now()
    service = GrantsSyncService(logger=logger)
    try:
        result = service.sync()
    finally:
        service.collector.close()
        close_connection()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_summary(result)
        summary = logger.get_error_summary()
        console.print(
            f"[dim]Started {started_at.isoformat(timespec='seconds')}, "
            f"{summary['total_warnings']} warnings, {summary['total_errors']} errors[/dim]"
        )

    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
