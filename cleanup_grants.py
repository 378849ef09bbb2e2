#!/usr/bin/env python3
"""
Expired grants cleanup - run the sync job's cleanup stage on its own.

Deletes grants whose close date is more than --grace-days in the past.
Grants without a close date are never deleted.

Usage:
    python cleanup_grants.py
    python cleanup_grants.py --grace-days 0
"""

import argparse
import sys
from pathlib import Path

# Add project root to path when run from a checkout
sys.path.insert(0, str(Path(__file__).parent))

import pymysql
from rich.console import Console
from rich.markup import escape

from grantsync.config import get_log_level
from grantsync.constants import EXPIRED_GRACE_DAYS
from grantsync.db import GrantRepository, close_connection
from grantsync.errors import GrantSyncError
from grantsync.services.sync_service import GrantsSyncService
from grantsync.utils.logger import PipelineLogger

console = Console()


def main():
    parser = argparse.ArgumentParser(description="Delete grants whose close date has passed")
    parser.add_argument(
        "--grace-days",
        type=int,
        default=EXPIRED_GRACE_DAYS,
        help=f"Keep grants this many days after closing (default {EXPIRED_GRACE_DAYS})",
    )
    args = parser.parse_args()
    if args.grace_days < 0:
        parser.error("--grace-days must be >= 0")

    logger = PipelineLogger(log_level=get_log_level(), phase="Cleanup")
    grant_repo = GrantRepository()
    service = GrantsSyncService(grant_repo=grant_repo, logger=logger, grace_days=args.grace_days)

    try:
        before = grant_repo.get_statistics()
        console.print("\n[bold]BEFORE CLEANUP[/bold]")
        console.print(f"  Total grants: {before.total:,}")
        console.print(f"  Active grants: {before.active:,}")
        console.print(f"  Expired grants: {before.expired:,}")

        deleted = service.cleanup_expired_grants()

        after = grant_repo.get_statistics()
    except (GrantSyncError, pymysql.Error) as e:
        console.print(f"\n[bold red]CLEANUP FAILED:[/bold red] {escape(str(e))}")
        sys.exit(1)
    finally:
        close_connection()

    console.print(f"\n[green]Deleted {deleted:,} expired grants[/green]")
    console.print("\n[bold]AFTER CLEANUP[/bold]")
    console.print(f"  Total grants: {after.total:,}")
    console.print(f"  Active grants: {after.active:,}")
    sys.exit(0)


if __name__ == "__main__":
    main()
