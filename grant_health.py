#!/usr/bin/env python3
"""
Grant database health check and sync status.

Prints grant counts (total, active, expired, no close date, closing in 30
days), the last sync, recent sync history and a health verdict.

Usage:
    python grant_health.py
    python grant_health.py --history 25
    python grant_health.py --history 0   # counts only
"""

import argparse
import sys
from pathlib import Path

# Add project root to path when run from a checkout
sys.path.insert(0, str(Path(__file__).parent))

import pymysql
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from grantsync.constants import CLOSING_SOON_DAYS
from grantsync.db import close_connection
from grantsync.services.health_service import (
    HEALTH_EXCELLENT,
    HEALTH_GOOD,
    HEALTH_NEEDS_ATTENTION,
    HealthReport,
    HealthService,
)

console = Console()

VERDICT_STYLE = {
    HEALTH_EXCELLENT: "green",
    HEALTH_GOOD: "yellow",
    HEALTH_NEEDS_ATTENTION: "red",
}

VERDICT_TEXT = {
    HEALTH_EXCELLENT: "Database clean, plenty of grants",
    HEALTH_GOOD: "Database clean, consider running sync",
    HEALTH_NEEDS_ATTENTION: "Expired grants found - run cleanup_grants.py",
}


def _fmt(value) -> str:
    return "N/A" if value is None else escape(str(value))


def print_report(report: HealthReport) -> None:
    stats = report.statistics

    console.print("\n[bold]GRANT STATISTICS[/bold]")
    console.print(f"  Total Grants: {stats.total:,}")
    console.print(f"  Active Grants: {stats.active:,} ({report.active_percent:.1f}%)")
    expired_note = "[red]should be zero[/red]" if stats.expired else "[green]ok[/green]"
    console.print(f"  Expired Grants: {stats.expired:,} {expired_note}")
    console.print(f"  No Close Date: {stats.no_close_date:,}")
    console.print(f"  Closing in {CLOSING_SOON_DAYS} days: {stats.closing_soon:,}")

    last = report.last_sync or {}
    console.print("\n[bold]LAST SYNC[/bold]")
    console.print(f"  Date: {_fmt(last.get('created_at')) if last else 'Never'}")
    console.print(f"  File: {_fmt(last.get('file_name'))}")
    console.print(f"  Status: {_fmt(last.get('sync_status'))}")
    console.print(f"  Processed: {last.get('records_processed') or 0:,}")
    console.print(f"  Deleted: {last.get('records_deleted') or 0:,}")

    if report.history:
        table = Table(title="Sync History")
        table.add_column("Created")
        table.add_column("File")
        table.add_column("Status")
        table.add_column("Processed", justify="right")
        table.add_column("Deleted", justify="right")
        table.add_column("Error")
        for row in report.history:
            table.add_row(
                _fmt(row.get("created_at")),
                _fmt(row.get("file_name")),
                _fmt(row.get("sync_status")),
                _fmt(row.get("records_processed")),
                _fmt(row.get("records_deleted")),
                escape((row.get("error_message") or "")[:80]),
            )
        console.print()
        console.print(table)

    style = VERDICT_STYLE.get(report.verdict, "yellow")
    text = VERDICT_TEXT.get(report.verdict, "Consider running sync for more grants")
    console.print(f"\n[bold]HEALTH STATUS:[/bold] [{style}]{report.verdict}[/{style}] - {text}\n")


def main():
    parser = argparse.ArgumentParser(description="Grant database health check and sync history")
    parser.add_argument("--history", type=int, default=10, help="Number of recent syncs to show (default 10)")
    args = parser.parse_args()

    try:
        report = HealthService().report(history_limit=args.history)
    except pymysql.Error as e:
        console.print(f"[red]Health check failed: {escape(str(e))}[/red]")
        sys.exit(1)
    finally:
        close_connection()

    print_report(report)
    sys.exit(0)


if __name__ == "__main__":
    main()
