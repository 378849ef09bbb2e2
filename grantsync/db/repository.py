"""Data access repositories for the grants database.

Simple operations for the two tables the sync job touches:
- grants: destination store, keyed by opportunity_id
- grant_syncs: one audit row per extract file, keyed by file_name
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable

import pymysql

from ..constants import CLOSING_SOON_DAYS, SYNC_STATUS_COMPLETED, SYNC_STATUS_FAILED, SYNC_STATUSES
from ..validators.grant_validator import GrantData
from .client import execute_query, transaction

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in DATETIME columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass
class GrantStatistics:
    """Counts over the grants table."""

    total: int = 0
    active: int = 0  # is_active and close date null or not yet passed
    expired: int = 0  # close date already passed
    no_close_date: int = 0
    closing_soon: int = 0  # closes within CLOSING_SOON_DAYS


class GrantRepository:
    """grants table operations."""

    # Columns written by upsert, in statement order
    COLUMNS = [
        "opportunity_id",
        "opportunity_number",
        "title",
        "agency_code",
        "agency_name",
        "cfda_number",
        "posting_date",
        "close_date",
        "description",
        "eligibility_criteria",
        "eligible_applicants",
        "award_ceiling",
        "award_floor",
        "estimated_funding",
        "category",
        "funding_instrument",
        "is_active",
        "last_synced_at",
    ]

    UPSERT_SQL = f"""
        INSERT INTO grants ({", ".join(f"`{c}`" for c in COLUMNS)})
        VALUES ({", ".join(["%s"] * len(COLUMNS))})
        ON DUPLICATE KEY UPDATE {", ".join(f"`{c}` = VALUES(`{c}`)" for c in COLUMNS if c != "opportunity_id")}
    """

    def _row(self, grant: GrantData, synced_at: datetime) -> tuple:
        return (
            grant.opportunity_id,
            grant.opportunity_number,
            grant.title,
            grant.agency_code,
            grant.agency_name,
            grant.cfda_number,
            grant.posting_date,
            grant.close_date,
            grant.description,
            grant.eligibility_criteria,
            grant.eligible_applicants_text,
            grant.award_ceiling,
            grant.award_floor,
            grant.estimated_funding,
            grant.category,
            grant.funding_instrument,
            1,
            synced_at,
        )

    def upsert_batch(self, grants: Iterable[GrantData]) -> int:
        """Insert or update a batch of grants inside one transaction.

        A row the server rejects is logged and skipped; the rest of the batch
        still commits. A failure to begin or commit the transaction is raised
        and rolls the whole batch back.

        Returns:
            Number of rows written
        """
        synced_at = utcnow()
        written = 0
        with transaction() as cursor:
            for grant in grants:
                try:
                    cursor.execute(self.UPSERT_SQL, self._row(grant, synced_at))
                    written += 1
                except (pymysql.DataError, pymysql.IntegrityError) as e:
                    logger.warning(f"Failed to upsert grant {grant.opportunity_id}: {e}")
        return written

    def delete_expired(self, cutoff: datetime) -> int:
        """Delete grants whose close date is before the cutoff instant.

        MySQL compares the DATE column as midnight of that day, so with a
        cutoff of now - 1 day a grant that closed yesterday is deleted.
        Grants without a close date are never deleted.

        Returns:
            Number of rows deleted
        """
        return execute_query(
            "DELETE FROM grants WHERE close_date IS NOT NULL AND close_date < %s",
            (_to_naive_utc(cutoff),),
            fetch="rowcount",
        ) or 0

    def get_statistics(self, today: date | None = None) -> GrantStatistics:
        """Aggregate counts used by the status and health tools."""
        today = today or utcnow().date()
        soon = today + timedelta(days=CLOSING_SOON_DAYS)
        row = execute_query(
            """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(is_active = 1 AND (close_date IS NULL OR close_date >= %s)), 0) AS active,
                COALESCE(SUM(close_date IS NOT NULL AND close_date < %s), 0) AS expired,
                COALESCE(SUM(close_date IS NULL), 0) AS no_close_date,
                COALESCE(SUM(close_date >= %s AND close_date <= %s), 0) AS closing_soon
            FROM grants
            """,
            (today, today, today, soon),
            fetch="one",
        )
        if not row:
            return GrantStatistics()
        return GrantStatistics(**{k: int(v or 0) for k, v in row.items()})


class GrantSyncRepository:
    """grant_syncs table operations."""

    def upsert(
        self,
        file_name: str,
        extracted_date: datetime,
        file_size: str | None,
        status: str,
        records_processed: int | None = None,
        records_deleted: int | None = None,
        error_message: str | None = None,
    ) -> None:
        """Create the sync row for a file, or update its status, counts and error."""
        if status not in SYNC_STATUSES:
            raise ValueError(f"Unknown sync status: {status}")

        execute_query(
            """
            INSERT INTO grant_syncs
                (file_name, extracted_date, file_size, sync_status,
                 records_processed, records_deleted, error_message)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON DUPLICATE KEY UPDATE
                sync_status = VALUES(sync_status),
                records_processed = VALUES(records_processed),
                records_deleted = VALUES(records_deleted),
                error_message = VALUES(error_message),
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                file_name,
                _to_naive_utc(extracted_date),
                file_size,
                status,
                records_processed,
                records_deleted,
                error_message,
            ),
            fetch="none",
        )

    def get_completed_file_names(self) -> set[str]:
        """Names of files that have been fully processed."""
        rows = execute_query(
            "SELECT file_name FROM grant_syncs WHERE sync_status = %s",
            (SYNC_STATUS_COMPLETED,),
        ) or []
        return {row["file_name"] for row in rows}

    def get_latest_with_status(self, status: str) -> dict | None:
        """Most recently updated sync row with the given status."""
        return execute_query(
            "SELECT * FROM grant_syncs WHERE sync_status = %s ORDER BY updated_at DESC LIMIT 1",
            (status,),
            fetch="one",
        )

    def mark_failed(self, sync_id: int, error_message: str) -> None:
        execute_query(
            "UPDATE grant_syncs SET sync_status = %s, error_message = %s WHERE id = %s",
            (SYNC_STATUS_FAILED, error_message, sync_id),
            fetch="none",
        )

    def get_recent(self, limit: int = 10) -> list[dict]:
        """Sync history, newest first."""
        return execute_query(
            "SELECT * FROM grant_syncs ORDER BY created_at DESC LIMIT %s",
            (limit,),
        ) or []

    def get_latest(self) -> dict | None:
        rows = self.get_recent(limit=1)
        return rows[0] if rows else None
