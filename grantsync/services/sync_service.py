"""
Grants Sync Service - ingest the newest grants.gov XML extract.

Pipeline (sequential, one file per run):
1. Fetch the extract index page and parse the listed ZIP files
2. Pick the newest file not already marked completed in grant_syncs
3. Mark it processing, download the ZIP and extract the XML
4. Parse opportunities and drop government-only ones
5. Delete grants that closed more than the grace window ago
6. Upsert the parsed grants in batches (one transaction per batch)
7. Mark the file completed with counts

Any failure is logged and turned into a failed SyncResult; the file's sync
row is marked failed so the next scheduled run retries it.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pymysql

from ..collectors.grants_gov import GrantsGovCollector
from ..constants import (
    EXPIRED_GRACE_DAYS,
    MSG_NO_FILES,
    MSG_NO_NEW_FILES,
    MSG_SYNC_IN_PROGRESS,
    MSG_SYNC_TIMED_OUT,
    STALE_SYNC_MINUTES,
    SYNC_STATUS_COMPLETED,
    SYNC_STATUS_FAILED,
    SYNC_STATUS_PROCESSING,
    UPSERT_BATCH_SIZE,
)
from ..db.repository import GrantRepository, GrantSyncRepository
from ..errors import DatabaseError
from ..parsers.listing_parser import GrantFileInfo, parse_available_files, select_latest_unprocessed
from ..parsers.opportunity_parser import GrantsXmlParser
from ..utils.logger import PipelineLogger, get_logger
from ..validators.grant_validator import GrantData
from .eligibility_service import EligibilityService, get_eligibility_service


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncResult:
    """Outcome of one sync run."""

    success: bool
    records_processed: int = 0
    records_deleted: int = 0
    records_excluded: int = 0
    error_message: Optional[str] = None
    file_name: Optional[str] = None
    extracted_date: Optional[datetime] = None
    file_size: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.extracted_date is not None:
            data["extracted_date"] = self.extracted_date.isoformat()
        return data


class GrantsSyncService:
    """
    Orchestrates one grants.gov ingestion run.

    Example:
        service = GrantsSyncService()
        result = service.sync()
        print(result.success, result.records_processed)
    """

    def __init__(
        self,
        collector: Optional[GrantsGovCollector] = None,
        grant_repo: Optional[GrantRepository] = None,
        sync_repo: Optional[GrantSyncRepository] = None,
        parser: Optional[GrantsXmlParser] = None,
        eligibility: Optional[EligibilityService] = None,
        logger: Optional[PipelineLogger] = None,
        batch_size: int = UPSERT_BATCH_SIZE,
        grace_days: int = EXPIRED_GRACE_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the sync service.

        Args:
            collector: grants.gov HTTP collector
            grant_repo: grants table repository
            sync_repo: grant_syncs table repository
            parser: Extract XML parser
            eligibility: Government-only filter
            logger: Logger instance (default: shared pipeline logger)
            batch_size: Grants per upsert transaction (default 100)
            grace_days: Days a grant is kept after its close date (default 1)
            clock: Returns the current aware UTC datetime (tests pin it)
        """
        self.logger = logger or get_logger(phase="Sync")
        self.collector = collector or GrantsGovCollector(logger=self.logger)
        self.grant_repo = grant_repo or GrantRepository()
        self.sync_repo = sync_repo or GrantSyncRepository()
        self.parser = parser or GrantsXmlParser(logger=self.logger)
        self.eligibility = eligibility or get_eligibility_service()
        self.batch_size = batch_size
        self.grace_days = grace_days
        self.clock = clock

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def fetch_available_files(self) -> List[GrantFileInfo]:
        """Fetch the index page and return listed files, newest first."""
        html = self.collector.fetch_listing()
        files = parse_available_files(html)
        self.logger.info(f"Files found: {len(files)}")
        return files

    def get_latest_unprocessed_file(self, files: List[GrantFileInfo]) -> Optional[GrantFileInfo]:
        """Newest listed file whose sync record is not completed."""
        if not files:
            return None
        try:
            completed = self.sync_repo.get_completed_file_names()
        except pymysql.Error as e:
            raise DatabaseError(f"Failed to find unprocessed file: {e}") from e
        return select_latest_unprocessed(files, completed)

    def check_active_sync(self) -> Optional[SyncResult]:
        """
        Guard against overlapping runs.

        Returns:
            A failed SyncResult if another run is still in progress, else None.
            A processing row not updated for STALE_SYNC_MINUTES is marked failed.
            Timestamps are UTC (the client pins the session time zone).
        """
        try:
            active = self.sync_repo.get_latest_with_status(SYNC_STATUS_PROCESSING)
            if not active:
                return None

            # updated_at moves when a failed file is retried; created_at does not
            started_at = active.get("updated_at") or active["created_at"]
            if started_at.tzinfo is None:
                started_at = started_at.replace(tzinfo=timezone.utc)
            elapsed = self.clock() - started_at

            if elapsed < timedelta(minutes=STALE_SYNC_MINUTES):
                self.logger.warning(
                    MSG_SYNC_IN_PROGRESS,
                    file=active["file_name"],
                    elapsed_minutes=round(elapsed.total_seconds() / 60),
                )
                return SyncResult(
                    success=False,
                    error_message=MSG_SYNC_IN_PROGRESS,
                    file_name=active["file_name"],
                )

            self.logger.warning("Marking stale sync as failed", file=active["file_name"])
            self.sync_repo.mark_failed(active["id"], MSG_SYNC_TIMED_OUT)
            return None
        except pymysql.Error as e:
            raise DatabaseError(f"Failed to check for active sync: {e}") from e

    def expiry_cutoff(self) -> datetime:
        """Grants whose close date falls before this instant (now - grace window) are expired."""
        return self.clock() - timedelta(days=self.grace_days)

    def cleanup_expired_grants(self) -> int:
        """Delete grants with a close date older than the grace window."""
        cutoff = self.expiry_cutoff()
        self.logger.info(f"Cleaning up grants with close_date < {cutoff.isoformat()}")
        try:
            deleted = self.grant_repo.delete_expired(cutoff)
        except pymysql.Error as e:
            raise DatabaseError(f"Failed to cleanup expired grants: {e}") from e
        self.logger.info(f"Deleted {deleted} expired grants")
        return deleted

    def upsert_grants(self, grants: List[GrantData]) -> int:
        """
        Upsert grants in fixed-size batches, one transaction per batch.

        A failed batch is raised; batches committed before it stay committed.

        Returns:
            Number of grants written
        """
        processed = 0
        total_batches = (len(grants) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(grants), self.batch_size):
            batch = grants[start : start + self.batch_size]
            batch_number = start // self.batch_size + 1
            self.logger.info(f"Processing batch {batch_number}/{total_batches}", grants=len(batch))
            try:
                processed += self.grant_repo.upsert_batch(batch)
            except pymysql.Error as e:
                raise DatabaseError(
                    f"Failed to upsert grants: batch {batch_number}/{total_batches} failed "
                    f"after {processed} records: {e}"
                ) from e

        self.logger.info(f"Successfully processed {processed} grant records")
        return processed

    def record_sync(
        self,
        file_info: GrantFileInfo,
        status: str,
        records_processed: Optional[int] = None,
        records_deleted: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Create or update the sync row for a file."""
        try:
            self.sync_repo.upsert(
                file_name=file_info.file_name,
                extracted_date=file_info.extracted_date,
                file_size=file_info.file_size,
                status=status,
                records_processed=records_processed,
                records_deleted=records_deleted,
                error_message=error_message,
            )
        except pymysql.Error as e:
            raise DatabaseError(f"Failed to create sync record: {e}") from e

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def _process_file(self, file_info: GrantFileInfo) -> SyncResult:
        with self.logger.time_stage("download", file=file_info.file_name):
            xml_content = self.collector.download_and_extract(file_info.file_name)

        with self.logger.time_stage("parse", file=file_info.file_name):
            parsed = self.parser.parse(xml_content)
            grants, excluded = self.eligibility.filter(parsed)
        self.logger.info(
            "Eligibility filter applied",
            parsed=len(parsed),
            kept=len(grants),
            government_only=len(excluded),
        )

        with self.logger.time_stage("cleanup"):
            deleted = self.cleanup_expired_grants()

        with self.logger.time_stage("upsert", grants=len(grants)):
            processed = self.upsert_grants(grants)

        self.record_sync(
            file_info,
            SYNC_STATUS_COMPLETED,
            records_processed=processed,
            records_deleted=deleted,
        )

        return SyncResult(
            success=True,
            records_processed=processed,
            records_deleted=deleted,
            records_excluded=len(excluded),
            file_name=file_info.file_name,
            extracted_date=file_info.extracted_date,
            file_size=file_info.file_size,
        )

    def sync(self) -> SyncResult:
        """
        Run one sync.

        Never raises for pipeline failures; they come back as success=False.
        """
        started = self.clock()
        self.logger.log_sync_start(self.collector.listing_url)
        current: Optional[GrantFileInfo] = None

        try:
            busy = self.check_active_sync()
            if busy is not None:
                return busy

            files = self.fetch_available_files()
            if not files:
                return SyncResult(success=True, error_message=MSG_NO_FILES)

            latest = self.get_latest_unprocessed_file(files)
            if latest is None:
                self.logger.info(MSG_NO_NEW_FILES)
                return SyncResult(success=True, error_message=MSG_NO_NEW_FILES)

            self.logger.info(f"Processing file: {latest.file_name}", size=latest.file_size)
            self.record_sync(latest, SYNC_STATUS_PROCESSING)
            current = latest

            result = self._process_file(latest)
            self.logger.log_sync_complete(
                success=True,
                records_processed=result.records_processed,
                records_deleted=result.records_deleted,
                duration_seconds=(self.clock() - started).total_seconds(),
                file_name=latest.file_name,
            )
            return result

        except Exception as e:
            error_message = str(e) or type(e).__name__
            self.logger.error(
                "Grants sync failed",
                exception=e,
                file=current.file_name if current else "unknown",
            )

            if current is not None:
                try:
                    self.record_sync(current, SYNC_STATUS_FAILED, error_message=error_message)
                except DatabaseError as db_error:
                    self.logger.error("Failed to update sync record with error", exception=db_error)

            return SyncResult(
                success=False,
                error_message=error_message,
                file_name=current.file_name if current else None,
                extracted_date=current.extracted_date if current else None,
                file_size=current.file_size if current else None,
            )
