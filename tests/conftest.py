"""Shared fixtures for grantsync tests.

Note: Tests never touch a real database or grants.gov. Repositories are
replaced by the in-memory fakes below, which follow the same contracts as
grantsync.db.repository (upsert by key, delete by cutoff).
"""

import io
import sys
import zipfile
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pymysql
import pytest

# Add project root to path so tests can import grantsync from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from grantsync.collectors.grants_gov import extract_xml_from_zip  # noqa: E402
from grantsync.constants import SYNC_STATUS_COMPLETED, SYNC_STATUS_FAILED  # noqa: E402
from grantsync.db.repository import GrantStatistics  # noqa: E402
from grantsync.utils.logger import PipelineLogger  # noqa: E402

FIXED_NOW = datetime(2025, 9, 20, 12, 0, 0, tzinfo=timezone.utc)

NS = "http://apply.grants.gov/system/OpportunityDetail-V1.0"


# ─── Builders ──────────────────────────────────────────────────────────────────


def listing_row(file_name: str, size: str, extracted: str) -> str:
    """One row of the grants.gov extract table."""
    return (
        f'<tr><td><a class="usa-link" href="https://prod-grants-gov-chatbot.s3.amazonaws.com/extracts/{file_name}">'
        f"{file_name}</a></td><td>{size}</td><td>{extracted}</td></tr>"
    )


def listing_page(*rows: str) -> str:
    return (
        "<html><body><table class='usa-table'><thead><tr><th>File</th><th>Size</th><th>Date</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table></body></html>"
    )


def synopsis(
    opportunity_id: str,
    title: str = "Community Health Grant",
    close_date: Optional[str] = "12312099",
    eligibility: Optional[str] = None,
    applicants: Iterable[str] = ("12",),
    **extra: str,
) -> str:
    """One <OpportunitySynopsisDetail_1_0> element."""
    parts = [f"<OpportunityID>{opportunity_id}</OpportunityID>"]
    if title is not None:
        parts.append(f"<OpportunityTitle>{title}</OpportunityTitle>")
    parts.append(f"<OpportunityNumber>HHS-{opportunity_id}</OpportunityNumber>")
    parts.append("<AgencyCode>HHS-CDC</AgencyCode>")
    parts.append("<PostDate>09012025</PostDate>")
    if close_date is not None:
        parts.append(f"<CloseDate>{close_date}</CloseDate>")
    for code in applicants:
        parts.append(f"<EligibleApplicants>{code}</EligibleApplicants>")
    if eligibility is not None:
        parts.append(f"<AdditionalInformationOnEligibility>{eligibility}</AdditionalInformationOnEligibility>")
    for tag, value in extra.items():
        parts.append(f"<{tag}>{value}</{tag}>")
    return f"<OpportunitySynopsisDetail_1_0>{''.join(parts)}</OpportunitySynopsisDetail_1_0>"


def extract_xml(*records: str) -> str:
    return f'<?xml version="1.0" encoding="UTF-8"?><Grants xmlns="{NS}">{"".join(records)}</Grants>'


def make_zip(entries: Dict[str, str]) -> bytes:
    """ZIP archive bytes holding the given name -> text entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


# ─── Fakes ────────────────────────────────────────────────────────────────────


class FakeCollector:
    """Stands in for GrantsGovCollector: serves a listing page and archives."""

    listing_url = "https://www.grants.gov/xml-extract"

    def __init__(self, listing_html: str = "", archives: Optional[Dict[str, bytes]] = None):
        self.listing_html = listing_html
        self.archives = archives or {}
        self.downloads: List[str] = []

    def fetch_listing(self) -> str:
        return self.listing_html

    def download_and_extract(self, file_name: str) -> str:
        self.downloads.append(file_name)
        return extract_xml_from_zip(self.archives[file_name])


class FakeGrantRepository:
    """In-memory grants table keyed by opportunity_id."""

    def __init__(self, fail_on_batch: Optional[int] = None):
        self.rows: Dict[str, dict] = {}
        self.batches: List[List[str]] = []
        self.fail_on_batch = fail_on_batch

    def upsert_batch(self, grants) -> int:
        batch = list(grants)
        if self.fail_on_batch is not None and len(self.batches) + 1 == self.fail_on_batch:
            raise pymysql.OperationalError(2013, "Lost connection to MySQL server during query")
        self.batches.append([g.opportunity_id for g in batch])
        for grant in batch:
            row = grant.model_dump()
            row["is_active"] = True
            self.rows[grant.opportunity_id] = row
        return len(batch)

    def delete_expired(self, cutoff: datetime) -> int:
        # MySQL compares a DATE against a DATETIME as midnight of that day
        expired = [
            k
            for k, r in self.rows.items()
            if r["close_date"] is not None
            and datetime.combine(r["close_date"], time.min, tzinfo=timezone.utc) < cutoff
        ]
        for key in expired:
            del self.rows[key]
        return len(expired)

    def get_statistics(self, today: Optional[date] = None) -> GrantStatistics:
        today = today or FIXED_NOW.date()
        rows = list(self.rows.values())
        return GrantStatistics(
            total=len(rows),
            active=sum(1 for r in rows if r["close_date"] is None or r["close_date"] >= today),
            expired=sum(1 for r in rows if r["close_date"] is not None and r["close_date"] < today),
            no_close_date=sum(1 for r in rows if r["close_date"] is None),
            closing_soon=0,
        )


class FakeGrantSyncRepository:
    """In-memory grant_syncs table keyed by file_name."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.rows: Dict[str, dict] = {}
        self.history: List[tuple] = []  # (file_name, status) in call order
        self.now = now
        self._next_id = 1

    def upsert(self, file_name, extracted_date, file_size, status, records_processed=None,
               records_deleted=None, error_message=None) -> None:
        self.history.append((file_name, status))
        row = self.rows.get(file_name)
        if row is None:
            row = {
                "id": self._next_id,
                "file_name": file_name,
                "extracted_date": extracted_date,
                "file_size": file_size,
                "created_at": self.now.replace(tzinfo=None),
            }
            self._next_id += 1
            self.rows[file_name] = row
        row.update(
            sync_status=status,
            updated_at=self.now.replace(tzinfo=None),
            records_processed=records_processed,
            records_deleted=records_deleted,
            error_message=error_message,
        )

    def add(self, file_name: str, status: str, created_at: datetime) -> dict:
        self.upsert(file_name, created_at, "1 MB", status)
        self.rows[file_name]["created_at"] = created_at.replace(tzinfo=None)
        self.rows[file_name]["updated_at"] = created_at.replace(tzinfo=None)
        return self.rows[file_name]

    def get_completed_file_names(self) -> set:
        return {name for name, r in self.rows.items() if r["sync_status"] == SYNC_STATUS_COMPLETED}

    def get_latest_with_status(self, status: str) -> Optional[dict]:
        matching = [r for r in self.rows.values() if r["sync_status"] == status]
        return max(matching, key=lambda r: r["updated_at"]) if matching else None

    def mark_failed(self, sync_id: int, error_message: str) -> None:
        for row in self.rows.values():
            if row["id"] == sync_id:
                row.update(
                    sync_status=SYNC_STATUS_FAILED,
                    error_message=error_message,
                    updated_at=self.now.replace(tzinfo=None),
                )

    def get_recent(self, limit: int = 10) -> List[dict]:
        return sorted(self.rows.values(), key=lambda r: r["created_at"], reverse=True)[:limit]

    def get_latest(self) -> Optional[dict]:
        recent = self.get_recent(1)
        return recent[0] if recent else None


# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def quiet_logger():
    """Pipeline logger that leaves the root logger alone."""
    return PipelineLogger(name="grantsync_test", log_level="WARNING", configure_root=False)


@pytest.fixture
def grant_repo():
    return FakeGrantRepository()


@pytest.fixture
def sync_repo():
    return FakeGrantSyncRepository()


@pytest.fixture
def sample_listing_html():
    """Two extracts, listed oldest first as on the live page."""
    return listing_page(
        listing_row("GrantsDBExtract20250912v2.zip", "83 MB", "Sep 12, 2025 04:38:55 AM EDT"),
        listing_row("GrantsDBExtract20250913v2.zip", "84 MB", "Sep 13, 2025 04:38:55 AM EDT"),
    )


@pytest.fixture
def sample_xml():
    return extract_xml(
        synopsis("1001", title="Youth Mentoring Program", applicants=("12", "13")),
        synopsis(
            "1002",
            title="State Highway Safety Formula Grant",
            applicants=("00",),
            eligibility="Eligibility is limited to State governments only.",
        ),
        synopsis("1003", title="Rural Clinic Expansion", close_date=None, applicants=("25",)),
    )
