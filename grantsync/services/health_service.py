"""
Health Service - summarize the grants tables for operators.

Used by grant_health.py. Reads only.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from ..constants import HEALTH_EXCELLENT_ACTIVE, HEALTH_GOOD_ACTIVE
from ..db.repository import GrantRepository, GrantStatistics, GrantSyncRepository

HEALTH_EXCELLENT = "EXCELLENT"
HEALTH_GOOD = "GOOD"
HEALTH_FAIR = "FAIR"
HEALTH_NEEDS_ATTENTION = "NEEDS ATTENTION"


def health_verdict(stats: GrantStatistics) -> str:
    """
    Classify database health from grant counts.

    - NEEDS ATTENTION: expired grants are still stored
    - EXCELLENT: clean and more than 500 active grants
    - GOOD: clean and more than 100 active grants
    - FAIR: clean but few active grants
    """
    if stats.expired > 0:
        return HEALTH_NEEDS_ATTENTION
    if stats.active > HEALTH_EXCELLENT_ACTIVE:
        return HEALTH_EXCELLENT
    if stats.active > HEALTH_GOOD_ACTIVE:
        return HEALTH_GOOD
    return HEALTH_FAIR


@dataclass
class HealthReport:
    statistics: GrantStatistics
    verdict: str
    last_sync: Optional[dict] = None
    history: List[dict] = field(default_factory=list)

    @property
    def active_percent(self) -> float:
        if self.statistics.total == 0:
            return 0.0
        return self.statistics.active / self.statistics.total * 100


class HealthService:
    """Read-only reporting over grants and grant_syncs."""

    def __init__(
        self,
        grant_repo: Optional[GrantRepository] = None,
        sync_repo: Optional[GrantSyncRepository] = None,
    ):
        self.grant_repo = grant_repo or GrantRepository()
        self.sync_repo = sync_repo or GrantSyncRepository()

    def report(self, history_limit: int = 10, today: Optional[date] = None) -> HealthReport:
        """Grant counts, verdict, and recent sync history (newest first)."""
        stats = self.grant_repo.get_statistics(today=today)
        history = self.sync_repo.get_recent(limit=history_limit) if history_limit > 0 else []
        last_sync = history[0] if history else self.sync_repo.get_latest()
        return HealthReport(
            statistics=stats,
            verdict=health_verdict(stats),
            last_sync=last_sync,
            history=history,
        )
