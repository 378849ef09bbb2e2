"""Tests for the MySQL repositories (SQL shape and transaction use, no server)."""

from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pymysql
import pytest

from grantsync.db import repository
from grantsync.db.repository import GrantRepository, GrantStatistics, GrantSyncRepository
from grantsync.validators.grant_validator import GrantData


class QueryRecorder:
    """Stands in for execute_query; tests set .result for the return value."""

    def __init__(self):
        self.calls = []
        self.result = None

    def __call__(self, sql, params=None, fetch="all"):
        self.calls.append({"sql": " ".join(sql.split()), "params": params, "fetch": fetch})
        return self.result


@pytest.fixture
def queries(monkeypatch):
    recorder = QueryRecorder()
    monkeypatch.setattr(repository, "execute_query", recorder)
    return recorder


@pytest.fixture
def cursor(monkeypatch):
    """Cursor handed out by a patched transaction()."""
    cursor = MagicMock()
    cursor.committed = False

    @contextmanager
    def fake_transaction():
        yield cursor
        cursor.committed = True

    monkeypatch.setattr(repository, "transaction", fake_transaction)
    return cursor


def _grant(opportunity_id="1", **kwargs):
    return GrantData(opportunity_id=opportunity_id, title=f"Grant {opportunity_id}", **kwargs)


class TestGrantRepository:
    def test_upsert_sql_updates_every_column_but_key(self):
        sql = GrantRepository.UPSERT_SQL
        assert "INSERT INTO grants" in sql
        assert "ON DUPLICATE KEY UPDATE" in sql
        assert sql.count("%s") == len(GrantRepository.COLUMNS)
        assert "`title` = VALUES(`title`)" in sql
        assert "`opportunity_id` = VALUES" not in sql

    def test_upsert_batch_one_transaction(self, cursor):
        grants = [_grant("1", eligible_applicants=["12", "13"]), _grant("2")]

        written = GrantRepository().upsert_batch(grants)

        assert written == 2
        assert cursor.committed is True
        assert cursor.execute.call_count == 2
        first_row = cursor.execute.call_args_list[0].args[1]
        assert first_row[0] == "1"
        assert first_row[GrantRepository.COLUMNS.index("eligible_applicants")] == "12,13"
        assert first_row[GrantRepository.COLUMNS.index("is_active")] == 1

    def test_upsert_batch_skips_rejected_row(self, cursor):
        cursor.execute.side_effect = [None, pymysql.DataError(1406, "Data too long"), None]

        written = GrantRepository().upsert_batch([_grant("1"), _grant("2"), _grant("3")])

        assert written == 2
        assert cursor.committed is True

    def test_upsert_batch_connection_error_raises(self, cursor):
        cursor.execute.side_effect = pymysql.OperationalError(2013, "Lost connection")

        with pytest.raises(pymysql.OperationalError):
            GrantRepository().upsert_batch([_grant("1")])
        assert cursor.committed is False

    def test_delete_expired(self, queries):
        queries.result = 7

        cutoff = datetime(2025, 9, 19, 12, 0, tzinfo=timezone.utc)

        deleted = GrantRepository().delete_expired(cutoff)

        assert deleted == 7
        [call] = queries.calls
        assert call["sql"] == "DELETE FROM grants WHERE close_date IS NOT NULL AND close_date < %s"
        # full instant, not truncated to a date, so a grant that closed on the 19th is deleted
        assert call["params"] == (datetime(2025, 9, 19, 12, 0),)
        assert call["fetch"] == "rowcount"

    def test_get_statistics(self, queries):
        queries.result = {"total": 10, "active": 7, "expired": 1, "no_close_date": 2, "closing_soon": 3}

        stats = GrantRepository().get_statistics(today=date(2025, 9, 20))

        assert stats == GrantStatistics(total=10, active=7, expired=1, no_close_date=2, closing_soon=3)
        assert queries.calls[0]["params"] == (date(2025, 9, 20), date(2025, 9, 20), date(2025, 9, 20), date(2025, 10, 20))

    def test_get_statistics_decimal_sums(self, queries):
        # SUM() over booleans comes back as Decimal from MySQL
        queries.result = {
            "total": 4,
            "active": Decimal("3"),
            "expired": Decimal("0"),
            "no_close_date": Decimal("1"),
            "closing_soon": None,
        }
        stats = GrantRepository().get_statistics(today=date(2025, 9, 20))
        assert stats.active == 3
        assert stats.closing_soon == 0


class TestGrantSyncRepository:
    def test_upsert_keyed_by_file_name(self, queries):
        extracted = datetime(2025, 9, 13, 4, 38, 55, tzinfo=timezone(timedelta(hours=-4)))

        GrantSyncRepository().upsert("a.zip", extracted, "84 MB", "processing")

        [call] = queries.calls
        assert call["sql"].startswith("INSERT INTO grant_syncs")
        assert "ON DUPLICATE KEY UPDATE sync_status = VALUES(sync_status)" in call["sql"]
        # stored as naive UTC
        assert call["params"][1] == datetime(2025, 9, 13, 8, 38, 55)
        assert call["params"][3] == "processing"

    def test_upsert_rejects_unknown_status(self, queries):
        with pytest.raises(ValueError, match="Unknown sync status"):
            GrantSyncRepository().upsert("a.zip", datetime(2025, 9, 13), None, "done")
        assert queries.calls == []

    def test_completed_file_names(self, queries):
        queries.result = [{"file_name": "a.zip"}, {"file_name": "b.zip"}]

        assert GrantSyncRepository().get_completed_file_names() == {"a.zip", "b.zip"}
        assert queries.calls[0]["params"] == ("completed",)

    def test_completed_file_names_empty(self, queries):
        queries.result = ()
        assert GrantSyncRepository().get_completed_file_names() == set()

    def test_mark_failed(self, queries):
        GrantSyncRepository().mark_failed(3, "timed out")
        assert queries.calls[0]["params"] == ("failed", "timed out", 3)

    def test_get_latest(self, queries):
        queries.result = [{"file_name": "new.zip"}]
        assert GrantSyncRepository().get_latest() == {"file_name": "new.zip"}
        assert queries.calls[0]["params"] == (1,)

    def test_latest_with_status_orders_by_updated_at(self, queries):
        queries.result = {"file_name": "retry.zip"}

        assert GrantSyncRepository().get_latest_with_status("processing") == {"file_name": "retry.zip"}
        assert queries.calls[0]["sql"].endswith("ORDER BY updated_at DESC LIMIT 1")
        assert queries.calls[0]["params"] == ("processing",)
