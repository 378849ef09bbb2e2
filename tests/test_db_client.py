"""Tests for the thread-local MySQL client helpers."""

from unittest.mock import MagicMock

import pymysql
import pytest

from grantsync.db import client


@pytest.fixture
def conn(monkeypatch):
    conn = MagicMock()
    monkeypatch.setattr(client, "get_connection", lambda: conn)
    return conn


class TestTransaction:
    def test_commit_on_success(self, conn):
        with client.transaction() as cursor:
            cursor.execute("UPDATE grants SET is_active = 1")

        conn.begin.assert_called_once()
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()

    def test_rollback_on_error(self, conn):
        with pytest.raises(pymysql.OperationalError):
            with client.transaction():
                raise pymysql.OperationalError(2013, "Lost connection")

        conn.begin.assert_called_once()
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()


class TestExecuteQuery:
    def test_fetch_modes(self, conn):
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.execute.return_value = 3
        cursor.fetchall.return_value = [{"n": 1}]
        cursor.fetchone.return_value = {"n": 1}

        assert client.execute_query("SELECT 1") == [{"n": 1}]
        assert client.execute_query("SELECT 1", fetch="one") == {"n": 1}
        assert client.execute_query("DELETE FROM grants", fetch="rowcount") == 3
        assert client.execute_query("UPDATE grants SET is_active = 1", fetch="none") is None

    def test_params_default_to_empty_tuple(self, conn):
        cursor = conn.cursor.return_value.__enter__.return_value

        client.execute_query("SELECT 1")

        cursor.execute.assert_called_once_with("SELECT 1", ())


class TestCheckConnection:
    def test_ok(self, conn):
        assert client.check_connection() is True

    def test_failure(self, monkeypatch):
        def refuse():
            raise pymysql.OperationalError(2003, "Can't connect")

        monkeypatch.setattr(client, "get_connection", refuse)
        assert client.check_connection() is False


class TestConfig:
    def test_session_time_zone_pinned_to_utc(self):
        client._get_config.cache_clear()
        try:
            config = client._get_config()
        finally:
            client._get_config.cache_clear()

        assert config["init_command"] == "SET time_zone = '+00:00'"
        assert config["autocommit"] is True
