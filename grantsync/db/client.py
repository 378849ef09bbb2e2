"""MySQL client.

Thread-local connection reuse for the grants database (MySQL protocol).
Each thread gets a persistent connection that reconnects on failure.
Connections run in autocommit mode; multi-statement work goes through
transaction(), which brackets the statements in BEGIN / COMMIT.
"""

import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Generator

import pymysql
from pymysql.cursors import DictCursor

from ..config import get_db_config

_thread_local = threading.local()


@lru_cache(maxsize=1)
def _get_config() -> dict:
    """Get connection configuration.

    See grantsync.config.get_db_config for the environment variables.

    Returns:
        Connection config dict
    """
    return {
        **get_db_config(),
        "autocommit": True,
        "charset": "utf8mb4",
        "cursorclass": DictCursor,
        # CURRENT_TIMESTAMP defaults must match the naive UTC values written from Python
        "init_command": "SET time_zone = '+00:00'",
    }


def get_connection() -> pymysql.Connection:
    """Get a thread-local database connection, reusing if alive.

    Returns:
        PyMySQL connection (reused per thread, reconnects on failure)

    Example:
        conn = get_connection()
        with conn.cursor() as cursor:
            cursor.execute("SELECT * FROM grants")
            results = cursor.fetchall()
    """
    conn = getattr(_thread_local, "conn", None)
    if conn is not None:
        try:
            conn.ping(reconnect=False)
            return conn
        except pymysql.Error:
            try:
                conn.close()
            except pymysql.Error:
                pass
    conn = pymysql.connect(**_get_config())
    _thread_local.conn = conn
    return conn


@contextmanager
def get_cursor() -> Generator[Any, None, None]:
    """Context manager for a dict cursor on the thread-local connection.

    Yields:
        PyMySQL cursor

    Example:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM grants WHERE opportunity_id = %s", (opp_id,))
            row = cursor.fetchone()
    """
    conn = get_connection()
    with conn.cursor() as cursor:
        yield cursor


@contextmanager
def transaction() -> Generator[Any, None, None]:
    """Run the enclosed statements as one transaction.

    Commits when the block exits normally, rolls back and re-raises otherwise.

    Yields:
        PyMySQL cursor bound to the transaction

    Example:
        with transaction() as cursor:
            for row in batch:
                cursor.execute(UPSERT_SQL, row)
    """
    conn = get_connection()
    conn.begin()
    try:
        with conn.cursor() as cursor:
            yield cursor
        conn.commit()
    except BaseException:
        conn.rollback()
        raise


def execute_query(sql: str, params: tuple | None = None, fetch: str = "all") -> list[dict] | dict | int | None:
    """Execute a query and return results.

    Args:
        sql: SQL query with %s placeholders
        params: Query parameters
        fetch: 'all' for fetchall(), 'one' for fetchone(), 'rowcount' for the
            affected row count, 'none' for no fetch

    Returns:
        Query results as list of dicts, single dict, row count, or None

    Example:
        rows = execute_query("SELECT * FROM grant_syncs")
        row = execute_query("SELECT * FROM grants WHERE opportunity_id = %s", (opp_id,), fetch="one")
        deleted = execute_query("DELETE FROM grants WHERE close_date < %s", (cutoff,), fetch="rowcount")
    """
    with get_cursor() as cursor:
        affected = cursor.execute(sql, params or ())

        if fetch == "all":
            return cursor.fetchall()
        elif fetch == "one":
            return cursor.fetchone()
        elif fetch == "rowcount":
            return affected
        return None


def check_connection() -> bool:
    """Test database connectivity.

    Returns:
        True if connection succeeds, False otherwise
    """
    try:
        with get_cursor() as cursor:
            cursor.execute("SELECT 1")
            return True
    except pymysql.Error:
        return False


def close_connection() -> None:
    """Close this thread's connection, if any."""
    conn = getattr(_thread_local, "conn", None)
    _thread_local.conn = None
    if conn is not None:
        try:
            conn.close()
        except pymysql.Error:
            pass
