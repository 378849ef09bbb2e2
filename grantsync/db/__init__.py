"""MySQL database client and repositories.

Provides:
- Thread-local connection reuse and transactions
- Repository classes for the grants and grant_syncs tables
- Table creation
"""

from .client import check_connection, close_connection, execute_query, get_connection, get_cursor, transaction
from .repository import GrantRepository, GrantStatistics, GrantSyncRepository
from .schema import create_tables

__all__ = [
    # Client
    "get_connection",
    "get_cursor",
    "transaction",
    "execute_query",
    "check_connection",
    "close_connection",
    # Schema
    "create_tables",
    # Repositories
    "GrantRepository",
    "GrantStatistics",
    "GrantSyncRepository",
]
