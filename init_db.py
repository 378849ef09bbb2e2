#!/usr/bin/env python3
"""
Create the grants and grant_syncs tables (no-op if they already exist).

Usage:
    python init_db.py
"""

import sys
from pathlib import Path

# Add project root to path when run from a checkout
sys.path.insert(0, str(Path(__file__).parent))

import pymysql

from grantsync.config import get_db_config
from grantsync.db import check_connection, close_connection, create_tables


def main():
    config = get_db_config()
    print(f"Creating tables in {config['database']} on {config['host']}:{config['port']}")
    if not check_connection():
        print("✗ Cannot connect to the database")
        close_connection()
        sys.exit(1)
    try:
        create_tables()
    except pymysql.Error as e:
        print(f"✗ Failed to create tables: {e}")
        sys.exit(1)
    finally:
        close_connection()
    print("✓ Tables ready: grants, grant_syncs")


if __name__ == "__main__":
    main()
