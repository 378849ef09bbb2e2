"""
Central configuration for the grants sync job.

Values come from environment variables (a local .env file is loaded first).

Database: MySQL-compatible server. Configure via environment variables:
  - GRANTSYNC_DB_HOST (default: 127.0.0.1)
  - GRANTSYNC_DB_PORT (default: 3306)
  - GRANTSYNC_DB_USER (default: root)
  - GRANTSYNC_DB_PASSWORD (default: empty)
  - GRANTSYNC_DB_DATABASE (default: grantsync)

Source URLs:
  - GRANTS_LISTING_URL (default: https://www.grants.gov/xml-extract)
  - GRANTS_DOWNLOAD_BASE_URL (default: grants.gov extract bucket)
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_LISTING_URL = "https://www.grants.gov/xml-extract"
DEFAULT_DOWNLOAD_BASE_URL = "https://prod-grants-gov-chatbot.s3.amazonaws.com/extracts"


def get_db_config() -> dict:
    """
    Get database connection settings.

    Returns:
        Dict of pymysql.connect() keyword arguments (without cursorclass)
    """
    return {
        "host": os.environ.get("GRANTSYNC_DB_HOST", "127.0.0.1"),
        "port": int(os.environ.get("GRANTSYNC_DB_PORT", "3306")),
        "user": os.environ.get("GRANTSYNC_DB_USER", "root"),
        "password": os.environ.get("GRANTSYNC_DB_PASSWORD", ""),
        "database": os.environ.get("GRANTSYNC_DB_DATABASE", "grantsync"),
    }


def get_listing_url() -> str:
    """URL of the grants.gov XML extract index page."""
    return os.environ.get("GRANTS_LISTING_URL", DEFAULT_LISTING_URL)


def get_download_base_url() -> str:
    """Base URL that extract ZIP file names are appended to."""
    return os.environ.get("GRANTS_DOWNLOAD_BASE_URL", DEFAULT_DOWNLOAD_BASE_URL).rstrip("/")


def get_log_level() -> str:
    return os.environ.get("GRANTSYNC_LOG_LEVEL", "INFO")


def get_log_dir() -> Optional[Path]:
    """Directory for log files, or None to use the default logs/ directory."""
    env_path = os.environ.get("GRANTSYNC_LOG_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return None


def get_eligibility_config_path() -> Path:
    """Path to the eligibility keyword overrides (config/eligibility_keywords.yaml)."""
    env_path = os.environ.get("GRANTSYNC_ELIGIBILITY_CONFIG")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path(__file__).parent.parent / "config" / "eligibility_keywords.yaml"
