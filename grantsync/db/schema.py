"""Table definitions for the grants database."""

from .client import execute_query

GRANTS_DDL = """
CREATE TABLE IF NOT EXISTS grants (
    id BIGINT AUTO_INCREMENT PRIMARY KEY,
    opportunity_id VARCHAR(64) NOT NULL,
    opportunity_number VARCHAR(255) NULL,
    title TEXT NOT NULL,
    agency_code VARCHAR(64) NULL,
    agency_name VARCHAR(512) NULL,
    cfda_number VARCHAR(255) NULL,
    posting_date DATE NULL,
    close_date DATE NULL,
    description MEDIUMTEXT NULL,
    eligibility_criteria TEXT NULL,
    eligible_applicants VARCHAR(255) NULL,
    award_ceiling BIGINT NULL,
    award_floor BIGINT NULL,
    estimated_funding BIGINT NULL,
    category VARCHAR(512) NULL,
    funding_instrument VARCHAR(255) NULL,
    is_active TINYINT(1) NOT NULL DEFAULT 1,
    last_synced_at DATETIME NULL,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
    UNIQUE KEY uq_grants_opportunity_id (opportunity_id),
    KEY ix_grants_close_date (close_date)
) DEFAULT CHARSET=utf8mb4
"""

GRANT_SYNCS_DDL = """
CREATE TABLE IF NOT EXISTS grant_syncs (
    id BIGINT AUTO_INCREMENT PRIMARY KEY,
    file_name VARCHAR(255) NOT NULL,
    extracted_date DATETIME NOT NULL,
    file_size VARCHAR(64) NULL,
    sync_status VARCHAR(16) NOT NULL DEFAULT 'pending',
    records_processed INT NULL,
    records_deleted INT NULL,
    error_message TEXT NULL,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
    UNIQUE KEY uq_grant_syncs_file_name (file_name),
    KEY ix_grant_syncs_status (sync_status)
) DEFAULT CHARSET=utf8mb4
"""

ALL_DDL = (GRANTS_DDL, GRANT_SYNCS_DDL)


def create_tables() -> None:
    """Create the grants and grant_syncs tables if they are missing."""
    for ddl in ALL_DDL:
        execute_query(ddl, fetch="none")
