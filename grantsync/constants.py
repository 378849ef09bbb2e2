"""
Global constants for the grants sync job.

Centralizes magic numbers used throughout the pipeline for easier tuning.
"""

# Network and Timeouts
LISTING_TIMEOUT_SECONDS = 30  # grants.gov index page
DOWNLOAD_TIMEOUT_SECONDS = 300  # Extract ZIPs are large (5 minutes)
LISTING_USER_AGENT = "Mozilla/5.0 (compatible; GrantSync/1.0)"
DOWNLOAD_USER_AGENT = "Mozilla/5.0 (compatible; GrantSync/1.0)"

# Persistence
UPSERT_BATCH_SIZE = 100  # Rows per upsert transaction
EXPIRED_GRACE_DAYS = 1  # Grants stay this long after their close date

# Sync run guard
STALE_SYNC_MINUTES = 30  # A "processing" sync older than this is considered dead

# Sync record statuses
SYNC_STATUS_PENDING = "pending"
SYNC_STATUS_PROCESSING = "processing"
SYNC_STATUS_COMPLETED = "completed"
SYNC_STATUS_FAILED = "failed"
SYNC_STATUSES = (
    SYNC_STATUS_PENDING,
    SYNC_STATUS_PROCESSING,
    SYNC_STATUS_COMPLETED,
    SYNC_STATUS_FAILED,
)

# Result messages
MSG_NO_FILES = "No files found on grants.gov"
MSG_NO_NEW_FILES = "No new files to process"
MSG_SYNC_IN_PROGRESS = "Sync already in progress"
MSG_SYNC_TIMED_OUT = f"Sync timed out after {STALE_SYNC_MINUTES} minutes"

# Health check thresholds (active grant counts)
HEALTH_EXCELLENT_ACTIVE = 500
HEALTH_GOOD_ACTIVE = 100
CLOSING_SOON_DAYS = 30

# ZIP local file header magic ("PK")
ZIP_MAGIC = b"PK"
