"""
Global and domain-specific constants for Data Observatory (DO) subscription syncs.
"""
from typing import Final, FrozenSet

# Provider / service identifiers stored in import and synchronization payloads
DO_SYNC_PROVIDER: Final[str] = "do-v2"
DO_SYNC_SERVICE_NAME: Final[str] = "connector"
DO_SYNC_INTERVAL: Final[int] = 86400  # seconds (daily)
DO_SYNC_TABLE_PREFIX: Final[str] = "do_sync_"
DO_SYNC_VIEW_PREFIX: Final[str] = "view_"

# Data import states reported by the importer workers
IMPORT_STATE_ENQUEUED: Final[str] = "enqueued"
IMPORT_STATE_PENDING: Final[str] = "pending"
IMPORT_STATE_UNPACKING: Final[str] = "unpacking"
IMPORT_STATE_IMPORTING: Final[str] = "importing"
IMPORT_STATE_UPLOADING: Final[str] = "uploading"
IMPORT_STATE_COMPLETE: Final[str] = "complete"
IMPORT_IN_PROGRESS_STATES: Final[FrozenSet[str]] = frozenset({
    IMPORT_STATE_ENQUEUED,
    IMPORT_STATE_PENDING,
    IMPORT_STATE_UNPACKING,
    IMPORT_STATE_IMPORTING,
    IMPORT_STATE_UPLOADING,
})

# Synchronization (recurring schedule) states
SYNC_STATE_CREATED: Final[str] = "created"
SYNC_STATE_QUEUED: Final[str] = "queued"

# Channel the importer workers LISTEN on
IMPORTER_JOBS_CHANNEL: Final[str] = "importer_jobs"

DO_SYNC_SETTINGS_DEFAULT: Final[dict] = {
    # BigQuery location of the per-subscription views
    "BQ_PROJECT": "",
    "BQ_DATASET": "",
    "SERVICE_ACCOUNT": None,  # dict (service account info), set per user or via env file

    # DO catalog API
    "DO_API_BASE_URL": "https://api.carto.com/v4/do",
    "DO_API_KEY": "",
    "DO_API_TIMEOUT_SECONDS": 30,

    "SYNC_INTERVAL": DO_SYNC_INTERVAL,
}

# Settings keys (avoid string literals elsewhere)
BQ_PROJECT: Final[str] = "BQ_PROJECT"
BQ_DATASET: Final[str] = "BQ_DATASET"
SERVICE_ACCOUNT: Final[str] = "SERVICE_ACCOUNT"
DO_API_BASE_URL: Final[str] = "DO_API_BASE_URL"
DO_API_KEY: Final[str] = "DO_API_KEY"
DO_API_TIMEOUT_SECONDS: Final[str] = "DO_API_TIMEOUT_SECONDS"
SYNC_INTERVAL: Final[str] = "SYNC_INTERVAL"
