"""Constants and enumerations for the insights export module.

This module centralizes all magic strings, numbers, and enumerations
to improve maintainability and avoid duplication.
"""

from enum import Enum
from typing import Final, Tuple


# Column mapping sentinel: "leave this sheet column untouched"
SKIP_COLUMN: Final[str] = "__skip__"

# Date formats
DATE_FORMAT_ISO: Final[str] = "%Y-%m-%d"

# Time zone used when an owner has no stored preference
DEFAULT_TIMEZONE: Final[str] = "Asia/Bangkok"

# API constants
MAX_RETRIES: Final[int] = 3
RETRY_BACKOFF_FACTOR: Final[float] = 2.0
REQUEST_TIMEOUT_SECONDS: Final[int] = 60
DEFAULT_FETCH_WORKERS: Final[int] = 4

# Scheduler constants
DEFAULT_SCHEDULER_BATCH_SIZE: Final[int] = 5
DEFAULT_SCHEDULE_TIME: Final[str] = "00:00"

# Sheet columns holding statistics; all-zero rows in these are dropped
DEFAULT_STATS_COLUMNS: Final[Tuple[str, ...]] = (
    "F", "G", "H", "I", "J", "K", "L", "M", "N", "O", "P", "Q", "R", "S", "T",
)

# Header row is never written or cleared
HEADER_ROW: Final[int] = 1
FIRST_DATA_ROW: Final[int] = 2

# Google API scopes needed by the sheet writer
GOOGLE_SCOPES: Final[Tuple[str, ...]] = (
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.metadata.readonly",
)

# Environment variable names
ENV_LOG_LEVEL: Final[str] = "LOG_LEVEL"
ENV_LOG_FILE: Final[str] = "LOG_FILE"
ENV_CONFIG_FILE: Final[str] = "EXPORT_CONFIG_FILE"
ENV_CREDENTIALS_FILE: Final[str] = "EXPORT_CREDENTIALS_FILE"
ENV_CONFIGURATIONS_FILE: Final[str] = "EXPORT_CONFIGURATIONS_FILE"
ENV_AUDIT_LOG_FILE: Final[str] = "EXPORT_AUDIT_LOG_FILE"
ENV_GRAPH_API_VERSION: Final[str] = "FACEBOOK_GRAPH_API_VERSION"
ENV_DEFAULT_TIMEZONE: Final[str] = "DEFAULT_TIMEZONE"
ENV_SCHEDULER_BATCH_SIZE: Final[str] = "SCHEDULER_BATCH_SIZE"
ENV_SCHEDULE_WINDOW_MINUTES: Final[str] = "SCHEDULE_WINDOW_MINUTES"
ENV_FETCH_WORKERS: Final[str] = "FETCH_WORKERS"
ENV_REQUEST_TIMEOUT: Final[str] = "REQUEST_TIMEOUT_SECONDS"
ENV_STATS_COLUMNS: Final[str] = "STATS_COLUMNS"


class WriteMode(Enum):
    """How a run lands in the destination tab."""

    APPEND = "append"        # Write after the last used row
    OVERWRITE = "overwrite"  # Clear mapped columns from row 2, write from row 2


class ExportType(Enum):
    """Origin of an export run, stored on the audit record."""

    MANUAL = "manual"
    AUTO = "auto"
    ADS_INFO = "ads_info"


class RunStatus(Enum):
    """Outcome of an export run."""

    SUCCESS = "success"
    ERROR = "error"


class DateRangePreset(Enum):
    """Named relative date ranges, resolved in the owner's time zone."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last_7_days"


class PipelineStage(Enum):
    """Stage identifiers attached to pipeline errors."""

    EXTRACT = "extract"
    TRANSFORM = "transform"
    LOAD = "load"
