"""Configuration management for the insights export module.

Precedence, highest first:
CLI arguments > Environment variables (.env) > YAML file > Defaults

The configuration is a plain dataclass validated on construction.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from loguru import logger

from insights_export.core.constants import (
    DEFAULT_FETCH_WORKERS,
    DEFAULT_SCHEDULER_BATCH_SIZE,
    DEFAULT_STATS_COLUMNS,
    DEFAULT_TIMEZONE,
    ENV_AUDIT_LOG_FILE,
    ENV_CONFIG_FILE,
    ENV_CONFIGURATIONS_FILE,
    ENV_CREDENTIALS_FILE,
    ENV_DEFAULT_TIMEZONE,
    ENV_FETCH_WORKERS,
    ENV_GRAPH_API_VERSION,
    ENV_LOG_FILE,
    ENV_LOG_LEVEL,
    ENV_REQUEST_TIMEOUT,
    ENV_SCHEDULE_WINDOW_MINUTES,
    ENV_SCHEDULER_BATCH_SIZE,
    ENV_STATS_COLUMNS,
    MAX_RETRIES,
    REQUEST_TIMEOUT_SECONDS,
)
from insights_export.core.exceptions import ConfigurationError
from insights_export.platforms.facebook.constants import (
    GRAPH_API_BASE_URL,
    GRAPH_API_VERSION,
    INSIGHTS_PAGE_LIMIT,
)
from insights_export.sheets.columns import normalize_column
from insights_export.utils.env import get_env, get_env_int, get_env_list
from insights_export.utils.date_utils import resolve_timezone


@dataclass
class AppConfig:
    """Application-wide configuration."""

    graph_api_base_url: str = GRAPH_API_BASE_URL
    graph_api_version: str = GRAPH_API_VERSION
    page_limit: int = INSIGHTS_PAGE_LIMIT
    request_timeout: int = REQUEST_TIMEOUT_SECONDS
    max_retries: int = MAX_RETRIES
    max_fetch_workers: int = DEFAULT_FETCH_WORKERS
    scheduler_batch_size: int = DEFAULT_SCHEDULER_BATCH_SIZE
    schedule_window_minutes: Optional[int] = None
    default_timezone: str = DEFAULT_TIMEZONE
    stats_columns: Tuple[str, ...] = DEFAULT_STATS_COLUMNS
    credentials_file: str = "credentials.yml"
    configurations_file: str = "export_configurations.yml"
    audit_log_file: str = "export_audit.jsonl"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        for name in ("page_limit", "request_timeout", "max_fetch_workers", "scheduler_batch_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries cannot be negative, got {self.max_retries}")
        if self.schedule_window_minutes is not None and self.schedule_window_minutes < 1:
            raise ConfigurationError(
                f"schedule_window_minutes must be at least 1, got {self.schedule_window_minutes}"
            )
        resolve_timezone(self.default_timezone)
        self.stats_columns = tuple(normalize_column(c) for c in self.stats_columns)

    @property
    def graph_api_url(self) -> str:
        return f"{self.graph_api_base_url.rstrip('/')}/{self.graph_api_version}"


class ConfigurationManager:
    """Builds an AppConfig from YAML, environment and CLI overrides."""

    # Environment variables and the AppConfig attribute they set
    _ENV_STRINGS: Dict[str, str] = {
        ENV_GRAPH_API_VERSION: "graph_api_version",
        ENV_DEFAULT_TIMEZONE: "default_timezone",
        ENV_CREDENTIALS_FILE: "credentials_file",
        ENV_CONFIGURATIONS_FILE: "configurations_file",
        ENV_AUDIT_LOG_FILE: "audit_log_file",
        ENV_LOG_LEVEL: "log_level",
        ENV_LOG_FILE: "log_file",
    }
    _ENV_INTS: Dict[str, str] = {
        ENV_REQUEST_TIMEOUT: "request_timeout",
        ENV_FETCH_WORKERS: "max_fetch_workers",
        ENV_SCHEDULER_BATCH_SIZE: "scheduler_batch_size",
        ENV_SCHEDULE_WINDOW_MINUTES: "schedule_window_minutes",
    }

    def __init__(self, config_file: Optional[Path] = None):
        """Initialize the configuration manager.

        Args:
            config_file: YAML settings file. Defaults to $EXPORT_CONFIG_FILE.
        """
        env_file = get_env(ENV_CONFIG_FILE)
        self.config_file = config_file or (Path(env_file) if env_file else None)
        self._app_config: Optional[AppConfig] = None

    def load_config(self, **overrides: Any) -> AppConfig:
        """Load application configuration.

        Args:
            **overrides: CLI values keyed by AppConfig attribute; None is ignored

        Returns:
            AppConfig instance

        Raises:
            ConfigurationError: If a source is malformed or a value is invalid
        """
        values: Dict[str, Any] = {}
        values.update(self._load_yaml())
        values.update(self._load_env())
        values.update({k: v for k, v in overrides.items() if v is not None})

        known = {f.name for f in fields(AppConfig)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                details={"known": sorted(known)},
            )

        if "stats_columns" in values and isinstance(values["stats_columns"], (list, str)):
            columns = values["stats_columns"]
            if isinstance(columns, str):
                columns = [c for c in columns.split(",") if c.strip()]
            values["stats_columns"] = tuple(columns)

        self._app_config = AppConfig(**values)
        logger.debug(f"Configuration loaded: {self._app_config}")
        return self._app_config

    def _load_yaml(self) -> Dict[str, Any]:
        if self.config_file is None:
            return {}
        path = Path(self.config_file)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {path}",
                details={"error": str(e)},
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
        logger.info(f"Loaded settings from {path}")
        return data

    def _load_env(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for env_var, attr in self._ENV_STRINGS.items():
            value = get_env(env_var)
            if value is not None:
                values[attr] = value
        for env_var, attr in self._ENV_INTS.items():
            value = get_env_int(env_var)
            if value is not None:
                values[attr] = value
        stats: Optional[List[str]] = get_env_list(ENV_STATS_COLUMNS)
        if stats is not None:
            values["stats_columns"] = stats
        return values

    def get_config(self) -> AppConfig:
        """Get the current application configuration.

        Raises:
            ConfigurationError: If configuration not loaded yet
        """
        if self._app_config is None:
            raise ConfigurationError(
                "Configuration not loaded. Call load_config() first."
            )
        return self._app_config
