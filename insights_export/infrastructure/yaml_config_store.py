"""YAML-backed store of saved export configurations.

    configurations:
      - id: cfg-1
        name: Daily ads report
        user_id: user-1
        timezone: Asia/Bangkok
        account_ids: [act_123]
        spreadsheet_id: 1AbC...
        sheet_tab: Data
        write_mode: append
        date_range: yesterday
        is_auto: true
        auto_time: "08:00"
        auto_days: [1, 2, 3, 4, 5]
        column_mapping:
          - {fbCol: date, sheetCol: A}
          - {fbCol: spend, sheetCol: F}
"""

from pathlib import Path
from typing import Dict, List

import yaml
from loguru import logger

from insights_export.core.exceptions import ConfigurationError
from insights_export.domain.models import ExportConfiguration


class YamlConfigurationStore:
    """Read-only configuration store over a YAML file."""

    def __init__(self, configurations_file: str):
        self.configurations_file = Path(configurations_file)
        self._configurations = self._load()

    def _load(self) -> Dict[str, ExportConfiguration]:
        if not self.configurations_file.exists():
            raise ConfigurationError(f"Configurations file not found: {self.configurations_file}")
        try:
            with open(self.configurations_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse configurations file: {self.configurations_file}",
                details={"error": str(e)},
            ) from e

        configurations: Dict[str, ExportConfiguration] = {}
        for raw in data.get("configurations") or []:
            configuration = ExportConfiguration.from_dict(raw)
            if configuration.id in configurations:
                raise ConfigurationError(f"Duplicate configuration id: {configuration.id}")
            configurations[configuration.id] = configuration

        logger.info(f"Loaded {len(configurations)} export configuration(s) from {self.configurations_file}")
        return configurations

    def list_auto_configurations(self) -> List[ExportConfiguration]:
        return [c for c in self._configurations.values() if c.is_auto]

    def get_configuration(self, config_id: str) -> ExportConfiguration:
        try:
            return self._configurations[config_id]
        except KeyError:
            raise ConfigurationError(
                f"Unknown export configuration: {config_id}",
                details={"known": sorted(self._configurations)},
            )
