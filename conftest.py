"""Shared fixtures for the insights export tests."""

from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from insights_export.infrastructure.audit_sink import JsonLinesAuditSink


class StubCredentials:
    """Credential provider returning fixed clients."""

    def __init__(self, token: Optional[str] = "EAAB-test", sheets: Any = None, drive: Any = None):
        self.token = token
        self.sheets = sheets
        self.drive = drive

    def get_source_token(self, user_id: str) -> Optional[str]:
        return self.token

    def get_destination_client(self, user_id: str) -> Any:
        return self.sheets

    def get_drive_client(self, user_id: str) -> Any:
        return self.drive


def make_sheets_service(existing_rows: Optional[List[List[str]]] = None) -> MagicMock:
    """Sheets API mock whose values().get() returns ``existing_rows``."""
    service = MagicMock()
    values = service.spreadsheets.return_value.values.return_value
    values.get.return_value.execute.return_value = {"values": existing_rows or []}
    values.batchUpdate.return_value.execute.return_value = {}
    values.batchClear.return_value.execute.return_value = {}
    return service


def sheet_values(service: MagicMock) -> MagicMock:
    return service.spreadsheets.return_value.values.return_value


def make_drive_service(name: str = "Ads Report") -> MagicMock:
    drive = MagicMock()
    drive.files.return_value.get.return_value.execute.return_value = {"name": name}
    return drive


def insight_row(date: str = "2024-01-15", ad_id: str = "1", **metrics: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "date_start": date,
        "date_stop": date,
        "account_id": "123",
        "account_name": "Main account",
        "ad_id": ad_id,
        "ad_name": f"Ad {ad_id}",
        "adset_id": "10",
        "adset_name": "Adset",
        "campaign_id": "100",
        "campaign_name": "Campaign",
    }
    row.update(metrics)
    return row


@pytest.fixture
def audit_sink(tmp_path) -> JsonLinesAuditSink:
    return JsonLinesAuditSink(str(tmp_path / "audit.jsonl"))
