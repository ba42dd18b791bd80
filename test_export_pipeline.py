"""End-to-end tests for the export pipeline with mocked remote services."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from loguru import logger

from insights_export.core.config import AppConfig
from insights_export.core.constants import ExportType, RunStatus
from insights_export.core.exceptions import APIError, AuthenticationError, DataValidationError, PipelineError
from insights_export.domain.models import ExportRunRequest
from insights_export.pipeline import ExportPipeline

from conftest import StubCredentials, insight_row, make_drive_service, make_sheets_service, sheet_values

# 2024-01-15 09:00 in Bangkok
NOW = datetime(2024, 1, 15, 2, 0, tzinfo=timezone.utc)

MAPPING = [
    {"fbCol": "date", "sheetCol": "A"},
    {"fbCol": "ad_name", "sheetCol": "B"},
    {"fbCol": "__skip__", "sheetCol": "C"},
    {"fbCol": "impressions", "sheetCol": "F"},
    {"fbCol": "spend", "sheetCol": "G"},
    {"fbCol": "video_avg_time", "sheetCol": "I"},
]


def _request(**overrides):
    values = dict(
        user_id="user-1",
        account_ids=["111", "222"],
        spreadsheet_id="sheet-1",
        sheet_tab="Data",
        column_mapping=MAPPING,
        write_mode="append",
        date_range="yesterday",
        timezone="Asia/Bangkok",
        export_type=ExportType.MANUAL,
        config_id="cfg-1",
        config_name="Daily report",
    )
    values.update(overrides)
    return ExportRunRequest(**values)


def _graph_client(rows_by_account):
    client = MagicMock()
    client.get_insights.side_effect = lambda account_id, since, until, fields: rows_by_account[account_id]
    return client


def _pipeline(credentials, audit_sink, client):
    return ExportPipeline(credentials, audit_sink, AppConfig(), client_factory=lambda token: client)


def test_successful_append_run(audit_sink):
    logger.info("=" * 60)
    logger.info("TEST: successful append export")
    logger.info("=" * 60)

    sheets = make_sheets_service([["header"]] * 10)
    credentials = StubCredentials(sheets=sheets, drive=make_drive_service("Ads Report"))
    client = _graph_client({
        "111": [
            insight_row("2024-01-14", "1", impressions="100", spend="5.5",
                        video_avg_time_watched_actions=[{"action_type": "video_view", "value": "125"}]),
            insight_row("2024-01-14", "2", impressions="0", spend="0"),
        ],
        "222": [insight_row("2024-01-14", "3", impressions="7", spend="")],
    })

    result = _pipeline(credentials, audit_sink, client).run_export(_request(), now=NOW)

    assert result.rows_written == 2, f"Expected 2 rows, got {result.rows_written}"
    since_until = {(c.args[1], c.args[2]) for c in client.get_insights.call_args_list}
    assert since_until == {("2024-01-14", "2024-01-14")}

    body = sheet_values(sheets).batchUpdate.call_args.kwargs["body"]
    assert [entry["range"] for entry in body["data"]] == [
        "'Data'!A11:B12",
        "'Data'!F11:G12",
        "'Data'!I11:I12",
    ]
    assert body["data"][0]["values"] == [["2024-01-14", "Ad 1"], ["2024-01-14", "Ad 3"]]
    assert body["data"][1]["values"] == [["100", "5.5"], ["7", "0"]]
    assert body["data"][2]["values"] == [["02.05"], ["00.00"]]

    records = audit_sink.list_runs("user-1").records
    assert len(records) == 1
    record = records[0]
    assert record.id == result.audit_record.id
    assert record.status is RunStatus.SUCCESS
    assert record.export_type is ExportType.MANUAL
    assert record.row_count == 2
    assert record.ad_account_count == 2
    assert record.data_date == "2024-01-14"
    assert record.sheet_file_name == "Ads Report"
    assert record.sheet_tab_name == "Data"
    assert record.config_id == "cfg-1"
    logger.success("✓ Append export test PASSED")


def test_audit_record_stamped_with_reference_instant(audit_sink):
    """Records carry the run's reference instant, so the daily check sees them on that day."""
    client = _graph_client({"111": [insight_row(impressions="3")], "222": []})
    pipeline = _pipeline(StubCredentials(sheets=make_sheets_service()), audit_sink, client)

    result = pipeline.run_export(_request(export_type=ExportType.AUTO), now=NOW)

    assert result.audit_record.created_at == NOW
    assert audit_sink.list_runs("user-1").records[0].created_at == NOW

    failing = MagicMock()
    failing.get_insights.side_effect = APIError("Unsupported get request")
    with pytest.raises(PipelineError):
        _pipeline(StubCredentials(sheets=make_sheets_service()), audit_sink, failing).run_export(
            _request(), now=NOW
        )
    error_record = audit_sink.list_runs("user-1", status=RunStatus.ERROR).records[0]
    assert error_record.created_at == NOW


def test_explicit_data_date_wins(audit_sink):
    sheets = make_sheets_service()
    client = _graph_client({"111": [], "222": []})
    pipeline = _pipeline(StubCredentials(sheets=sheets), audit_sink, client)

    result = pipeline.run_export(_request(data_date="2024-01-01", date_range="last_7_days"), now=NOW)

    assert result.rows_written == 0
    assert client.get_insights.call_args.args[1:3] == ("2024-01-01", "2024-01-01")
    sheet_values(sheets).batchUpdate.assert_not_called()
    record = audit_sink.list_runs("user-1").records[0]
    assert record.status is RunStatus.SUCCESS
    assert record.row_count == 0
    assert record.sheet_file_name == "sheet-1"


def test_overwrite_run_clears_then_writes(audit_sink):
    sheets = make_sheets_service()
    client = _graph_client({"111": [insight_row(impressions="3", spend="1")], "222": []})
    pipeline = _pipeline(StubCredentials(sheets=sheets), audit_sink, client)

    pipeline.run_export(_request(write_mode="overwrite", date_range="last_7_days"), now=NOW)

    values = sheet_values(sheets)
    assert values.batchClear.call_args.kwargs["body"]["ranges"] == ["'Data'!A2:B", "'Data'!F2:G", "'Data'!I2:I"]
    data = values.batchUpdate.call_args.kwargs["body"]["data"]
    assert data[0]["range"] == "'Data'!A2:B2"
    assert client.get_insights.call_args.args[1:3] == ("2024-01-08", "2024-01-15")


def test_extract_failure_records_error(audit_sink):
    """A failing account fails the run, writes nothing and leaves an error record."""
    sheets = make_sheets_service()
    client = MagicMock()
    client.get_insights.side_effect = APIError("Error validating access token", status_code=190)
    pipeline = _pipeline(StubCredentials(sheets=sheets), audit_sink, client)

    with pytest.raises(PipelineError) as exc_info:
        pipeline.run_export(_request(), now=NOW)

    assert exc_info.value.stage == "extract"
    assert exc_info.value.message == "Error validating access token"
    sheet_values(sheets).batchUpdate.assert_not_called()

    record = audit_sink.list_runs("user-1").records[0]
    assert record.status is RunStatus.ERROR
    assert record.error == "Error validating access token"
    assert record.row_count == 0
    assert exc_info.value.details["audit_record_id"] == record.id


def test_load_failure_records_error_with_row_count(audit_sink):
    sheets = make_sheets_service()
    sheet_values(sheets).get.return_value.execute.side_effect = RuntimeError("quota exceeded")
    client = _graph_client({"111": [insight_row(impressions="3")], "222": []})
    pipeline = _pipeline(StubCredentials(sheets=sheets), audit_sink, client)

    with pytest.raises(PipelineError) as exc_info:
        pipeline.run_export(_request(), now=NOW)

    assert exc_info.value.stage == "load"
    record = audit_sink.list_runs("user-1").records[0]
    assert record.status is RunStatus.ERROR
    assert record.error == "quota exceeded"
    assert record.row_count == 1


def test_missing_facebook_token_leaves_no_record(audit_sink):
    pipeline = _pipeline(StubCredentials(token=None, sheets=make_sheets_service()), audit_sink, MagicMock())

    with pytest.raises(AuthenticationError):
        pipeline.run_export(_request(), now=NOW)
    assert audit_sink.list_runs("user-1").total == 0


def test_missing_google_authorization_leaves_no_record(audit_sink):
    pipeline = _pipeline(StubCredentials(sheets=None), audit_sink, MagicMock())

    with pytest.raises(AuthenticationError):
        pipeline.run_export(_request(), now=NOW)
    assert audit_sink.list_runs("user-1").total == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"account_ids": []},
        {"spreadsheet_id": ""},
        {"sheet_tab": ""},
        {"column_mapping": [{"fbCol": "__skip__", "sheetCol": "A"}]},
        {"date_range": None},
    ],
)
def test_invalid_requests_rejected_before_remote_calls(audit_sink, overrides):
    client = MagicMock()
    pipeline = _pipeline(StubCredentials(sheets=make_sheets_service()), audit_sink, client)

    with pytest.raises(DataValidationError):
        pipeline.run_export(_request(**overrides), now=NOW)
    client.get_insights.assert_not_called()
    assert audit_sink.list_runs("user-1").total == 0


def test_audit_sink_failure_does_not_fail_run():
    sink = MagicMock()
    sink.record_run.side_effect = OSError("disk full")
    client = _graph_client({"111": [], "222": []})
    pipeline = _pipeline(StubCredentials(sheets=make_sheets_service()), sink, client)

    result = pipeline.run_export(_request(), now=NOW)

    assert result.rows_written == 0
    sink.record_run.assert_called_once()
