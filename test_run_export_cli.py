"""Tests for the insights-export command line."""

import json
from unittest.mock import patch

import pytest

from insights_export.core.constants import ExportType, RunStatus
from insights_export.core.exceptions import DataValidationError, PipelineError
from insights_export.domain.models import ExportAuditRecord, ScheduledPassSummary
from insights_export.infrastructure.audit_sink import JsonLinesAuditSink
from insights_export.run_export import main, parse_mapping_argument


@pytest.fixture
def audit_file(tmp_path, monkeypatch):
    path = tmp_path / "audit.jsonl"
    monkeypatch.setenv("EXPORT_AUDIT_LOG_FILE", str(path))
    monkeypatch.delenv("EXPORT_CONFIG_FILE", raising=False)
    monkeypatch.delenv("SCHEDULER_BATCH_SIZE", raising=False)
    return path


def test_parse_mapping_argument():
    mapping = parse_mapping_argument("ad_id:a, ad_name:B,,status:D")
    assert [(e.metric_key, e.sheet_column) for e in mapping.entries] == [
        ("ad_id", "A"),
        ("ad_name", "B"),
        ("status", "D"),
    ]
    with pytest.raises(DataValidationError):
        parse_mapping_argument("ad_id")


def test_logs_command_prints_page(audit_file, capsys):
    sink = JsonLinesAuditSink(str(audit_file))
    for status in (RunStatus.SUCCESS, RunStatus.ERROR):
        sink.record_run(ExportAuditRecord(user_id="user-1", export_type=ExportType.AUTO, status=status))

    exit_code = main(["logs", "--user", "user-1", "--status", "error"])

    assert exit_code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["total"] == 1
    assert output["logs"][0]["status"] == "error"
    assert output["limit"] == 15


def test_logs_command_single_record(audit_file, capsys):
    record = ExportAuditRecord(user_id="user-1", export_type=ExportType.MANUAL, status=RunStatus.SUCCESS)
    JsonLinesAuditSink(str(audit_file)).record_run(record)

    assert main(["logs", "--user", "user-1", "--id", record.id]) == 0
    assert json.loads(capsys.readouterr().out)["id"] == record.id
    assert main(["logs", "--user", "user-2", "--id", record.id]) == 1


@pytest.mark.parametrize(
    "summary, expected",
    [
        (ScheduledPassSummary(processed=2, skipped=1), 0),
        (ScheduledPassSummary(processed=1, errors=["Report (cfg-2): Missing tokens"]), 2),
        (ScheduledPassSummary(errors=["Report (cfg-2): Missing tokens"]), 3),
    ],
)
def test_schedule_exit_codes(audit_file, summary, expected, capsys):
    with patch("insights_export.run_export.FileCredentialProvider"), \
            patch("insights_export.run_export.YamlConfigurationStore"), \
            patch("insights_export.run_export.ExportScheduler") as scheduler_cls:
        scheduler_cls.return_value.run_scheduled_pass.return_value = summary

        exit_code = main(["schedule", "--force", "--now", "2024-01-15T01:30:00+00:00", "--batch-size", "3"])

    assert exit_code == expected
    assert scheduler_cls.call_args.kwargs["batch_size"] == 3
    kwargs = scheduler_cls.return_value.run_scheduled_pass.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["now"].isoformat() == "2024-01-15T01:30:00+00:00"
    assert json.loads(capsys.readouterr().out) == summary.to_dict()


def test_schedule_rejects_bad_now(audit_file):
    with patch("insights_export.run_export.FileCredentialProvider"), \
            patch("insights_export.run_export.YamlConfigurationStore"), \
            patch("insights_export.run_export.ExportScheduler"):
        assert main(["schedule", "--now", "yesterday"]) == 1


def test_run_command_failure_exit_code(audit_file):
    with patch("insights_export.run_export.FileCredentialProvider"), \
            patch("insights_export.run_export.YamlConfigurationStore") as store_cls, \
            patch("insights_export.run_export.ExportPipeline") as pipeline_cls:
        pipeline_cls.return_value.run_export.side_effect = PipelineError("boom", stage="load")

        assert main(["run", "cfg-1", "--data-date", "2024-01-01", "--write-mode", "overwrite"]) == 4

    request = store_cls.return_value.get_configuration.return_value.to_request.return_value
    assert request.data_date == "2024-01-01"
    store_cls.return_value.get_configuration.return_value.to_request.assert_called_once_with(ExportType.MANUAL)


def test_invalid_settings_exit_code(tmp_path, audit_file, monkeypatch):
    monkeypatch.setenv("FETCH_WORKERS", "many")
    assert main(["logs", "--user", "user-1"]) == 1
