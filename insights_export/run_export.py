#!/usr/bin/env python3
"""Insights Export command line entry point.

Subcommands:
    run        Run one saved configuration now (manual export)
    schedule   Run every automatic configuration that is due
    ads-info   Export ad metadata into a sheet
    logs       Browse a user's export audit log

Environment Variables:
    EXPORT_CONFIG_FILE: Optional YAML settings file
    EXPORT_CREDENTIALS_FILE: Per-user credentials YAML (default: credentials.yml)
    EXPORT_CONFIGURATIONS_FILE: Saved export configurations YAML
    EXPORT_AUDIT_LOG_FILE: Audit log, JSON lines
    LOG_LEVEL / LOG_FILE: Logging
    SCHEDULER_BATCH_SIZE, SCHEDULE_WINDOW_MINUTES, FETCH_WORKERS,
    REQUEST_TIMEOUT_SECONDS, STATS_COLUMNS, DEFAULT_TIMEZONE

Exit Codes:
    0: Success
    1: Configuration, validation or credential error
    2: Scheduled pass with some failures (partial success)
    3: Scheduled pass where every run failed
    4: Export failed
    130: Interrupted
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from loguru import logger

from insights_export.core.config import AppConfig, ConfigurationManager
from insights_export.core.constants import DateRangePreset, ExportType, RunStatus, WriteMode
from insights_export.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DataValidationError,
    PipelineError,
)
from insights_export.domain.models import ColumnMapping, ColumnMappingEntry
from insights_export.infrastructure.audit_sink import JsonLinesAuditSink
from insights_export.infrastructure.file_credential_provider import FileCredentialProvider
from insights_export.infrastructure.yaml_config_store import YamlConfigurationStore
from insights_export.orchestrator.scheduler import ExportScheduler
from insights_export.pipeline import ExportPipeline
from insights_export.platforms.facebook.ads_info import AdsInfoExporter
from insights_export.utils.logging import setup_logging


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="insights-export",
        description="Export Facebook ad insights into Google Sheets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="YAML settings file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-file", help="Rotating log file path")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a saved configuration now")
    run.add_argument("config_id", help="Export configuration id")
    run.add_argument("--data-date", help="Export a single day (YYYY-MM-DD)")
    run.add_argument("--date-range", choices=["today", "yesterday", "last_7_days"])
    run.add_argument("--write-mode", choices=["append", "overwrite"])

    schedule = subparsers.add_parser("schedule", help="Run due automatic configurations")
    schedule.add_argument("--force", action="store_true", help="Ignore weekday, time and daily checks")
    schedule.add_argument("--now", help="Reference instant, ISO 8601 (default: current time)")
    schedule.add_argument("--batch-size", type=int, help="Configurations per parallel batch")

    ads = subparsers.add_parser("ads-info", help="Export ad metadata")
    ads.add_argument("--user", required=True, help="User id")
    ads.add_argument("--accounts", required=True, help="Comma-separated ad account ids")
    ads.add_argument("--spreadsheet", required=True, help="Spreadsheet id")
    ads.add_argument("--tab", required=True, help="Sheet tab name")
    ads.add_argument(
        "--mapping",
        required=True,
        help="Comma-separated key:COLUMN pairs, e.g. ad_id:A,ad_name:B,status:C",
    )

    logs = subparsers.add_parser("logs", help="Browse the export audit log")
    logs.add_argument("--user", required=True, help="User id")
    logs.add_argument("--id", dest="record_id", help="Show a single record")
    logs.add_argument("--page", type=int, default=1)
    logs.add_argument("--limit", type=int, default=15)
    logs.add_argument("--search")
    logs.add_argument("--type", dest="export_type", choices=[t.value for t in ExportType])
    logs.add_argument("--status", choices=[s.value for s in RunStatus])

    return parser.parse_args(argv)


def parse_mapping_argument(value: str) -> ColumnMapping:
    """Parse ``key:COLUMN,key:COLUMN`` into a mapping."""
    entries = []
    for pair in value.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, separator, column = pair.partition(":")
        if not separator:
            raise DataValidationError(
                "Invalid mapping pair",
                field="mapping",
                expected="key:COLUMN",
                actual=pair,
            )
        entries.append(ColumnMappingEntry(key.strip(), column.strip()))
    return ColumnMapping(entries)


def _run(args: argparse.Namespace, config: AppConfig) -> int:
    store = YamlConfigurationStore(config.configurations_file)
    saved = store.get_configuration(args.config_id)
    request = saved.to_request(ExportType.MANUAL)
    if args.date_range:
        request.date_range = DateRangePreset(args.date_range)
    if args.data_date:
        request.data_date = args.data_date
    if args.write_mode:
        request.write_mode = WriteMode(args.write_mode)

    pipeline = ExportPipeline(
        FileCredentialProvider(config.credentials_file),
        JsonLinesAuditSink(config.audit_log_file),
        config,
    )
    result = pipeline.run_export(request)
    logger.success(f"Wrote {result.rows_written} row(s); audit record {result.audit_record.id}")
    return 0


def _schedule(args: argparse.Namespace, config: AppConfig) -> int:
    audit_sink = JsonLinesAuditSink(config.audit_log_file)
    pipeline = ExportPipeline(FileCredentialProvider(config.credentials_file), audit_sink, config)
    scheduler = ExportScheduler(
        YamlConfigurationStore(config.configurations_file),
        pipeline,
        audit_sink,
        batch_size=config.scheduler_batch_size,
        window_minutes=config.schedule_window_minutes,
    )

    now = None
    if args.now:
        try:
            now = datetime.fromisoformat(args.now)
        except ValueError as e:
            raise ConfigurationError(f"Invalid --now value: {args.now}") from e

    summary = scheduler.run_scheduled_pass(now=now, force=args.force)
    print(json.dumps(summary.to_dict(), indent=2))

    if not summary.errors:
        return 0
    for error in summary.errors:
        logger.error(error)
    return 2 if summary.processed else 3


def _ads_info(args: argparse.Namespace, config: AppConfig) -> int:
    exporter = AdsInfoExporter(
        FileCredentialProvider(config.credentials_file),
        JsonLinesAuditSink(config.audit_log_file),
        config,
    )
    result = exporter.export(
        user_id=args.user,
        account_ids=[a.strip() for a in args.accounts.split(",") if a.strip()],
        spreadsheet_id=args.spreadsheet,
        sheet_tab=args.tab,
        column_mapping=parse_mapping_argument(args.mapping),
        tz_name=config.default_timezone,
    )
    logger.success(f"{result.new_ads} new ad(s), {result.status_updates} status update(s)")
    return 0


def _logs(args: argparse.Namespace, config: AppConfig) -> int:
    sink = JsonLinesAuditSink(config.audit_log_file)

    if args.record_id:
        record = sink.get_run(args.user, args.record_id)
        if record is None:
            logger.error(f"Audit record not found: {args.record_id}")
            return 1
        print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
        return 0

    page = sink.list_runs(
        args.user,
        page=args.page,
        limit=args.limit,
        search=args.search,
        export_type=ExportType(args.export_type) if args.export_type else None,
        status=RunStatus(args.status) if args.status else None,
    )
    print(json.dumps(
        {
            "logs": [record.to_dict() for record in page.records],
            "total": page.total,
            "page": page.page,
            "limit": page.limit,
            "total_pages": page.total_pages,
        },
        indent=2,
        ensure_ascii=False,
    ))
    return 0


COMMANDS = {
    "run": _run,
    "schedule": _schedule,
    "ads-info": _ads_info,
    "logs": _logs,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    args = parse_arguments(argv)

    try:
        config = ConfigurationManager(args.config).load_config(
            log_level=args.log_level,
            log_file=args.log_file,
            scheduler_batch_size=getattr(args, "batch_size", None),
        )
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(config.log_level, config.log_file)

    logger.info("=" * 60)
    logger.info(f"Insights Export - {args.command}")
    logger.info("=" * 60)

    try:
        return COMMANDS[args.command](args, config)

    except (ConfigurationError, DataValidationError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    except AuthenticationError as e:
        logger.error(f"Credential error: {e}")
        return 1

    except PipelineError as e:
        logger.error(f"Export failed: {e}")
        return 4

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
