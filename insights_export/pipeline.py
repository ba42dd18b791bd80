"""Insights export pipeline.

Runs one export end to end: resolve the date range, check preconditions,
fetch insights for every account, project the rows onto the column mapping,
and write them to the destination tab in a single batch update.

Every run that passes the precondition checks leaves exactly one audit
record, whether it succeeds or fails. Failures are re-raised as
``PipelineError`` carrying the stage they happened in.
"""

from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from insights_export.core.config import AppConfig
from insights_export.core.constants import PipelineStage, RunStatus
from insights_export.core.exceptions import AuthenticationError, ExportError, PipelineError
from insights_export.core.protocols import AuditSink, CredentialProvider
from insights_export.domain.models import ExportAuditRecord, ExportResult, ExportRunRequest
from insights_export.platforms.facebook.adapter import InsightsFetcher
from insights_export.platforms.facebook.http_client import FacebookGraphClient
from insights_export.platforms.facebook.metrics import requested_fields
from insights_export.platforms.facebook.processor import InsightsProcessor
from insights_export.sheets.batcher import build_range_groups
from insights_export.sheets.client import lookup_file_name
from insights_export.sheets.writer import SheetWriter
from insights_export.utils.date_utils import resolve_date_range, utc_now

GraphClientFactory = Callable[[str], FacebookGraphClient]


def default_client_factory(config: AppConfig) -> GraphClientFactory:
    """Build Graph API clients from application settings."""

    def factory(access_token: str) -> FacebookGraphClient:
        return FacebookGraphClient(
            access_token,
            api_url=config.graph_api_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            page_limit=config.page_limit,
        )

    return factory


class ExportPipeline:
    """Extract, transform and load one insights export.

    Attributes:
        credentials: Source token and destination client lookup
        audit_sink: Where audit records go
        config: Application settings
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        audit_sink: AuditSink,
        config: Optional[AppConfig] = None,
        client_factory: Optional[GraphClientFactory] = None,
    ):
        self.credentials = credentials
        self.audit_sink = audit_sink
        self.config = config or AppConfig()
        self.client_factory = client_factory or default_client_factory(self.config)

    def run_export(self, request: ExportRunRequest, now: Optional[datetime] = None) -> ExportResult:
        """Run one export.

        Args:
            request: What to export and where
            now: Reference instant for relative date ranges (defaults to now)

        Returns:
            ExportResult with the number of rows written and the audit record

        Raises:
            DataValidationError: If the request is incomplete (no audit record)
            AuthenticationError: If credentials are missing (no audit record)
            PipelineError: If the run failed after it started (audit record written)
        """
        request.validate()
        since, until = resolve_date_range(request.date_range, request.timezone, request.data_date, now)

        token = self.credentials.get_source_token(request.user_id)
        if not token:
            raise AuthenticationError(
                "Facebook is not connected for this user",
                details={"user_id": request.user_id},
            )
        sheets_service = self.credentials.get_destination_client(request.user_id)
        if sheets_service is None:
            raise AuthenticationError(
                "Google is not connected for this user",
                details={"user_id": request.user_id},
            )

        mapping = request.column_mapping
        groups = build_range_groups(mapping.active_entries())
        fields = requested_fields(mapping.metric_keys())

        logger.info("=" * 60)
        logger.info(
            f"Export '{request.display_name}' ({request.export_type.value}, {request.write_mode.value}) "
            f"{since} -> {until}, {len(request.account_ids)} account(s)"
        )
        logger.info("=" * 60)

        stage = PipelineStage.EXTRACT
        row_count = 0
        try:
            fetcher = InsightsFetcher(
                lambda: self.client_factory(token), max_workers=self.config.max_fetch_workers
            )
            rows = fetcher.fetch(request.account_ids, since, until, fields)

            stage = PipelineStage.TRANSFORM
            frame = (
                InsightsProcessor(rows)
                .project(mapping)
                .drop_inactive_rows(self.config.stats_columns)
                .get_df()
            )
            row_count = len(frame)

            stage = PipelineStage.LOAD
            written = SheetWriter(sheets_service).write(
                groups, frame, request.write_mode, request.spreadsheet_id, request.sheet_tab
            )
        except Exception as e:
            logger.error(f"Export '{request.display_name}' failed during {stage.value}: {e}")
            record = self._record(
                request, until, row_count, RunStatus.ERROR, now, error=_error_message(e)
            )
            raise PipelineError(
                _error_message(e),
                pipeline_name=request.display_name,
                stage=stage.value,
                details={"audit_record_id": record.id},
            ) from e

        record = self._record(request, until, written, RunStatus.SUCCESS, now)
        logger.success(f"Export '{request.display_name}' completed: {written} row(s)")
        return ExportResult(rows_written=written, audit_record=record)

    def _record(
        self,
        request: ExportRunRequest,
        data_date: str,
        row_count: int,
        status: RunStatus,
        now: Optional[datetime] = None,
        error: Optional[str] = None,
    ) -> ExportAuditRecord:
        record = ExportAuditRecord(
            user_id=request.user_id,
            export_type=request.export_type,
            status=status,
            config_id=request.config_id,
            config_name=request.config_name,
            sheet_file_name=self._sheet_file_name(request),
            sheet_tab_name=request.sheet_tab,
            ad_account_count=len(request.account_ids),
            row_count=row_count,
            data_date=data_date,
            error=error,
            created_at=now or utc_now(),
        )
        try:
            self.audit_sink.record_run(record)
        except Exception:
            logger.exception(f"Failed to write audit record {record.id}")
        return record

    def _sheet_file_name(self, request: ExportRunRequest) -> str:
        try:
            drive_service: Any = self.credentials.get_drive_client(request.user_id)
        except ExportError as e:
            logger.warning(f"Drive client unavailable: {e}")
            return request.spreadsheet_id
        return lookup_file_name(drive_service, request.spreadsheet_id)


def _error_message(error: Exception) -> str:
    if isinstance(error, ExportError):
        return error.message
    return str(error) or type(error).__name__
