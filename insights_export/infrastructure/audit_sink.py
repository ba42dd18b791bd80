"""JSON-lines audit sink.

One JSON object per line, appended under a lock so concurrent scheduler
batches never interleave records. The file is the whole log; queries scan it.
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from loguru import logger

from insights_export.core.constants import ExportType, RunStatus
from insights_export.core.exceptions import ConfigurationError
from insights_export.domain.models import AuditLogPage, ExportAuditRecord

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 15


class JsonLinesAuditSink:
    """Append-only audit log stored as JSON lines."""

    def __init__(self, audit_log_file: str):
        self.audit_log_file = Path(audit_log_file)
        self._lock = threading.Lock()

    def record_run(self, record: ExportAuditRecord) -> None:
        line = json.dumps(record.to_dict(), ensure_ascii=False)
        with self._lock:
            self.audit_log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.audit_log_file, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        logger.debug(f"Audit record {record.id} written ({record.status.value})")

    def _iter_records(self) -> Iterator[ExportAuditRecord]:
        if not self.audit_log_file.exists():
            return
        with self._lock:
            with open(self.audit_log_file, "r", encoding="utf-8") as f:
                lines = f.readlines()
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                yield ExportAuditRecord.from_dict(json.loads(line))
            except (ValueError, KeyError, TypeError) as e:
                raise ConfigurationError(
                    f"Corrupt audit log line {number} in {self.audit_log_file}",
                    details={"error": str(e)},
                ) from e

    def has_successful_run(
        self,
        config_id: str,
        export_type: ExportType,
        start: datetime,
        end: datetime,
    ) -> bool:
        return any(
            record.config_id == config_id
            and record.export_type is export_type
            and record.status is RunStatus.SUCCESS
            and start <= record.created_at < end
            for record in self._iter_records()
        )

    def list_runs(
        self,
        user_id: str,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
        export_type: Optional[ExportType] = None,
        status: Optional[RunStatus] = None,
    ) -> AuditLogPage:
        """Page through a user's records, newest first.

        ``page`` is clamped to at least 1 and ``limit`` to 1..100. ``search``
        matches configuration name, sheet file name or tab name,
        case-insensitively.
        """
        page = max(1, page)
        limit = min(MAX_PAGE_SIZE, max(1, limit))
        needle = (search or "").lower()

        def matches(record: ExportAuditRecord) -> bool:
            if record.user_id != user_id:
                return False
            if export_type is not None and record.export_type is not export_type:
                return False
            if status is not None and record.status is not status:
                return False
            if needle:
                haystack = (record.config_name, record.sheet_file_name, record.sheet_tab_name)
                return any(needle in (value or "").lower() for value in haystack)
            return True

        records: List[ExportAuditRecord] = sorted(
            (r for r in self._iter_records() if matches(r)),
            key=lambda r: r.created_at,
            reverse=True,
        )
        offset = (page - 1) * limit
        return AuditLogPage(
            records=records[offset:offset + limit],
            total=len(records),
            page=page,
            limit=limit,
        )

    def get_run(self, user_id: str, record_id: str) -> Optional[ExportAuditRecord]:
        """Return one record if it exists and belongs to the user."""
        for record in self._iter_records():
            if record.id == record_id and record.user_id == user_id:
                return record
        return None
