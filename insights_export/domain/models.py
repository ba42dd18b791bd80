"""Domain models for insights exports.

These models describe what a run needs (request, saved configuration,
column mapping) and what it leaves behind (audit record, results).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from insights_export.core.constants import (
    DEFAULT_SCHEDULE_TIME,
    DEFAULT_TIMEZONE,
    SKIP_COLUMN,
    DateRangePreset,
    ExportType,
    RunStatus,
    WriteMode,
)
from insights_export.core.exceptions import ConfigurationError, DataValidationError
from insights_export.sheets.columns import column_to_index, normalize_column


def _parse_enum(enum_cls, value, field_name: str):
    """Accept an enum member or its string value."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Invalid value for {field_name}: {value}",
            details={"accepted": [member.value for member in enum_cls]},
        )


@dataclass(frozen=True)
class ColumnMappingEntry:
    """One (metric key, sheet column) pair."""

    metric_key: str
    sheet_column: str

    @property
    def is_active(self) -> bool:
        """Inactive entries (skip sentinel or blank) leave the column untouched."""
        return bool(self.metric_key) and bool(self.sheet_column) and self.metric_key != SKIP_COLUMN

    @property
    def column_index(self) -> int:
        return column_to_index(self.sheet_column)


@dataclass
class ColumnMapping:
    """Ordered column mapping.

    Each sheet column is referenced by at most one active entry.
    """

    entries: List[ColumnMappingEntry] = field(default_factory=list)

    def __post_init__(self):
        seen: Dict[str, str] = {}
        normalized = []
        for entry in self.entries:
            if entry.is_active:
                column = normalize_column(entry.sheet_column)
                if column in seen:
                    raise DataValidationError(
                        "Sheet column mapped more than once",
                        field="sheet_column",
                        details={
                            "column": column,
                            "metrics": [seen[column], entry.metric_key],
                        },
                    )
                seen[column] = entry.metric_key
                entry = ColumnMappingEntry(entry.metric_key.strip(), column)
            normalized.append(entry)
        self.entries = normalized

    @classmethod
    def from_raw(cls, raw: Optional[Iterable[Any]]) -> "ColumnMapping":
        """Build a mapping from stored dicts or (metric, column) pairs.

        Dicts may use the stored keys ``fbCol``/``sheetCol`` or
        ``metric``/``column``.
        """
        entries = []
        for item in raw or []:
            if isinstance(item, ColumnMappingEntry):
                entries.append(item)
            elif isinstance(item, dict):
                metric = item.get("fbCol", item.get("metric")) or ""
                column = item.get("sheetCol", item.get("column")) or ""
                entries.append(ColumnMappingEntry(str(metric), str(column)))
            else:
                metric, column = item
                entries.append(ColumnMappingEntry(str(metric or ""), str(column or "")))
        return cls(entries)

    def active_entries(self) -> List[ColumnMappingEntry]:
        return [entry for entry in self.entries if entry.is_active]

    def metric_keys(self) -> List[str]:
        """Active metric keys, first occurrence order."""
        keys: List[str] = []
        for entry in self.active_entries():
            if entry.metric_key not in keys:
                keys.append(entry.metric_key)
        return keys

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ExportRunRequest:
    """Everything a single export run needs."""

    user_id: str
    account_ids: List[str]
    spreadsheet_id: str
    sheet_tab: str
    column_mapping: ColumnMapping
    write_mode: WriteMode = WriteMode.APPEND
    data_date: Optional[str] = None
    date_range: Optional[DateRangePreset] = None
    timezone: str = DEFAULT_TIMEZONE
    export_type: ExportType = ExportType.MANUAL
    config_id: Optional[str] = None
    config_name: Optional[str] = None

    def __post_init__(self):
        self.write_mode = _parse_enum(WriteMode, self.write_mode, "write_mode")
        self.date_range = _parse_enum(DateRangePreset, self.date_range, "date_range")
        self.export_type = _parse_enum(ExportType, self.export_type, "export_type")
        if not isinstance(self.column_mapping, ColumnMapping):
            self.column_mapping = ColumnMapping.from_raw(self.column_mapping)
        self.account_ids = [str(a).strip() for a in self.account_ids or [] if str(a).strip()]

    def validate(self) -> None:
        """Check preconditions that must hold before any remote call.

        Raises:
            DataValidationError: On the first missing or empty field
        """
        if not self.user_id:
            raise DataValidationError("User id is required", field="user_id")
        if not self.account_ids:
            raise DataValidationError("At least one ad account is required", field="account_ids")
        if not self.spreadsheet_id:
            raise DataValidationError("Spreadsheet id is required", field="spreadsheet_id")
        if not self.sheet_tab:
            raise DataValidationError("Sheet tab is required", field="sheet_tab")
        if not self.column_mapping.active_entries():
            raise DataValidationError(
                "Column mapping has no active entries",
                field="column_mapping",
                details={"entries": len(self.column_mapping)},
            )
        if not self.data_date and self.date_range is None:
            raise DataValidationError(
                "Either a data date or a date range is required",
                field="date_range",
            )

    @property
    def display_name(self) -> str:
        return self.config_name or self.export_type.value


@dataclass
class ExportAuditRecord:
    """Append-only record of one export run."""

    user_id: str
    export_type: ExportType
    status: RunStatus
    config_id: Optional[str] = None
    config_name: Optional[str] = None
    sheet_file_name: Optional[str] = None
    sheet_tab_name: Optional[str] = None
    ad_account_count: int = 0
    row_count: int = 0
    data_date: Optional[str] = None
    error: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.export_type = _parse_enum(ExportType, self.export_type, "export_type")
        self.status = _parse_enum(RunStatus, self.status, "status")
        if self.created_at.tzinfo is None:
            self.created_at = self.created_at.replace(tzinfo=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "config_id": self.config_id,
            "config_name": self.config_name,
            "export_type": self.export_type.value,
            "sheet_file_name": self.sheet_file_name,
            "sheet_tab_name": self.sheet_tab_name,
            "ad_account_count": self.ad_account_count,
            "row_count": self.row_count,
            "data_date": self.data_date,
            "status": self.status.value,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExportAuditRecord":
        values = dict(data)
        values["created_at"] = datetime.fromisoformat(values["created_at"])
        return cls(**values)


@dataclass
class ExportConfiguration:
    """A saved export definition, optionally scheduled."""

    id: str
    name: str
    user_id: str
    account_ids: List[str]
    spreadsheet_id: str
    sheet_tab: str
    column_mapping: ColumnMapping
    write_mode: WriteMode = WriteMode.APPEND
    date_range: DateRangePreset = DateRangePreset.TODAY
    timezone: str = DEFAULT_TIMEZONE
    is_auto: bool = False
    auto_time: str = DEFAULT_SCHEDULE_TIME
    auto_days: List[int] = field(default_factory=list)  # 0 = Sunday; empty = every day

    def __post_init__(self):
        self.write_mode = _parse_enum(WriteMode, self.write_mode, "write_mode")
        self.date_range = _parse_enum(DateRangePreset, self.date_range, "date_range")
        if not isinstance(self.column_mapping, ColumnMapping):
            self.column_mapping = ColumnMapping.from_raw(self.column_mapping)
        for day in self.auto_days:
            if not isinstance(day, int) or not 0 <= day <= 6:
                raise ConfigurationError(
                    f"Invalid weekday in auto_days for configuration {self.id}: {day}",
                    details={"expected": "0 (Sunday) .. 6 (Saturday)"},
                )
        self.schedule_time()

    def schedule_time(self) -> Tuple[int, int]:
        """Parse ``auto_time`` into (hour, minute)."""
        try:
            hour_text, minute_text = self.auto_time.split(":")
            hour, minute = int(hour_text), int(minute_text)
        except (AttributeError, ValueError):
            raise ConfigurationError(
                f"Invalid auto_time for configuration {self.id}: {self.auto_time}",
                details={"expected": "HH:MM"},
            )
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ConfigurationError(
                f"Invalid auto_time for configuration {self.id}: {self.auto_time}",
                details={"expected": "HH:MM"},
            )
        return hour, minute

    def to_request(self, export_type: ExportType = ExportType.AUTO) -> ExportRunRequest:
        return ExportRunRequest(
            user_id=self.user_id,
            account_ids=list(self.account_ids),
            spreadsheet_id=self.spreadsheet_id,
            sheet_tab=self.sheet_tab,
            column_mapping=self.column_mapping,
            write_mode=self.write_mode,
            date_range=self.date_range,
            timezone=self.timezone,
            export_type=export_type,
            config_id=self.id,
            config_name=self.name,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExportConfiguration":
        """Build from a stored mapping (YAML / JSON)."""
        missing = [k for k in ("id", "name", "user_id") if not data.get(k)]
        if missing:
            raise ConfigurationError(
                f"Export configuration missing required keys: {', '.join(missing)}",
                details={"configuration": data.get("id") or data.get("name")},
            )
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            user_id=str(data["user_id"]),
            account_ids=[str(a) for a in data.get("account_ids") or []],
            spreadsheet_id=data.get("spreadsheet_id", ""),
            sheet_tab=data.get("sheet_tab", ""),
            column_mapping=ColumnMapping.from_raw(data.get("column_mapping")),
            write_mode=data.get("write_mode", WriteMode.APPEND.value),
            date_range=data.get("date_range") or DateRangePreset.TODAY.value,
            timezone=data.get("timezone") or DEFAULT_TIMEZONE,
            is_auto=bool(data.get("is_auto", False)),
            auto_time=str(data.get("auto_time") or DEFAULT_SCHEDULE_TIME),
            auto_days=list(data.get("auto_days") or []),
        )


@dataclass
class ExportResult:
    """Outcome of a successful run."""

    rows_written: int
    audit_record: ExportAuditRecord


@dataclass
class AdsInfoResult:
    """Outcome of an ads info export."""

    new_ads: int
    status_updates: int
    audit_record: ExportAuditRecord


@dataclass
class ScheduledPassSummary:
    """What one scheduler invocation did."""

    processed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    ran_config_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "ran_config_ids": list(self.ran_config_ids),
        }


@dataclass
class AuditLogPage:
    """One page of audit records, newest first."""

    records: List[ExportAuditRecord]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0
