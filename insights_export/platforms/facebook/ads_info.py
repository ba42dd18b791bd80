"""Ads info export.

Exports ad metadata from the ``/ads`` edge (not insights) into a tab keyed
by ad id in column A. Ads not yet in the tab are appended; ads already
present only get their status column refreshed. An account whose ads cannot
be fetched is logged and skipped.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from insights_export.core.config import AppConfig
from insights_export.core.constants import (
    DATE_FORMAT_ISO,
    DEFAULT_TIMEZONE,
    ExportType,
    PipelineStage,
    RunStatus,
)
from insights_export.core.exceptions import (
    AuthenticationError,
    DataValidationError,
    ExportError,
    PipelineError,
)
from insights_export.core.protocols import AuditSink, CredentialProvider
from insights_export.domain.models import AdsInfoResult, ColumnMapping, ExportAuditRecord
from insights_export.platforms.facebook.constants import (
    AD_INFO_FIELDS,
    STATUS_ACCOUNT_PROBLEM,
    STATUS_ACTIVE,
    STATUS_CONTENT_REJECTED,
    STATUS_OFF,
    STATUS_REVIEW,
)
from insights_export.platforms.facebook.http_client import FacebookGraphClient
from insights_export.platforms.facebook.metrics import format_number, to_float
from insights_export.pipeline import default_client_factory
from insights_export.sheets.batcher import build_range_groups, quote_tab
from insights_export.sheets.client import lookup_file_name
from insights_export.sheets.writer import SheetWriter
from insights_export.utils.date_utils import to_local

ACCOUNT_NAME_KEY = "_account_name"
STATUS_KEY = "status"

GENDER_MALE = 1
GENDER_FEMALE = 2


# ------------------------------------------------------------------
# Field extraction
# ------------------------------------------------------------------

def _targeting(ad: Dict[str, Any]) -> Dict[str, Any]:
    adset = ad.get("adset") or {}
    return adset.get("targeting") or {}


def _names(items: Any) -> List[str]:
    if not isinstance(items, list):
        return []
    return [str(item["name"]) for item in items if isinstance(item, dict) and item.get("name")]


def parse_gender(targeting: Dict[str, Any]) -> str:
    """Male, Female, or All when both or neither are targeted."""
    if not targeting:
        return ""
    genders = targeting.get("genders") or []
    if GENDER_MALE in genders and GENDER_FEMALE not in genders:
        return "Male"
    if GENDER_FEMALE in genders and GENDER_MALE not in genders:
        return "Female"
    return "All"


def parse_age(targeting: Dict[str, Any]) -> str:
    """Age span like ``25-44``; Advantage+ ``age_range`` and flexible specs win."""
    age_min = targeting.get("age_min")
    age_max = targeting.get("age_max")

    age_range = targeting.get("age_range")
    if isinstance(age_range, list) and len(age_range) == 2:
        age_min, age_max = age_range

    for spec in targeting.get("flexible_spec") or []:
        if "age_min" in spec:
            age_min = spec["age_min"]
        if "age_max" in spec:
            age_max = spec["age_max"]

    if not age_min and not age_max:
        return ""
    low = 18 if age_min is None else age_min
    high = "65+" if age_max is None else age_max
    return f"{low}-{high}"


def parse_interests(targeting: Dict[str, Any]) -> str:
    """Interest and behavior names, de-duplicated in first-seen order."""
    names = _names(targeting.get("interests"))
    for spec in targeting.get("flexible_spec") or []:
        names.extend(_names(spec.get("interests")))
        names.extend(_names(spec.get("behaviors")))
    return ", ".join(dict.fromkeys(names))


def parse_excluded_audiences(targeting: Dict[str, Any]) -> str:
    return ", ".join(_names(targeting.get("excluded_custom_audiences")))


def parse_page_id(ad: Dict[str, Any]) -> str:
    spec = (ad.get("creative") or {}).get("object_story_spec") or {}
    page_id = spec.get("page_id")
    return "" if page_id is None else str(page_id)


def parse_caption(ad: Dict[str, Any]) -> str:
    """Link message, photo caption or video message, else the creative body."""
    creative = ad.get("creative") or {}
    spec = creative.get("object_story_spec") or {}
    for section, key in (("link_data", "message"), ("photo_data", "caption"), ("video_data", "message")):
        value = (spec.get(section) or {}).get(key)
        if value:
            return str(value)
    body = creative.get("body")
    return "" if body is None else str(body)


def parse_budget(ad: Dict[str, Any]) -> str:
    """Daily budget, else lifetime budget, converted from minor units."""
    adset = ad.get("adset")
    if not adset:
        return ""
    for key in ("daily_budget", "lifetime_budget"):
        value = adset.get(key)
        if value and str(value) != "0":
            return format_number(int(to_float(value)) / 100)
    return ""


def format_created_date(timestamp: Optional[str]) -> str:
    """RFC 3339 timestamp to its UTC calendar date."""
    if not timestamp:
        return ""
    try:
        moment = datetime.strptime(timestamp, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        return timestamp
    return moment.astimezone(timezone.utc).strftime(DATE_FORMAT_ISO)


def custom_status(ad: Dict[str, Any]) -> str:
    """Collapse Graph API delivery statuses into the report's status labels.

    Rejected or blocked ads that already spent are reported as Inactive,
    otherwise as Fail.
    """
    effective = str(ad.get("effective_status") or ad.get("status") or "").upper()
    insights = (ad.get("insights") or {}).get("data") or [{}]
    has_stats = to_float(insights[0].get("spend")) > 0

    if effective in STATUS_ACTIVE:
        return "Active"
    if effective in STATUS_REVIEW:
        return "Review"
    if effective in STATUS_OFF:
        return "Ads off"
    if effective in STATUS_CONTENT_REJECTED:
        return "Inactive(Content)" if has_stats else "Fail(Content)"
    if effective in STATUS_ACCOUNT_PROBLEM:
        return "Inactive(Acc/Page)" if has_stats else "Fail(Acc/Page)"
    if not effective or effective == "UNKNOWN":
        return "Review"
    return effective


def _text(value: Any) -> str:
    return "" if value is None else str(value)


_AD_FIELDS: Dict[str, Callable[[Dict[str, Any]], str]] = {
    "ad_id": lambda ad: _text(ad.get("id")),
    "ad_name": lambda ad: _text(ad.get("name")),
    "page_id": parse_page_id,
    "account_name": lambda ad: _text(ad.get(ACCOUNT_NAME_KEY)),
    "creative_name": lambda ad: _text((ad.get("creative") or {}).get("name")),
    "campaign_name": lambda ad: _text((ad.get("campaign") or {}).get("name")),
    "sex": lambda ad: parse_gender(_targeting(ad)),
    "age": lambda ad: parse_age(_targeting(ad)),
    "interests": lambda ad: parse_interests(_targeting(ad)),
    "excluded_interests": lambda ad: parse_excluded_audiences(_targeting(ad)),
    "budget": parse_budget,
    "created_time": lambda ad: format_created_date(ad.get("created_time")),
    "captions": parse_caption,
    STATUS_KEY: custom_status,
}


def ad_field_value(ad: Dict[str, Any], key: str) -> str:
    """Cell value for one ads info column; unknown keys are blank."""
    extractor = _AD_FIELDS.get(key)
    return extractor(ad) if extractor else ""


# ------------------------------------------------------------------
# Exporter
# ------------------------------------------------------------------

class AdsInfoExporter:
    """Appends new ads and refreshes the status of known ads in a tab."""

    def __init__(
        self,
        credentials: CredentialProvider,
        audit_sink: AuditSink,
        config: Optional[AppConfig] = None,
        client_factory: Optional[Callable[[str], FacebookGraphClient]] = None,
    ):
        self.credentials = credentials
        self.audit_sink = audit_sink
        self.config = config or AppConfig()
        self.client_factory = client_factory or default_client_factory(self.config)

    def fetch_ads(self, client: FacebookGraphClient, account_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Ads of every account, tagged with the account name; failing accounts are skipped."""
        ads: List[Dict[str, Any]] = []
        for account_id in account_ids:
            try:
                account_name = client.get_account_name(account_id)
                account_ads = client.get_ads(account_id, AD_INFO_FIELDS)
            except ExportError as e:
                logger.warning(f"Failed to fetch ads for {account_id}: {e}")
                continue
            ads.extend({**ad, ACCOUNT_NAME_KEY: account_name} for ad in account_ads)
        return ads

    def export(
        self,
        user_id: str,
        account_ids: Sequence[str],
        spreadsheet_id: str,
        sheet_tab: str,
        column_mapping: ColumnMapping,
        tz_name: str = DEFAULT_TIMEZONE,
    ) -> AdsInfoResult:
        """Export ads metadata for the given accounts.

        Raises:
            DataValidationError: If the request is incomplete (no audit record)
            AuthenticationError: If credentials are missing (no audit record)
            PipelineError: If reading or writing the sheet fails (audit record written)
        """
        if not isinstance(column_mapping, ColumnMapping):
            column_mapping = ColumnMapping.from_raw(column_mapping)
        if not account_ids:
            raise DataValidationError("At least one ad account is required", field="account_ids")
        if not spreadsheet_id:
            raise DataValidationError("Spreadsheet id is required", field="spreadsheet_id")
        if not sheet_tab:
            raise DataValidationError("Sheet tab is required", field="sheet_tab")
        active = column_mapping.active_entries()
        if not active:
            raise DataValidationError("Column mapping has no active entries", field="column_mapping")

        token = self.credentials.get_source_token(user_id)
        sheets_service = self.credentials.get_destination_client(user_id)
        if not token or sheets_service is None:
            raise AuthenticationError(
                "Facebook or Google is not connected for this user",
                details={"user_id": user_id},
            )

        data_date = to_local(None, tz_name).strftime(DATE_FORMAT_ISO)
        stage = PipelineStage.EXTRACT
        try:
            ads = self.fetch_ads(self.client_factory(token), account_ids)
            writer = SheetWriter(sheets_service)
            existing_ids = [
                str(row[0]) if row else ""
                for row in writer.read_column_values(spreadsheet_id, sheet_tab, "A")
            ]

            stage = PipelineStage.TRANSFORM
            id_to_row = {ad_id: number for number, ad_id in enumerate(existing_ids, start=1) if ad_id}

            new_ads = [ad for ad in ads if ad.get("id") and str(ad["id"]) not in id_to_row]
            known_ads = [ad for ad in ads if ad.get("id") and str(ad["id"]) in id_to_row]

            data: List[Dict[str, Any]] = []
            if new_ads:
                start_row = (len(existing_ids) or 1) + 1
                end_row = start_row + len(new_ads) - 1
                for group in build_range_groups(active):
                    data.append({
                        "range": group.a1_range(sheet_tab, start_row, end_row),
                        "values": [
                            [ad_field_value(ad, entry.metric_key) for entry in group.entries]
                            for ad in new_ads
                        ],
                    })

            status_column = next((e.sheet_column for e in active if e.metric_key == STATUS_KEY), None)
            if known_ads and status_column:
                for ad in known_ads:
                    row_number = id_to_row[str(ad["id"])]
                    data.append({
                        "range": f"{quote_tab(sheet_tab)}!{status_column}{row_number}",
                        "values": [[custom_status(ad)]],
                    })

            stage = PipelineStage.LOAD
            writer.batch_update(spreadsheet_id, data)
        except Exception as e:
            message = e.message if isinstance(e, ExportError) else str(e)
            logger.error(f"Ads info export failed during {stage.value}: {message}")
            record = self._record(user_id, spreadsheet_id, sheet_tab, account_ids, 0, data_date,
                                  RunStatus.ERROR, message)
            raise PipelineError(
                message,
                pipeline_name=ExportType.ADS_INFO.value,
                stage=stage.value,
                details={"audit_record_id": record.id},
            ) from e

        updates = len(known_ads) if status_column else 0
        record = self._record(user_id, spreadsheet_id, sheet_tab, account_ids, len(new_ads), data_date,
                              RunStatus.SUCCESS)
        logger.success(
            f"Ads info export: {len(new_ads)} new ad(s), {updates} status update(s), "
            f"{len(ads) - len(new_ads)} already present"
        )
        return AdsInfoResult(new_ads=len(new_ads), status_updates=updates, audit_record=record)

    def _record(
        self,
        user_id: str,
        spreadsheet_id: str,
        sheet_tab: str,
        account_ids: Sequence[str],
        row_count: int,
        data_date: str,
        status: RunStatus,
        error: Optional[str] = None,
    ) -> ExportAuditRecord:
        try:
            drive_service = self.credentials.get_drive_client(user_id)
        except ExportError as e:
            logger.warning(f"Drive client unavailable: {e}")
            drive_service = None
        record = ExportAuditRecord(
            user_id=user_id,
            export_type=ExportType.ADS_INFO,
            status=status,
            sheet_file_name=lookup_file_name(drive_service, spreadsheet_id),
            sheet_tab_name=sheet_tab,
            ad_account_count=len(account_ids),
            row_count=row_count,
            data_date=data_date,
            error=error,
        )
        try:
            self.audit_sink.record_run(record)
        except Exception:
            logger.exception(f"Failed to write audit record {record.id}")
        return record
