"""Time zone aware date helpers for export runs and the scheduler."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from insights_export.core.constants import DATE_FORMAT_ISO, DateRangePreset
from insights_export.core.exceptions import ConfigurationError, DataValidationError


def resolve_timezone(name: str) -> ZoneInfo:
    """
    Look up an IANA time zone.

    Args:
        name: Zone name such as "Asia/Bangkok"

    Returns:
        ZoneInfo instance

    Raises:
        ConfigurationError: If the zone is unknown
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(
            f"Unknown time zone: {name}",
            details={"error": str(e)},
        ) from e


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_local(moment: Optional[datetime], tz_name: str) -> datetime:
    """
    Project an instant into the given zone.

    Naive datetimes are taken to be UTC.
    """
    if moment is None:
        moment = utc_now()
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(resolve_timezone(tz_name))


def local_day_bounds(moment: Optional[datetime], tz_name: str) -> Tuple[datetime, datetime]:
    """
    Return the UTC start and end of the local calendar day containing ``moment``.

    The end bound is exclusive.
    """
    local = to_local(moment, tz_name)
    tz = resolve_timezone(tz_name)
    start_local = datetime.combine(local.date(), time.min, tzinfo=tz)
    end_local = datetime.combine(local.date() + timedelta(days=1), time.min, tzinfo=tz)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def parse_date(value: str, field: str = "data_date") -> date:
    """Parse a YYYY-MM-DD string, raising DataValidationError otherwise."""
    try:
        return datetime.strptime(value, DATE_FORMAT_ISO).date()
    except (TypeError, ValueError):
        raise DataValidationError(
            "Invalid date",
            field=field,
            expected="YYYY-MM-DD",
            actual=value,
        )


def resolve_date_range(
    preset: Optional[DateRangePreset],
    tz_name: str,
    data_date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[str, str]:
    """
    Turn an explicit date or a named range into an inclusive (since, until).

    An explicit ``data_date`` wins over ``preset``. Relative ranges are
    computed from the local calendar day in ``tz_name``; ``last_7_days``
    spans today minus seven days through today.

    Returns:
        Tuple of (since, until) in YYYY-MM-DD format

    Raises:
        DataValidationError: If neither a date nor a range is given
    """
    if data_date:
        day = parse_date(data_date)
        return day.strftime(DATE_FORMAT_ISO), day.strftime(DATE_FORMAT_ISO)

    if preset is None:
        raise DataValidationError(
            "Either a data date or a date range is required",
            field="date_range",
        )

    today = to_local(now, tz_name).date()

    if preset is DateRangePreset.TODAY:
        since = until = today
    elif preset is DateRangePreset.YESTERDAY:
        since = until = today - timedelta(days=1)
    elif preset is DateRangePreset.LAST_7_DAYS:
        since, until = today - timedelta(days=7), today
    else:
        raise DataValidationError("Unsupported date range", field="date_range", actual=preset)

    return since.strftime(DATE_FORMAT_ISO), until.strftime(DATE_FORMAT_ISO)
