"""Metric resolution for insights rows.

Every metric a user can map to a sheet column is one ``MetricSpec`` entry in
``METRICS``: the Graph API field it needs and how a string value is pulled out
of a raw insights row. Adding a metric is adding an entry.

Insights rows are never mutated here.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from facebook_business.adobjects.adsinsights import AdsInsights

from insights_export.core.constants import SKIP_COLUMN
from insights_export.platforms.facebook.constants import (
    ACTION_PREFIX_MESSAGING,
    ACTION_PREFIX_PURCHASE,
    ACTION_PREFIX_VIDEO_VIEW,
    BASELINE_INSIGHT_FIELDS,
)

# Values Graph API or upstream serializers use for "nothing"
_EMPTY_VALUES = ("", "undefined", "null")


class MetricKind(Enum):
    """How a metric value is extracted from a row."""

    TEXT = "text"                    # raw value, empty when absent
    SCALAR = "scalar"                # raw value, "0" when absent
    ACTION_PREFIX = "action_prefix"  # first action whose type starts with a prefix
    ACTION_SUM = "action_sum"        # sum of an action list's values
    DURATION = "duration"            # summed seconds rendered as MM.SS


@dataclass(frozen=True)
class MetricSpec:
    """Resolution rule for one metric key."""

    key: str
    field: str
    kind: MetricKind
    action_prefix: Optional[str] = None


def _text(key: str, field: Optional[str] = None) -> MetricSpec:
    return MetricSpec(key, field or key, MetricKind.TEXT)


def _scalar(key: str, field: Optional[str] = None) -> MetricSpec:
    return MetricSpec(key, field or key, MetricKind.SCALAR)


_F = AdsInsights.Field

_METRIC_SPECS = [
    _text("date", _F.date_start),
    _text("account_id"),
    _text("account_name"),
    _text("ad_id"),
    _text("ad_name"),
    _text("adset_id"),
    _text("adset_name"),
    _text("campaign_id"),
    _text("campaign_name"),
    _scalar("impressions"),
    _scalar("reach"),
    _scalar("clicks"),
    _scalar("spend"),
    _scalar("cpc"),
    _scalar("cpm"),
    _scalar("ctr"),
    _scalar("frequency"),
    _scalar("engagement", _F.inline_post_engagement),
    _scalar("link_clicks", _F.inline_link_clicks),
    MetricSpec("conversions", _F.actions, MetricKind.ACTION_PREFIX, ACTION_PREFIX_PURCHASE),
    MetricSpec(
        "cost_per_conversion",
        _F.cost_per_action_type,
        MetricKind.ACTION_PREFIX,
        ACTION_PREFIX_PURCHASE,
    ),
    MetricSpec("messages", _F.actions, MetricKind.ACTION_PREFIX, ACTION_PREFIX_MESSAGING),
    MetricSpec("video_3s", _F.actions, MetricKind.ACTION_PREFIX, ACTION_PREFIX_VIDEO_VIEW),
    MetricSpec("video_plays", _F.video_play_actions, MetricKind.ACTION_SUM),
    MetricSpec("video_p25", _F.video_p25_watched_actions, MetricKind.ACTION_SUM),
    MetricSpec("video_p50", _F.video_p50_watched_actions, MetricKind.ACTION_SUM),
    MetricSpec("video_p75", _F.video_p75_watched_actions, MetricKind.ACTION_SUM),
    MetricSpec("video_p95", _F.video_p95_watched_actions, MetricKind.ACTION_SUM),
    MetricSpec("video_p100", _F.video_p100_watched_actions, MetricKind.ACTION_SUM),
    MetricSpec("video_views", _F.video_p25_watched_actions, MetricKind.ACTION_SUM),
    MetricSpec("video_avg_time", _F.video_avg_time_watched_actions, MetricKind.DURATION),
]

METRICS: Dict[str, MetricSpec] = {spec.key: spec for spec in _METRIC_SPECS}


def get_metric_spec(key: str) -> MetricSpec:
    """Return the MetricSpec for a key; unknown keys read the field of the same name."""
    spec = METRICS.get(key)
    if spec is None:
        return MetricSpec(key, key, MetricKind.SCALAR)
    return spec


def requested_fields(metric_keys: Iterable[str]) -> List[str]:
    """Baseline fields plus the fields the metrics need, de-duplicated in order."""
    fields: List[str] = list(BASELINE_INSIGHT_FIELDS)
    for key in metric_keys:
        if not key or key == SKIP_COLUMN:
            continue
        field = get_metric_spec(key).field
        if field not in fields:
            fields.append(field)
    return fields


def to_float(value: Any) -> float:
    """Parse a Graph API number; anything unparseable or non-finite is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def format_number(number: float) -> str:
    """Render without a trailing ``.0`` when integral."""
    if float(number).is_integer():
        return str(int(number))
    return repr(float(number))


def format_seconds_mmss(total_seconds: float) -> str:
    """Format seconds as ``MM.SS``.

    Rounded to the nearest second and clamped at zero. Minutes are not wrapped
    into hours, so 3600 renders as ``60.00``.
    """
    seconds = max(0, int(math.floor(total_seconds + 0.5)))
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes:02d}.{seconds:02d}"


def sum_action_values(actions: Any) -> float:
    if not isinstance(actions, list):
        return 0.0
    return sum(to_float(a.get("value") if isinstance(a, dict) else None) for a in actions)


def find_action(actions: Any, prefix: str) -> Optional[Dict[str, Any]]:
    """First action whose action_type starts with ``prefix``."""
    if not isinstance(actions, list):
        return None
    for action in actions:
        if not isinstance(action, dict):
            continue
        action_type = action.get("action_type")
        if isinstance(action_type, str) and action_type.startswith(prefix):
            return action
    return None


def find_action_value(actions: Any, prefix: str) -> float:
    action = find_action(actions, prefix)
    return to_float(action.get("value")) if action else 0.0


def numeric_value(row: Dict[str, Any], key: str) -> float:
    """Numeric reading of a metric, used by the zero-row filter.

    Durations report raw seconds rather than the MM.SS rendering.
    """
    if not key or key == SKIP_COLUMN:
        return 0.0
    spec = get_metric_spec(key)
    raw = row.get(spec.field)

    if spec.kind is MetricKind.ACTION_PREFIX:
        return find_action_value(raw, spec.action_prefix)
    if spec.kind in (MetricKind.ACTION_SUM, MetricKind.DURATION):
        return sum_action_values(raw) if isinstance(raw, list) else to_float(raw)
    return to_float(raw)


def extract_value(row: Dict[str, Any], key: str) -> str:
    """String value written to the sheet for one metric of one row."""
    spec = get_metric_spec(key)
    raw = row.get(spec.field)

    if spec.kind is MetricKind.TEXT:
        return "" if raw is None else str(raw)

    if spec.kind is MetricKind.DURATION:
        seconds = sum_action_values(raw) if isinstance(raw, list) else to_float(raw)
        return format_seconds_mmss(seconds)

    if spec.kind is MetricKind.ACTION_PREFIX:
        action = find_action(raw, spec.action_prefix) or {}
        value = "" if action.get("value") is None else str(action["value"])
    elif spec.kind is MetricKind.ACTION_SUM and isinstance(raw, list):
        value = format_number(sum_action_values(raw))
    else:
        value = "" if raw is None else str(raw)

    if value in _EMPTY_VALUES:
        return "0"
    return value
