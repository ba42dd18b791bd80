"""Tests for metric resolution, value coercion and row projection."""

from loguru import logger

from insights_export.domain.models import ColumnMapping
from insights_export.platforms.facebook.metrics import (
    METRICS,
    MetricKind,
    extract_value,
    format_number,
    format_seconds_mmss,
    numeric_value,
    requested_fields,
)
from insights_export.platforms.facebook.processor import InsightsProcessor, project_row

from conftest import insight_row


def test_video_time_formatting():
    """Seconds render as MM.SS, rounded, clamped, minutes not wrapped."""
    assert format_seconds_mmss(125) == "02.05"
    assert format_seconds_mmss(59) == "00.59"
    assert format_seconds_mmss(3600) == "60.00"
    assert format_seconds_mmss(0) == "00.00"
    assert format_seconds_mmss(-4) == "00.00"
    assert format_seconds_mmss(59.5) == "01.00"
    assert format_seconds_mmss(12.4) == "00.12"
    logger.success("✓ Video time formatting test PASSED")


def test_number_rendering():
    assert format_number(5.0) == "5"
    assert format_number(12.5) == "12.5"
    assert format_number(0) == "0"


def test_numeric_metrics_coerce_empty_to_zero():
    """Non-text metrics never render as empty, null or undefined."""
    row = insight_row(spend="", impressions=None, clicks="undefined", reach="null")
    for key in ("spend", "impressions", "clicks", "reach", "cpc", "frequency"):
        assert extract_value(row, key) == "0", f"{key} should coerce to 0"


def test_text_metrics_keep_empty():
    row = insight_row()
    row["adset_name"] = None
    assert extract_value(row, "adset_name") == ""
    assert extract_value(row, "date") == "2024-01-15"
    assert extract_value(row, "campaign_name") == "Campaign"


def test_scalar_values_pass_through():
    row = insight_row(spend="12.34", inline_post_engagement="7", inline_link_clicks="3")
    assert extract_value(row, "spend") == "12.34"
    assert extract_value(row, "engagement") == "7"
    assert extract_value(row, "link_clicks") == "3"


def test_action_prefix_metrics():
    """First action whose type starts with the prefix wins."""
    row = insight_row(
        actions=[
            {"action_type": "link_click", "value": "40"},
            {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "3"},
            {"action_type": "onsite_conversion.messaging_conversation_started_7d", "value": "5"},
            {"action_type": "video_view", "value": "120"},
        ],
        cost_per_action_type=[
            {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "4.5"},
        ],
    )
    assert extract_value(row, "conversions") == "3"
    assert extract_value(row, "messages") == "5"
    assert extract_value(row, "video_3s") == "120"
    assert extract_value(row, "cost_per_conversion") == "4.5"


def test_action_prefix_keeps_value_text():
    """Trailing zeros and long decimals are written exactly as the API returned them."""
    row = insight_row(
        actions=[{"action_type": "offsite_conversion.fb_pixel_purchase", "value": "12345678901234567890"}],
        cost_per_action_type=[{"action_type": "offsite_conversion.fb_pixel_purchase", "value": "12.50"}],
    )
    assert extract_value(row, "cost_per_conversion") == "12.50"
    assert extract_value(row, "conversions") == "12345678901234567890"
    assert numeric_value(row, "cost_per_conversion") == 12.5


def test_action_prefix_missing_is_zero():
    row = insight_row(actions=[{"action_type": "link_click", "value": "40"}])
    assert extract_value(row, "conversions") == "0"
    assert extract_value(insight_row(), "messages") == "0"
    assert extract_value(insight_row(), "cost_per_conversion") == "0"


def test_action_sum_metrics():
    row = insight_row(
        video_play_actions=[{"action_type": "video_view", "value": "10"}, {"action_type": "x", "value": "5"}],
        video_p25_watched_actions=[{"action_type": "video_view", "value": "8"}],
        video_p100_watched_actions="4",
    )
    assert extract_value(row, "video_plays") == "15"
    assert extract_value(row, "video_p25") == "8"
    assert extract_value(row, "video_views") == "8"
    assert extract_value(row, "video_p100") == "4"
    assert extract_value(row, "video_p50") == "0"


def test_duration_metric():
    row = insight_row(video_avg_time_watched_actions=[{"action_type": "video_view", "value": "125"}])
    assert extract_value(row, "video_avg_time") == "02.05"
    assert numeric_value(row, "video_avg_time") == 125
    assert extract_value(insight_row(), "video_avg_time") == "00.00"


def test_unknown_key_reads_field_verbatim():
    row = insight_row(custom_metric="9")
    assert extract_value(row, "custom_metric") == "9"
    assert extract_value(row, "missing_metric") == "0"


def test_metric_table_kinds():
    assert METRICS["date"].field == "date_start"
    assert METRICS["date"].kind is MetricKind.TEXT
    assert METRICS["video_views"].field == "video_p25_watched_actions"
    assert METRICS["cost_per_conversion"].field == "cost_per_action_type"
    assert METRICS["video_avg_time"].kind is MetricKind.DURATION


def test_requested_fields_baseline_and_dedup():
    fields = requested_fields(["date", "conversions", "messages", "spend", "__skip__", "video_views", "video_p25"])
    assert fields[:9] == [
        "date_start", "account_id", "account_name", "ad_id", "ad_name",
        "adset_id", "adset_name", "campaign_id", "campaign_name",
    ]
    assert fields.count("actions") == 1
    assert fields.count("video_p25_watched_actions") == 1
    assert "spend" in fields
    assert "__skip__" not in fields


def test_project_row_skips_inactive_entries():
    mapping = ColumnMapping.from_raw([
        {"fbCol": "date", "sheetCol": "A"},
        {"fbCol": "__skip__", "sheetCol": "B"},
        {"fbCol": "spend", "sheetCol": "C"},
    ])
    assert project_row(insight_row(spend="2"), mapping) == [(0, "2024-01-15"), (2, "2")]


def test_statistics_zero_filtering():
    """Rows with no positive statistic in F..T are dropped."""
    logger.info("=" * 60)
    logger.info("TEST: statistics-zero filtering")
    logger.info("=" * 60)

    mapping = ColumnMapping.from_raw([
        {"fbCol": "date", "sheetCol": "A"},
        {"fbCol": "ad_name", "sheetCol": "B"},
        {"fbCol": "impressions", "sheetCol": "F"},
        {"fbCol": "spend", "sheetCol": "G"},
    ])
    rows = [
        insight_row(ad_id="1", impressions="0", spend="0"),
        insight_row(ad_id="2", impressions="10", spend="0"),
        insight_row(ad_id="3", impressions="", spend="1.5"),
        insight_row(ad_id="4"),
    ]
    df = InsightsProcessor(rows).project(mapping).drop_inactive_rows(("F", "G", "H")).get_df()

    assert list(df.columns) == ["A", "B", "F", "G"]
    assert df["B"].tolist() == ["Ad 2", "Ad 3"], f"Unexpected rows: {df['B'].tolist()}"
    assert df["F"].tolist() == ["10", "0"]
    logger.success("✓ Statistics-zero filtering test PASSED")


def test_no_statistics_columns_keeps_every_row():
    mapping = ColumnMapping.from_raw([{"fbCol": "date", "sheetCol": "A"}, {"fbCol": "spend", "sheetCol": "B"}])
    rows = [insight_row(spend="0"), insight_row(spend="0")]
    df = InsightsProcessor(rows).project(mapping).drop_inactive_rows(("F", "G")).get_df()
    assert len(df) == 2


def test_projection_does_not_mutate_rows():
    row = insight_row(actions=[{"action_type": "video_view", "value": "3"}])
    snapshot = dict(row)
    mapping = ColumnMapping.from_raw([{"fbCol": "video_3s", "sheetCol": "F"}])
    InsightsProcessor([row]).project(mapping).drop_inactive_rows(("F",))
    assert row == snapshot
