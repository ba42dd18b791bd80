"""Facebook Graph API constants.

Constants:
- GRAPH_API_VERSION: Graph API version used for insights and ads queries
- INSIGHTS_PAGE_LIMIT: Rows requested per insights page
- BASELINE_INSIGHT_FIELDS: Fields requested on every insights query
- ACTION_PREFIX_*: action_type prefixes for composite metrics
- AD_INFO_FIELDS: Field expansion for the /ads edge
"""

from typing import Final, Tuple

from facebook_business.adobjects.ad import Ad
from facebook_business.adobjects.adsinsights import AdsInsights

GRAPH_API_BASE_URL: Final[str] = "https://graph.facebook.com"
GRAPH_API_VERSION: Final[str] = "v19.0"

INSIGHTS_PAGE_LIMIT: Final[int] = 500
ADS_PAGE_LIMIT: Final[int] = 100

INSIGHTS_LEVEL: Final[str] = "ad"
INSIGHTS_TIME_INCREMENT: Final[int] = 1

ACCOUNT_PREFIX: Final[str] = "act_"

# Always requested, whatever the column mapping
BASELINE_INSIGHT_FIELDS: Final[Tuple[str, ...]] = (
    AdsInsights.Field.date_start,
    AdsInsights.Field.account_id,
    AdsInsights.Field.account_name,
    AdsInsights.Field.ad_id,
    AdsInsights.Field.ad_name,
    AdsInsights.Field.adset_id,
    AdsInsights.Field.adset_name,
    AdsInsights.Field.campaign_id,
    AdsInsights.Field.campaign_name,
)

# action_type prefixes
ACTION_PREFIX_PURCHASE: Final[str] = "offsite_conversion.fb_pixel_purchase"
ACTION_PREFIX_MESSAGING: Final[str] = "onsite_conversion.messaging_conversation_started"
ACTION_PREFIX_VIDEO_VIEW: Final[str] = "video_view"

# /ads edge field expansion for the ads info export
AD_INFO_FIELDS: Final[Tuple[str, ...]] = (
    Ad.Field.id,
    Ad.Field.name,
    Ad.Field.adset_id,
    Ad.Field.campaign_id,
    Ad.Field.created_time,
    Ad.Field.status,
    Ad.Field.effective_status,
    "creative{name,object_story_spec,body,image_url}",
    "adset{daily_budget,lifetime_budget,targeting_optimization_types,"
    "targeting{age_min,age_max,age_range,genders,interests,flexible_spec,"
    "excluded_custom_audiences}}",
    "campaign{name,objective}",
    "insights.date_preset(lifetime){spend}",
)

# effective_status groups for the ads info status column
STATUS_ACTIVE: Final[Tuple[str, ...]] = ("ACTIVE",)
STATUS_REVIEW: Final[Tuple[str, ...]] = ("PENDING_REVIEW", "IN_PROCESS", "PREAPPROVED")
STATUS_OFF: Final[Tuple[str, ...]] = ("PAUSED", "CAMPAIGN_PAUSED", "ADSET_PAUSED")
STATUS_CONTENT_REJECTED: Final[Tuple[str, ...]] = ("DISAPPROVED",)
STATUS_ACCOUNT_PROBLEM: Final[Tuple[str, ...]] = (
    "WITH_ISSUES",
    "ADACCOUNT_DISABLED",
    "CAMPAIGN_GROUP_DISABLED",
    "NO_CREDIT_CARD_ERROR",
)
