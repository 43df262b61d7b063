"""Earned Media Value calculator.

EMV estimates the equivalent advertising spend for organic engagement:
EMV = SUM(count * rate) over every action type the platform exposes. Rates
come from the registry's rate table (ZAR per action). Not every platform
reports every action, so an absent count or rate simply contributes zero.
"""

from collections.abc import Mapping

from schemas.metrics import EmvBreakdown, PostMetrics
from services.registry import EmvRates

RateTable = Mapping[str, Mapping[str, float]]

# count key -> rate key
COUNT_TO_RATE = {
    "views": "view",
    "impressions": "impression",
    "likes": "like",
    "comments": "comment",
    "shares": "share",
    "saves": "save",
    "clicks": "click",
    "retweets": "retweet",
    "replies": "reply",
    "subscribes": "subscribe",
    "story_views": "story_view",
    "reel_views": "reel_view",
}

# breakdown bucket -> count keys that feed it
BREAKDOWN_BUCKETS = {
    "views": ("views", "impressions", "story_views", "reel_views"),
    "likes": ("likes",),
    "comments": ("comments",),
    "shares": ("shares", "retweets"),
    "other": ("saves", "clicks", "replies", "subscribes"),
}


def _value(count_key: str, counts: Mapping[str, float], rates: Mapping[str, float]) -> float:
    return (counts.get(count_key) or 0) * (rates.get(COUNT_TO_RATE[count_key]) or 0)


def calculate_emv(platform: str, counts: Mapping[str, float], rates: RateTable) -> float:
    """Flat EMV for a sparse set of action counts on one platform."""
    platform_rates = rates.get(platform) or {}
    return sum(_value(key, counts, platform_rates) for key in COUNT_TO_RATE)


def get_emv_breakdown(platform: str, counts: Mapping[str, float], rates: RateTable) -> EmvBreakdown:
    """Split the EMV of ``counts`` into the five reporting buckets.

    The buckets always add up to calculate_emv() for the same input.
    """
    platform_rates = rates.get(platform) or {}
    return EmvBreakdown(**{
        bucket: sum(_value(key, counts, platform_rates) for key in keys)
        for bucket, keys in BREAKDOWN_BUCKETS.items()
    })


def post_counts(post: PostMetrics) -> dict[str, int]:
    """Map a post's stored fields onto EMV action counts."""
    return {
        "views": post.video_views,
        "impressions": post.impressions,
        "likes": post.reactions,
        "comments": post.comments,
        "shares": post.shares,
        "saves": post.saves,
        "clicks": post.clicks,
    }


def calculate_post_emv(post: PostMetrics, rates: RateTable) -> float:
    return calculate_emv(post.platform, post_counts(post), rates)


def daily_counts(views: int, impressions: int, reactions: int, comments: int,
                 shares: int, saves: int, clicks: int) -> dict[str, int]:
    """Action counts for summed daily profile metrics."""
    return {
        "views": views,
        "impressions": impressions,
        "likes": reactions,
        "comments": comments,
        "shares": shares,
        "saves": saves,
        "clicks": clicks,
    }


def currency_symbol(emv: EmvRates) -> str:
    """Symbol EMV amounts are displayed with, e.g. "R" for ZAR."""
    return emv.currency_symbol
