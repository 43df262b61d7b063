"""Small numeric helpers shared by the analytics builders."""

import math
from collections.abc import Sequence


def compute_delta(current: float, previous: float) -> float | None:
    """Percentage change between two periods.

    None when there is no baseline and nothing happened (0 vs 0), 100 when
    something happened against an empty baseline. The UI renders None as
    "N/A", so the two cases must stay distinct.
    """
    if previous == 0:
        return 100.0 if current > 0 else None
    return (current - previous) / previous * 100


def percent_change(current: float, previous: float) -> float:
    """Like compute_delta, but an empty baseline with no activity is 0%."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def growth_direction(percentage: float) -> str:
    # +/-0.5% deadband
    if percentage > 0.5:
        return "up"
    if percentage < -0.5:
        return "down"
    return "flat"


def growth_label(percentage: float) -> str:
    if percentage > 20:
        return "Strong Growth"
    if percentage >= 5:
        return "Healthy Growth"
    if percentage >= 0:
        return "Stable"
    if percentage >= -5:
        return "Slight Decline"
    return "Needs Attention"


def engagement_rate(engagements: float, impressions: float) -> float:
    return engagements / impressions * 100 if impressions > 0 else 0.0


def mean_and_std(values: Sequence[float]) -> tuple[float, float]:
    """Population mean and standard deviation; (0, 0) for no values."""
    if not values:
        return 0.0, 0.0
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(variance)


def round_percentages(values: Sequence[float]) -> list[float]:
    """Percent shares to one decimal that add up to exactly 100.

    Uses the largest-remainder method.
    """
    total = sum(values)
    if total == 0:
        return [0.0 for _ in values]

    percentages = [v / total * 100 for v in values]
    floored = [math.floor(p * 10) / 10 for p in percentages]
    steps = round((100 - sum(floored)) * 10)
    by_remainder = sorted(
        range(len(values)), key=lambda i: percentages[i] - floored[i], reverse=True
    )
    for i in by_remainder[:max(steps, 0)]:
        floored[i] = round(floored[i] + 0.1, 1)
    return floored


def get_initials(name: str) -> str:
    """"Kgotso Molefe" -> "KM"."""
    parts = name.split()
    if not parts:
        return "?"
    if len(parts) == 1:
        return parts[0][0].upper()
    return (parts[0][0] + parts[-1][0]).upper()


def benchmark_label(rate: float) -> str:
    """Qualitative label for an engagement rate (percent)."""
    if rate >= 5.0:
        return "Excellent"
    if rate >= 3.0:
        return "Strong"
    if rate >= 1.5:
        return "Average"
    if rate >= 0.5:
        return "Below Average"
    return "Needs Attention"
