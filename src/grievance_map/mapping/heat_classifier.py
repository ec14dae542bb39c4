"""Complaint count to heat tier classification."""

from ..models.schemas import HeatTier
from .styles import TIER_COLORS


def classify(count: int, max_count: int) -> HeatTier:
    """
    Bucket a count by its share of the largest count in the result set.

    Args:
        count: Complaints in the area
        max_count: Largest count among the areas being shaded (floored at 1)

    Returns:
        NONE for zero, then quartiles of ``count / max_count``:
        <=25% LOW, <=50% MEDIUM, <=75% HIGH, above that VERY_HIGH.
    """
    if count == 0:
        return HeatTier.NONE

    max_count = max(max_count, 1)
    percentage = count / max_count * 100

    if percentage <= 25:
        return HeatTier.LOW
    if percentage <= 50:
        return HeatTier.MEDIUM
    if percentage <= 75:
        return HeatTier.HIGH
    return HeatTier.VERY_HIGH


def tier_color(tier: HeatTier) -> str:
    """Fill color for a tier."""
    return TIER_COLORS[tier]
