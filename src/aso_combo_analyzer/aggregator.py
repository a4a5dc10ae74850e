"""
Summary statistics over generated combos.

Counts per tier, existing/missing totals and coverage are always computed
over every generated combo, not just the selected ones.
"""

import logging
from typing import Sequence, TypeVar, Union

from .models import ClassifiedCombo, ScoredCombo, StrengthTier, TierStats

logger = logging.getLogger(__name__)

ComboLike = TypeVar("ComboLike", ClassifiedCombo, ScoredCombo)


# Reporting groups: lower is stronger. Missing sorts last.
TIER_NUMBERS: dict[StrengthTier, int] = {
    StrengthTier.TITLE_CONSECUTIVE: 1,
    StrengthTier.TITLE_NON_CONSECUTIVE: 2,
    StrengthTier.TITLE_KEYWORDS_CROSS: 2,
    StrengthTier.CROSS_ELEMENT: 3,
    StrengthTier.KEYWORDS_CONSECUTIVE: 4,
    StrengthTier.SUBTITLE_CONSECUTIVE: 4,
    StrengthTier.KEYWORDS_SUBTITLE_CROSS: 5,
    StrengthTier.KEYWORDS_NON_CONSECUTIVE: 6,
    StrengthTier.SUBTITLE_NON_CONSECUTIVE: 6,
    StrengthTier.THREE_WAY_CROSS: 7,
    StrengthTier.MISSING: 8,
}


def calculate_tier_stats(combos: Sequence[Union[ClassifiedCombo, ScoredCombo]]) -> TierStats:
    """
    Tally tiers over the full generated set.

    Args:
        combos: Every generated combo (classified or scored).

    Returns:
        TierStats. Coverage is 0.0 when nothing was generated.
    """
    stats = TierStats()
    for combo in combos:
        tier = combo.tier
        stats.tier_counts[tier] += 1
        if tier.can_strengthen:
            stats.can_strengthen_count += 1

    stats.total_generated = len(combos)
    stats.missing = stats.tier_counts[StrengthTier.MISSING]
    stats.existing = stats.total_generated - stats.missing
    if stats.total_generated:
        stats.coverage = stats.existing / stats.total_generated * 100
    else:
        stats.coverage = 0.0

    logger.debug(
        "Tier stats: total=%d existing=%d missing=%d coverage=%.1f%%",
        stats.total_generated,
        stats.existing,
        stats.missing,
        stats.coverage,
    )
    return stats


def get_tier_number(tier: StrengthTier) -> int:
    """Map a strength tier to its 1-8 reporting group (1 is strongest)."""
    return TIER_NUMBERS.get(tier, 8)


def get_tier_label(tier_number: int) -> str:
    """Human-readable label for a reporting group."""
    if tier_number == 1:
        return "Excellent"
    if tier_number == 2:
        return "Good"
    if tier_number <= 4:
        return "Medium"
    return "Poor"


def filter_combos_by_keyword(combos: Sequence[ComboLike], keyword: str) -> list[ComboLike]:
    """
    Keep combos where any keyword contains `keyword` (case-insensitive).

    Args:
        combos: Combos to filter.
        keyword: Substring to look for.

    Returns:
        Matching combos in their original order.
    """
    needle = keyword.strip().lower()
    if not needle:
        return list(combos)
    return [c for c in combos if any(needle in k.lower() for k in c.keywords)]


def group_combos_by_length(combos: Sequence[ComboLike]) -> dict[int, list[ComboLike]]:
    """Group combos by keyword count, preserving order within each group."""
    groups: dict[int, list[ComboLike]] = {}
    for combo in combos:
        groups.setdefault(combo.length, []).append(combo)
    return groups


def count_combos_with_keyword(combos: Sequence[ComboLike], keyword: str) -> int:
    """Count combos matched by filter_combos_by_keyword."""
    return len(filter_combos_by_keyword(combos, keyword))
