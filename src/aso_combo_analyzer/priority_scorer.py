"""
Priority scoring for keyword combos.

Blends the strength tier of a combo with external search-analytics signals
into one 0-100 priority score:

- Strength (30%): fixed score of the tier
- Popularity (25%): mean keyword popularity
- Opportunity (20%): ranking position vs competition
- Trend (15%): ranking momentum
- Intent (10%): mean keyword intent

Missing signals fall back to neutral defaults; scoring never raises.
"""

import logging
import math
from typing import Optional

from .config import ComboAnalysisConfig
from .models import (
    ClassifiedCombo,
    ComboRanking,
    DataQuality,
    KeywordPopularity,
    PriorityScore,
    ScoredCombo,
    TrendDirection,
)

logger = logging.getLogger(__name__)


# Percent weights of each component in the total
WEIGHTS = {
    "strength": 30,
    "popularity": 25,
    "opportunity": 20,
    "trend": 15,
    "intent": 10,
}

NEUTRAL_SCORE = 50
NO_RANKING_DATA_OPPORTUNITY = 60
BLUE_OCEAN_OPPORTUNITY = 80

# (max position, score), checked in order; anything deeper scores 30
POSITION_OPPORTUNITY = (
    (5, 5),
    (10, 10),
    (20, 60),
    (50, 50),
    (100, 40),
)
DEEP_POSITION_OPPORTUNITY = 30

# Scores by |position_change|: (>= 10, >= 5, otherwise)
TREND_UP_SCORES = (100, 90, 80)
TREND_DOWN_SCORES = (20, 30, 40)

PopularityMap = dict[str, KeywordPopularity]
RankingMap = dict[str, ComboRanking]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> float:
    """Clamp a component score to the 0-100 range."""
    return max(0.0, min(100.0, value))


def _lookup_popularity(
    keywords: tuple[str, ...],
    popularity: Optional[PopularityMap],
) -> list[KeywordPopularity]:
    if not popularity:
        return []
    found = []
    for keyword in keywords:
        data = popularity.get(keyword.lower())
        if data is not None:
            found.append(data)
    return found


def calculate_strength_score(combo: ClassifiedCombo) -> int:
    """Fixed score of the combo's tier."""
    return combo.tier.score


def calculate_popularity_score(
    keywords: tuple[str, ...],
    popularity: Optional[PopularityMap] = None,
) -> int:
    """
    Mean popularity of the combo's keywords.

    Keywords without data are left out of the mean. With no data at all the
    neutral score (50) is used.

    Args:
        keywords: Keywords of the combo.
        popularity: Map of lowercase keyword to popularity signal.

    Returns:
        0-100 score.
    """
    found = _lookup_popularity(keywords, popularity)
    if not found:
        return NEUTRAL_SCORE
    mean = sum(clamp_score(p.popularity_score) for p in found) / len(found)
    return round_half_up(clamp_score(mean))


def calculate_opportunity_score(
    ranking: Optional[ComboRanking],
    config: Optional[ComboAnalysisConfig] = None,
) -> int:
    """
    Score how much room there is to gain on this combo.

    - No ranking data: 60
    - Not ranking (blue ocean): 80, times the competition penalty when
      total results exceed the high-competition threshold
    - Ranking: top 5 -> 5, top 10 -> 10, 11-20 -> 60, 21-50 -> 50,
      51-100 -> 40, deeper -> 30

    Args:
        ranking: Ranking signal for the combo, if any.
        config: Supplies threshold and penalty.

    Returns:
        0-100 score.
    """
    if ranking is None:
        return NO_RANKING_DATA_OPPORTUNITY

    config = config or ComboAnalysisConfig()

    if not ranking.is_ranking:
        score = float(BLUE_OCEAN_OPPORTUNITY)
        if (
            ranking.total_results is not None
            and ranking.total_results > config.high_competition_threshold
        ):
            score *= config.competition_penalty
        return round_half_up(clamp_score(score))

    for max_position, score in POSITION_OPPORTUNITY:
        if ranking.position <= max_position:
            return score
    return DEEP_POSITION_OPPORTUNITY


def calculate_trend_score(ranking: Optional[ComboRanking]) -> int:
    """
    Score ranking momentum.

    UP scores 80-100 and DOWN 20-40 depending on the size of the position
    change; STABLE is 50, NEW is 60 and unknown is 50.
    """
    if ranking is None or ranking.trend is None:
        return NEUTRAL_SCORE

    change = abs(ranking.position_change or 0)

    if ranking.trend in (TrendDirection.UP, TrendDirection.DOWN):
        big, moderate, small = (
            TREND_UP_SCORES if ranking.trend is TrendDirection.UP else TREND_DOWN_SCORES
        )
        if change >= 10:
            return big
        if change >= 5:
            return moderate
        return small

    if ranking.trend is TrendDirection.NEW:
        return 60
    return NEUTRAL_SCORE


def calculate_intent_score(
    keywords: tuple[str, ...],
    popularity: Optional[PopularityMap] = None,
) -> int:
    """Mean keyword intent scaled to 0-100, or 50 when unavailable."""
    scores = [
        clamp_score(p.intent_score * 100)
        for p in _lookup_popularity(keywords, popularity)
        if p.intent_score is not None
    ]
    if not scores:
        return NEUTRAL_SCORE
    return round_half_up(clamp_score(sum(scores) / len(scores)))


def determine_data_quality(has_ranking: bool, has_popularity: bool) -> DataQuality:
    """COMPLETE with both signals, PARTIAL with one, ESTIMATED with none."""
    if has_ranking and has_popularity:
        return DataQuality.COMPLETE
    if has_ranking or has_popularity:
        return DataQuality.PARTIAL
    return DataQuality.ESTIMATED


def calculate_combo_priority(
    combo: ClassifiedCombo,
    ranking: Optional[ComboRanking] = None,
    popularity: Optional[PopularityMap] = None,
    config: Optional[ComboAnalysisConfig] = None,
) -> PriorityScore:
    """
    Calculate the full priority breakdown for one combo.

    Args:
        combo: Classified combo.
        ranking: Ranking signal for this combo, if known.
        popularity: Map of lowercase keyword to popularity signal.
        config: Opportunity scoring constants.

    Returns:
        PriorityScore with every component and the total in 0-100.
    """
    strength = calculate_strength_score(combo)
    popularity_score = calculate_popularity_score(combo.keywords, popularity)
    opportunity = calculate_opportunity_score(ranking, config)
    trend = calculate_trend_score(ranking)
    intent = calculate_intent_score(combo.keywords, popularity)

    # Integer arithmetic so that exact halves round up reliably
    weighted = (
        strength * WEIGHTS["strength"]
        + popularity_score * WEIGHTS["popularity"]
        + opportunity * WEIGHTS["opportunity"]
        + trend * WEIGHTS["trend"]
        + intent * WEIGHTS["intent"]
    )
    total = min(100, max(0, (weighted + 50) // 100))

    return PriorityScore(
        strength=strength,
        popularity=popularity_score,
        opportunity=opportunity,
        trend=trend,
        intent=intent,
        total=total,
        data_quality=determine_data_quality(
            has_ranking=ranking is not None,
            has_popularity=bool(_lookup_popularity(combo.keywords, popularity)),
        ),
    )


def score_combos(
    combos: list[ClassifiedCombo],
    rankings: Optional[RankingMap] = None,
    popularity: Optional[PopularityMap] = None,
    config: Optional[ComboAnalysisConfig] = None,
) -> list[ScoredCombo]:
    """
    Score every combo, keeping generation order.

    Args:
        combos: Classified combos in generation order.
        rankings: Map of normalized combo text to ranking signal.
        popularity: Map of lowercase keyword to popularity signal.
        config: Opportunity scoring constants.

    Returns:
        ScoredCombo list with `order` set to the generation index.
    """
    rankings = rankings or {}
    scored = [
        ScoredCombo(
            combo=combo,
            priority=calculate_combo_priority(
                combo, rankings.get(combo.text), popularity, config
            ),
            order=index,
        )
        for index, combo in enumerate(combos)
    ]

    if scored:
        quality_counts = {quality: 0 for quality in DataQuality}
        for item in scored:
            quality_counts[item.priority.data_quality] += 1
        logger.debug(
            "Scored %d combos (complete=%d, partial=%d, estimated=%d)",
            len(scored),
            quality_counts[DataQuality.COMPLETE],
            quality_counts[DataQuality.PARTIAL],
            quality_counts[DataQuality.ESTIMATED],
        )
    return scored


def get_priority_tier(total: int) -> str:
    """
    Bucket a total priority score for filtering.

    Returns:
        "high" (>= 70), "medium" (>= 40) or "low".
    """
    if total >= 70:
        return "high"
    if total >= 40:
        return "medium"
    return "low"


def format_priority_breakdown(score: PriorityScore) -> str:
    """Format a priority score as a multi-line breakdown for display."""
    lines = [f"Priority Score: {score.total}/100", ""]
    components = [
        ("Strength", score.strength, "strength"),
        ("Popularity", score.popularity, "popularity"),
        ("Opportunity", score.opportunity, "opportunity"),
        ("Trend", score.trend, "trend"),
        ("Intent", score.intent, "intent"),
    ]
    for index, (label, value, key) in enumerate(components):
        branch = "└─" if index == len(components) - 1 else "├─"
        weight = WEIGHTS[key]
        lines.append(
            f"{branch} {label}: {value}/100 x {weight}% "
            f"({round_half_up(value * weight / 100)} pts)"
        )
    lines.append("")
    lines.append(f"Data Quality: {score.data_quality.value}")
    return "\n".join(lines)
