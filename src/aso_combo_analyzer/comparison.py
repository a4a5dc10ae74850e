"""
Baseline vs draft comparison of combo analyses.

Used when editing metadata: analyze the live listing (baseline) and a
proposed edit (draft), then report which combos were gained, lost,
strengthened or weakened.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from .aggregator import get_tier_number
from .models import ClassifiedCombo, MetadataFields, StrengthTier, TierStats


@dataclass
class ComboTierChange:
    """A combo present in both analyses with a different tier group."""
    text: str
    baseline_tier: int
    draft_tier: int
    baseline_strength: StrengthTier
    draft_strength: StrengthTier
    baseline_score: int
    draft_score: int

    @property
    def improvement(self) -> int:
        """Positive when the draft moved the combo to a stronger group."""
        return self.baseline_tier - self.draft_tier


@dataclass
class ComboDiff:
    """Result of diff_combos."""
    added: list[ClassifiedCombo] = field(default_factory=list)
    removed: list[ClassifiedCombo] = field(default_factory=list)
    tier_upgrades: list[ComboTierChange] = field(default_factory=list)
    tier_downgrades: list[ComboTierChange] = field(default_factory=list)
    unchanged: list[ClassifiedCombo] = field(default_factory=list)


@dataclass
class TierBucket:
    baseline: int = 0
    draft: int = 0

    @property
    def delta(self) -> int:
        return self.draft - self.baseline


@dataclass
class TierDistribution:
    """Combo counts in three report buckets: Excellent, Good, everything else."""
    excellent: TierBucket = field(default_factory=TierBucket)
    good: TierBucket = field(default_factory=TierBucket)
    other: TierBucket = field(default_factory=TierBucket)


@dataclass
class KeywordImpact:
    """Effect of adding or removing a single keyword."""
    keyword: str
    change: str  # "added" or "removed"
    combo_count: int
    avg_tier: float
    sample_combos: list[str] = field(default_factory=list)


@dataclass
class StrengthenOpportunity:
    combo: ClassifiedCombo
    current_tier: int
    suggestion: str


def diff_combos(
    baseline: Sequence[ClassifiedCombo],
    draft: Sequence[ClassifiedCombo],
) -> ComboDiff:
    """
    Diff two combo lists by case-insensitive text.

    Args:
        baseline: Combos of the current metadata.
        draft: Combos of the proposed metadata.

    Returns:
        ComboDiff with added/removed sorted strongest first, upgrades by
        largest improvement and downgrades by largest decline.
    """
    baseline_map = {c.text.lower(): c for c in baseline}
    draft_map = {c.text.lower(): c for c in draft}
    diff = ComboDiff()

    diff.added = [c for c in draft if c.text.lower() not in baseline_map]
    diff.removed = [c for c in baseline if c.text.lower() not in draft_map]

    for before in baseline:
        after = draft_map.get(before.text.lower())
        if after is None:
            continue
        baseline_tier = get_tier_number(before.tier)
        draft_tier = get_tier_number(after.tier)
        if baseline_tier == draft_tier:
            diff.unchanged.append(after)
            continue

        change = ComboTierChange(
            text=after.text,
            baseline_tier=baseline_tier,
            draft_tier=draft_tier,
            baseline_strength=before.tier,
            draft_strength=after.tier,
            baseline_score=before.strength_score,
            draft_score=after.strength_score,
        )
        if change.improvement > 0:
            diff.tier_upgrades.append(change)
        else:
            diff.tier_downgrades.append(change)

    diff.added.sort(key=lambda c: c.strength_score, reverse=True)
    diff.removed.sort(key=lambda c: c.strength_score, reverse=True)
    diff.tier_upgrades.sort(key=lambda c: c.improvement, reverse=True)
    diff.tier_downgrades.sort(key=lambda c: c.improvement)
    return diff


def _bucket_counts(stats: TierStats) -> tuple[int, int, int]:
    excellent = good = other = 0
    for tier, count in stats.tier_counts.items():
        if tier is StrengthTier.MISSING:
            continue
        number = get_tier_number(tier)
        if number == 1:
            excellent += count
        elif number == 2:
            good += count
        else:
            other += count
    return excellent, good, other


def calculate_tier_distribution(baseline: TierStats, draft: TierStats) -> TierDistribution:
    """
    Compare existing combos per report bucket.

    Missing combos are not counted in any bucket.
    """
    b_excellent, b_good, b_other = _bucket_counts(baseline)
    d_excellent, d_good, d_other = _bucket_counts(draft)
    return TierDistribution(
        excellent=TierBucket(b_excellent, d_excellent),
        good=TierBucket(b_good, d_good),
        other=TierBucket(b_other, d_other),
    )


def _impact_for(
    keyword: str,
    change: str,
    combos: Sequence[ClassifiedCombo],
) -> Optional[KeywordImpact]:
    with_keyword = [c for c in combos if any(k.lower() == keyword for k in c.keywords)]
    if not with_keyword:
        return None
    avg_tier = sum(get_tier_number(c.tier) for c in with_keyword) / len(with_keyword)
    return KeywordImpact(
        keyword=keyword,
        change=change,
        combo_count=len(with_keyword),
        avg_tier=round(avg_tier, 1),
        sample_combos=[c.text for c in with_keyword[:3]],
    )


def _headline_keywords(fields: MetadataFields) -> list[str]:
    """Title keywords followed by subtitle keywords not already in the title."""
    keywords = list(fields.title.keywords)
    keywords.extend(k for k in fields.subtitle.keywords if k not in keywords)
    return keywords


def analyze_keyword_impact(
    baseline_fields: MetadataFields,
    draft_fields: MetadataFields,
    draft_combos: Sequence[ClassifiedCombo],
    baseline_combos: Sequence[ClassifiedCombo],
) -> list[KeywordImpact]:
    """
    Report title/subtitle keywords that were added or removed by the draft.

    Args:
        baseline_fields: Tokenized current metadata.
        draft_fields: Tokenized proposed metadata.
        draft_combos: Combos generated from the draft.
        baseline_combos: Combos generated from the baseline.

    Returns:
        One KeywordImpact per added/removed keyword that appears in at least
        one combo, most combos first.
    """
    before = _headline_keywords(baseline_fields)
    after = _headline_keywords(draft_fields)
    impacts: list[KeywordImpact] = []

    for keyword in after:
        if keyword not in before:
            impact = _impact_for(keyword, "added", draft_combos)
            if impact:
                impacts.append(impact)

    for keyword in before:
        if keyword not in after:
            impact = _impact_for(keyword, "removed", baseline_combos)
            if impact:
                impacts.append(impact)

    impacts.sort(key=lambda i: i.combo_count, reverse=True)
    return impacts


def extract_strengthen_opportunities(
    combos: Sequence[ClassifiedCombo],
) -> list[StrengthenOpportunity]:
    """Combos that can be promoted, weakest tier group first."""
    opportunities = [
        StrengthenOpportunity(
            combo=combo,
            current_tier=get_tier_number(combo.tier),
            suggestion=combo.suggestion,
        )
        for combo in combos
        if combo.can_strengthen and combo.suggestion
    ]
    opportunities.sort(key=lambda o: o.current_tier, reverse=True)
    return opportunities
