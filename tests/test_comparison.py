"""Tests for baseline vs draft comparison."""

from aso_combo_analyzer.aggregator import calculate_tier_stats
from aso_combo_analyzer.combo_generator import generate_candidates
from aso_combo_analyzer.comparison import (
    analyze_keyword_impact,
    calculate_tier_distribution,
    diff_combos,
    extract_strengthen_opportunities,
)
from aso_combo_analyzer.models import StrengthTier
from aso_combo_analyzer.strength_classifier import classify_combos
from aso_combo_analyzer.tokenizer import tokenize_metadata


def _analyze(**kwargs):
    fields = tokenize_metadata(**kwargs)
    return fields, classify_combos(generate_candidates(fields), fields)


class TestDiffCombos:
    """Test combo diffs between two listings."""

    def setup_method(self):
        _, self.baseline = _analyze(title="Meditation Timer", subtitle="Sleep")
        _, self.draft = _analyze(title="Meditation Sleep Timer")
        self.diff = diff_combos(self.baseline, self.draft)

    def test_added_and_removed(self):
        """Test combos only in one side are reported as added or removed."""
        assert {c.text for c in self.diff.added} == {"sleep timer", "meditation sleep timer"}
        assert {c.text for c in self.diff.removed} == {"timer sleep", "meditation timer sleep"}

    def test_upgrade(self):
        """Test moving a cross combo into the title is an upgrade."""
        assert [c.text for c in self.diff.tier_upgrades] == ["meditation sleep"]
        upgrade = self.diff.tier_upgrades[0]
        assert upgrade.baseline_strength is StrengthTier.CROSS_ELEMENT
        assert upgrade.draft_strength is StrengthTier.TITLE_CONSECUTIVE
        assert upgrade.improvement == 2

    def test_downgrade(self):
        """Test splitting title words apart is a downgrade."""
        assert [c.text for c in self.diff.tier_downgrades] == ["meditation timer"]
        assert self.diff.tier_downgrades[0].improvement == -1

    def test_identical_listings(self):
        """Test diffing a listing with itself reports no changes."""
        diff = diff_combos(self.baseline, self.baseline)
        assert not diff.added and not diff.removed
        assert not diff.tier_upgrades and not diff.tier_downgrades
        assert len(diff.unchanged) == len(self.baseline)

    def test_added_sorted_strongest_first(self):
        """Test added combos are sorted by strength score."""
        scores = [c.strength_score for c in self.diff.added]
        assert scores == sorted(scores, reverse=True)


class TestTierDistribution:
    """Test bucket counts between two analyses."""

    def test_buckets(self):
        """Test excellent, good and other buckets with deltas."""
        _, baseline = _analyze(title="Meditation Timer", subtitle="Sleep")
        _, draft = _analyze(title="Meditation Sleep Timer")
        dist = calculate_tier_distribution(
            calculate_tier_stats(baseline), calculate_tier_stats(draft)
        )
        assert (dist.excellent.baseline, dist.excellent.draft) == (1, 3)
        assert (dist.good.baseline, dist.good.draft) == (0, 1)
        assert (dist.other.baseline, dist.other.draft) == (3, 0)
        assert dist.excellent.delta == 2
        assert dist.other.delta == -3

    def test_missing_not_counted(self, meditation_fields):
        """Test missing combos fall in no bucket."""
        stats = calculate_tier_stats(
            classify_combos(generate_candidates(meditation_fields), meditation_fields)
        )
        dist = calculate_tier_distribution(stats, stats)
        counted = dist.excellent.baseline + dist.good.baseline + dist.other.baseline
        assert counted == stats.existing


class TestKeywordImpact:
    """Test keyword add/remove impact."""

    def test_removed_keyword(self):
        """Test a dropped subtitle keyword reports its baseline combos."""
        baseline_fields, baseline = _analyze(title="Meditation Timer", subtitle="Calm")
        draft_fields, draft = _analyze(title="Meditation Timer")
        impacts = analyze_keyword_impact(baseline_fields, draft_fields, draft, baseline)
        assert len(impacts) == 1
        impact = impacts[0]
        assert (impact.keyword, impact.change) == ("calm", "removed")
        assert impact.combo_count == 3
        assert impact.avg_tier == 3.0
        assert len(impact.sample_combos) == 3

    def test_added_keyword(self):
        """Test a new title keyword reports its draft combos."""
        baseline_fields, baseline = _analyze(title="Meditation Timer")
        draft_fields, draft = _analyze(title="Meditation Sleep Timer")
        impacts = analyze_keyword_impact(baseline_fields, draft_fields, draft, baseline)
        assert [(i.keyword, i.change) for i in impacts] == [("sleep", "added")]
        assert impacts[0].combo_count == 3

    def test_no_change(self, meditation_fields):
        """Test identical headline keywords report nothing."""
        combos = classify_combos(generate_candidates(meditation_fields), meditation_fields)
        assert analyze_keyword_impact(meditation_fields, meditation_fields, combos, combos) == []


class TestStrengthenOpportunities:
    """Test extraction of promotable combos."""

    def test_weakest_first(self, meditation_fields):
        """Test opportunities exclude the best tier and sort weakest first."""
        combos = classify_combos(generate_candidates(meditation_fields), meditation_fields)
        opportunities = extract_strengthen_opportunities(combos)
        assert opportunities
        tiers = [o.current_tier for o in opportunities]
        assert tiers == sorted(tiers, reverse=True)
        assert all(o.combo.tier is not StrengthTier.TITLE_CONSECUTIVE for o in opportunities)
        assert all(o.combo.exists for o in opportunities)
        assert all(o.suggestion for o in opportunities)
