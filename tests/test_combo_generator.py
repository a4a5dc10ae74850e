"""Tests for combination generation."""

from aso_combo_analyzer.combo_generator import (
    SOURCE_GROUPS,
    generate_candidates,
    iter_group_combinations,
)
from aso_combo_analyzer.config import ComboAnalysisConfig
from aso_combo_analyzer.tokenizer import tokenize_metadata


def _texts(candidates):
    return [c.text for c in candidates]


class TestIterGroupCombinations:
    """Test per-group combination enumeration."""

    def test_single_field(self):
        """Test plain combinations from one field keep source order."""
        combos = list(iter_group_combinations([("a", "b", "c")], 2))
        assert combos == [("a", "b"), ("a", "c"), ("b", "c")]

    def test_cross_requires_each_field(self):
        """Test every combination takes at least one word from each field."""
        combos = list(iter_group_combinations([("a", "b"), ("x",)], 2))
        assert sorted(combos) == [("a", "x"), ("b", "x")]

    def test_cross_size_three(self):
        """Test all splits of the size across fields are enumerated."""
        combos = list(iter_group_combinations([("a", "b"), ("x", "y")], 3))
        assert len(combos) == 4
        assert ("a", "b", "x") in combos
        assert ("a", "x", "y") in combos

    def test_empty_field_yields_nothing(self):
        """Test a group with an empty field produces no combinations."""
        assert list(iter_group_combinations([("a", "b"), ()], 2)) == []

    def test_three_way_needs_three_words(self):
        """Test a three-field group cannot produce 2-word combos."""
        assert list(iter_group_combinations([("a",), ("b",), ("c",)], 2)) == []

    def test_source_groups_order(self):
        """Test the seven source groups are generated single fields first."""
        assert len(SOURCE_GROUPS) == 7
        assert [len(g) for g in SOURCE_GROUPS] == [1, 1, 1, 2, 2, 2, 3]


class TestGenerateCandidates:
    """Test candidate generation for a listing."""

    def test_title_subtitle_counts(self, meditation_fields):
        """Test the exact number of combos for a title+subtitle listing."""
        candidates = generate_candidates(meditation_fields)
        # title 4 + subtitle 4 + title/subtitle cross (9 + 18 + 15)
        assert len(candidates) == 50

    def test_generation_order(self, meditation_fields):
        """Test title-only combos come first, in combination order."""
        texts = _texts(generate_candidates(meditation_fields))
        assert texts[:4] == [
            "meditation sleep",
            "meditation timer",
            "sleep timer",
            "meditation sleep timer",
        ]

    def test_word_order_preserved(self, meditation_fields):
        """Test combinations are not permutations."""
        texts = set(_texts(generate_candidates(meditation_fields)))
        assert "meditation wellness" in texts
        assert "wellness meditation" not in texts
        assert "sleep meditation" not in texts

    def test_no_duplicates(self, cross_fields):
        """Test no two candidates are equal case-insensitively."""
        texts = [t.lower() for t in _texts(generate_candidates(cross_fields))]
        assert len(texts) == len(set(texts))

    def test_length_bounds(self, cross_fields):
        """Test every candidate has 2-4 keywords."""
        candidates = generate_candidates(cross_fields)
        assert candidates
        assert all(2 <= c.length <= 4 for c in candidates)

    def test_three_way_combos_present(self, cross_fields):
        """Test three-way combos draw one word from each field."""
        texts = set(_texts(generate_candidates(cross_fields)))
        assert "meditation sleep relaxation" in texts

    def test_quick_config_limits_length(self, cross_fields):
        """Test max_length bounds generation."""
        candidates = generate_candidates(cross_fields, ComboAnalysisConfig.quick())
        assert max(c.length for c in candidates) == 3

    def test_repeated_word_skipped(self):
        """Test a word shared by two fields never pairs with itself."""
        fields = tokenize_metadata(title="sleep timer", keywords_field="sleep")
        texts = _texts(generate_candidates(fields))
        assert "sleep sleep" not in texts
        assert "timer sleep" in texts
        assert texts.count("sleep timer") == 1

    def test_candidate_cap(self, meditation_fields):
        """Test generation stops at max_candidates."""
        config = ComboAnalysisConfig(max_candidates=5)
        assert len(generate_candidates(meditation_fields, config)) == 5

    def test_empty_metadata(self):
        """Test empty fields generate zero combos."""
        assert generate_candidates(tokenize_metadata()) == []

    def test_single_keyword_generates_nothing(self):
        """Test one keyword cannot form a combo."""
        assert generate_candidates(tokenize_metadata(title="Meditation")) == []
