"""
Data models for the ASO Combo Analyzer.

This module defines all the core data structures used throughout the engine:
metadata fields, candidate phrases, strength tiers, external signals and the
aggregate analysis result.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import cached_property
from typing import Optional


# Separator kept in the keywords field stream between entries
ENTRY_SEPARATOR = ","


class KeywordField(Enum):
    """App Store metadata fields that carry keywords."""
    TITLE = "title"
    SUBTITLE = "subtitle"
    KEYWORDS_FIELD = "keywords"
    PROMO_TEXT = "promo_text"  # Reserved, tokenized but not combined yet


class StrengthTier(Enum):
    """
    Ranking strength of a combo, strongest first.

    Declaration order is the classification order; see
    strength_classifier.CLASSIFICATION_RULES.
    """
    TITLE_CONSECUTIVE = "title_consecutive"
    TITLE_NON_CONSECUTIVE = "title_non_consecutive"
    TITLE_KEYWORDS_CROSS = "title_keywords_cross"
    CROSS_ELEMENT = "cross_element"
    KEYWORDS_CONSECUTIVE = "keywords_consecutive"
    SUBTITLE_CONSECUTIVE = "subtitle_consecutive"
    KEYWORDS_SUBTITLE_CROSS = "keywords_subtitle_cross"
    KEYWORDS_NON_CONSECUTIVE = "keywords_non_consecutive"
    SUBTITLE_NON_CONSECUTIVE = "subtitle_non_consecutive"
    THREE_WAY_CROSS = "three_way_cross"
    MISSING = "missing"

    @property
    def score(self) -> int:
        """Fixed strength score (0-100) of this tier."""
        return TIER_SCORES[self]

    @property
    def exists(self) -> bool:
        """Check if combos in this tier are present in the metadata."""
        return self is not StrengthTier.MISSING

    @property
    def can_strengthen(self) -> bool:
        """Check if a stronger tier is reachable by editing metadata."""
        return self not in (StrengthTier.TITLE_CONSECUTIVE, StrengthTier.MISSING)


TIER_SCORES: dict[StrengthTier, int] = {
    StrengthTier.TITLE_CONSECUTIVE: 100,
    StrengthTier.TITLE_NON_CONSECUTIVE: 85,
    StrengthTier.TITLE_KEYWORDS_CROSS: 70,
    StrengthTier.CROSS_ELEMENT: 70,
    StrengthTier.KEYWORDS_CONSECUTIVE: 50,
    StrengthTier.SUBTITLE_CONSECUTIVE: 50,
    StrengthTier.KEYWORDS_SUBTITLE_CROSS: 35,
    StrengthTier.KEYWORDS_NON_CONSECUTIVE: 30,
    StrengthTier.SUBTITLE_NON_CONSECUTIVE: 30,
    StrengthTier.THREE_WAY_CROSS: 20,
    StrengthTier.MISSING: 0,
}


class TrendDirection(Enum):
    """Ranking momentum reported by the ranking provider."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    NEW = "new"

    @classmethod
    def parse(cls, value) -> Optional["TrendDirection"]:
        """Parse a provider trend value, returning None when unknown."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class DataQuality(Enum):
    """How much external data backed a priority score."""
    COMPLETE = "complete"  # Ranking and popularity both supplied
    PARTIAL = "partial"  # Only one of them
    ESTIMATED = "estimated"  # Neither, all defaults


@dataclass(frozen=True)
class FieldText:
    """
    A metadata field after normalization.

    Attributes:
        source: Which metadata field this is.
        raw: Original text as supplied by the caller.
        keywords: Ordered, distinct keyword tokens used for combination.
        stream: Normalized word stream used for matching. For the keywords
            field, entries are separated by a "," marker so that a phrase
            never matches consecutively across two entries.
    """
    source: KeywordField
    raw: str = ""
    keywords: tuple[str, ...] = ()
    stream: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        """Normalized lowercase text of the field."""
        return " ".join(self.stream)

    @cached_property
    def words_only(self) -> tuple[str, ...]:
        """The stream without entry separators, for subsequence matching."""
        return tuple(w for w in self.stream if w != ENTRY_SEPARATOR)

    @cached_property
    def vocabulary(self) -> frozenset[str]:
        """Every keyword of the field plus the single words inside them."""
        words = set(self.keywords)
        for keyword in self.keywords:
            words.update(keyword.split())
        return frozenset(words)

    @property
    def is_empty(self) -> bool:
        """Check if the field produced no keywords."""
        return not self.keywords


@dataclass(frozen=True)
class MetadataFields:
    """The tokenized metadata of one app listing."""
    title: FieldText = field(default_factory=lambda: FieldText(KeywordField.TITLE))
    subtitle: FieldText = field(default_factory=lambda: FieldText(KeywordField.SUBTITLE))
    keywords_field: FieldText = field(
        default_factory=lambda: FieldText(KeywordField.KEYWORDS_FIELD)
    )
    promo_text: FieldText = field(default_factory=lambda: FieldText(KeywordField.PROMO_TEXT))

    @property
    def all_keywords(self) -> list[str]:
        """Distinct keywords across the combinable fields, title first."""
        seen: set[str] = set()
        ordered: list[str] = []
        for field_text in (self.title, self.subtitle, self.keywords_field):
            for keyword in field_text.keywords:
                if keyword not in seen:
                    seen.add(keyword)
                    ordered.append(keyword)
        return ordered


@dataclass(frozen=True)
class CandidatePhrase:
    """An immutable 2-4 keyword combination."""
    text: str
    keywords: tuple[str, ...]

    @property
    def length(self) -> int:
        """Number of keywords in the combo."""
        return len(self.keywords)

    @property
    def words(self) -> tuple[str, ...]:
        """Single words of the phrase (keywords-field entries may hold several)."""
        return tuple(self.text.split())

    @classmethod
    def from_keywords(cls, keywords) -> "CandidatePhrase":
        """Build a phrase from an ordered keyword sequence."""
        keywords = tuple(keywords)
        return cls(text=" ".join(keywords), keywords=keywords)

    @classmethod
    def from_text(cls, text: str) -> "CandidatePhrase":
        """Build a phrase from free text, one keyword per word."""
        return cls.from_keywords(text.lower().split())


@dataclass(frozen=True)
class FieldMatch:
    """Presence of one phrase in one field."""
    exists: bool = False
    is_consecutive: bool = False


@dataclass(frozen=True)
class ClassifiedCombo:
    """A candidate phrase with its strength classification."""
    phrase: CandidatePhrase
    tier: StrengthTier
    is_consecutive: bool = False
    can_strengthen: bool = False
    suggestion: Optional[str] = None
    source_fields: tuple[KeywordField, ...] = ()

    @property
    def text(self) -> str:
        return self.phrase.text

    @property
    def keywords(self) -> tuple[str, ...]:
        return self.phrase.keywords

    @property
    def length(self) -> int:
        return self.phrase.length

    @property
    def strength_score(self) -> int:
        return self.tier.score

    @property
    def exists(self) -> bool:
        return self.tier.exists


@dataclass
class KeywordPopularity:
    """Popularity signal for a single keyword (consumed, not owned)."""
    keyword: str
    popularity_score: float  # 0-100, search volume proxy
    intent_score: Optional[float] = None  # 0-1
    autocomplete_score: float = 0.0  # 0-1
    length_prior: float = 0.0  # 0-1
    data_quality: str = "complete"  # complete | partial | stale

    def __post_init__(self) -> None:
        """Normalize the keyword."""
        self.keyword = self.keyword.strip().lower()

    @property
    def is_stale(self) -> bool:
        return self.data_quality == "stale"


@dataclass
class ComboRanking:
    """Ranking signal for a single combo (consumed, not owned)."""
    combo: str
    position: Optional[int] = None  # None or 0 = not ranking
    total_results: Optional[int] = None  # Competition proxy
    trend: Optional[TrendDirection] = None
    position_change: Optional[int] = None
    checked_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Normalize the combo text and trend."""
        self.combo = " ".join(self.combo.lower().split())
        self.trend = TrendDirection.parse(self.trend)

    @property
    def is_ranking(self) -> bool:
        """Check if the app currently ranks for this combo."""
        return self.position is not None and self.position > 0

    def is_stale(self, max_age: timedelta = timedelta(hours=24), now: Optional[datetime] = None) -> bool:
        """
        Check if the ranking snapshot is older than max_age.

        Snapshots without a timestamp are never considered stale.
        """
        if self.checked_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        checked_at = self.checked_at
        if checked_at.tzinfo is None:
            checked_at = checked_at.replace(tzinfo=timezone.utc)
        return now - checked_at > max_age


@dataclass(frozen=True)
class PriorityScore:
    """Priority breakdown for one combo. Every component is 0-100."""
    strength: int
    popularity: int
    opportunity: int
    trend: int
    intent: int
    total: int
    data_quality: DataQuality = DataQuality.ESTIMATED


@dataclass(frozen=True)
class ScoredCombo:
    """A classified combo with its priority score and generation index."""
    combo: ClassifiedCombo
    priority: PriorityScore
    order: int = 0

    @property
    def text(self) -> str:
        return self.combo.text

    @property
    def keywords(self) -> tuple[str, ...]:
        return self.combo.keywords

    @property
    def length(self) -> int:
        return self.combo.length

    @property
    def tier(self) -> StrengthTier:
        return self.combo.tier

    def to_dict(self) -> dict:
        """Serialize using the canonical output field names."""
        return {
            "text": self.combo.text,
            "keywords": list(self.combo.keywords),
            "length": self.combo.phrase.length,
            "tier": self.combo.tier.value,
            "strengthScore": self.combo.strength_score,
            "isConsecutive": self.combo.is_consecutive,
            "canStrengthen": self.combo.can_strengthen,
            "suggestion": self.combo.suggestion,
            "sourceFields": [f.value for f in self.combo.source_fields],
            "priority": {
                "strength": self.priority.strength,
                "popularity": self.priority.popularity,
                "opportunity": self.priority.opportunity,
                "trend": self.priority.trend,
                "intent": self.priority.intent,
                "total": self.priority.total,
                "dataQuality": self.priority.data_quality.value,
            },
        }


@dataclass
class SelectionResult:
    """Output of the Selector."""
    selected: list[ScoredCombo] = field(default_factory=list)
    total_generated: int = 0
    truncated: bool = False


@dataclass
class TierStats:
    """Per-tier tallies over every generated combo."""
    tier_counts: dict[StrengthTier, int] = field(
        default_factory=lambda: {tier: 0 for tier in StrengthTier}
    )
    total_generated: int = 0
    existing: int = 0
    missing: int = 0
    coverage: float = 0.0  # Percent of generated combos present in metadata
    can_strengthen_count: int = 0


@dataclass
class ComboAnalysisResult:
    """
    Aggregate output of one analysis run.

    combos holds the post-selection list (highest priority first); stats
    always describe the full generated set.
    """
    combos: list[ScoredCombo] = field(default_factory=list)
    stats: TierStats = field(default_factory=TierStats)
    truncated: bool = False
    selection_budget: int = 0
    fields: Optional[MetadataFields] = None

    @property
    def total_generated(self) -> int:
        return self.stats.total_generated

    @property
    def tier_counts(self) -> dict[StrengthTier, int]:
        return self.stats.tier_counts

    @property
    def coverage(self) -> float:
        return self.stats.coverage

    @property
    def missing_combos(self) -> list[ScoredCombo]:
        return [c for c in self.combos if not c.combo.exists]

    def recommended_to_add(self, limit: int = 10) -> list[ScoredCombo]:
        """Highest-priority combos not yet present in the metadata."""
        return self.missing_combos[:limit]

    def to_dict(self) -> dict:
        """Serialize to the stable output contract."""
        return {
            "combos": [c.to_dict() for c in self.combos],
            "tierCounts": {tier.value: count for tier, count in self.stats.tier_counts.items()},
            "totalGenerated": self.stats.total_generated,
            "existing": self.stats.existing,
            "missing": self.stats.missing,
            "coverage": self.stats.coverage,
            "canStrengthenCount": self.stats.can_strengthen_count,
            "truncated": self.truncated,
            "selectionBudget": self.selection_budget,
        }
