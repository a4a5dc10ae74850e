"""
Combo strength classification.

Classifies each candidate phrase into one of eleven strength tiers based on
which metadata field(s) contain it and whether its words are consecutive.

Two kinds of evidence are used:
- FieldMatch: the whole phrase is present in one field, either as a
  contiguous run of words (consecutive) or as an in-order subsequence.
- Contribution: at least one word of the phrase comes from a field. Cross
  tiers depend only on which fields contribute words.

Rules are evaluated in a fixed order and the first match wins. Several
conditions overlap (a three-way cross also satisfies pairwise conditions),
so the order itself is the classification contract. The final rule always
matches, which makes classification total.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .models import (
    CandidatePhrase,
    ClassifiedCombo,
    FieldMatch,
    FieldText,
    KeywordField,
    MetadataFields,
    StrengthTier,
)

logger = logging.getLogger(__name__)


def is_consecutive_match(words: Sequence[str], stream: Sequence[str]) -> bool:
    """
    Check if `words` appear as a contiguous run in `stream`.

    This is an exact phrase match on the normalized field text, aligned to
    word boundaries.
    """
    size = len(words)
    if size == 0 or size > len(stream):
        return False
    target = list(words)
    for start in range(len(stream) - size + 1):
        if list(stream[start:start + size]) == target:
            return True
    return False


def is_subsequence_match(words: Sequence[str], stream: Sequence[str]) -> bool:
    """
    Check if `words` appear in order (not necessarily adjacent) in `stream`.

    Greedy left-to-right scan: each word is matched at its first occurrence
    after the previous match. For exact token equality the greedy choice is
    never worse than any later occurrence, so no backtracking is needed.
    """
    if not words:
        return False
    position = 0
    for word in words:
        while position < len(stream) and stream[position] != word:
            position += 1
        if position == len(stream):
            return False
        position += 1
    return True


def match_in_field(phrase: CandidatePhrase, field_text: FieldText) -> FieldMatch:
    """
    Compute how a phrase is present in one field.

    Args:
        phrase: The candidate phrase.
        field_text: Normalized field.

    Returns:
        FieldMatch(exists, is_consecutive).
    """
    words = phrase.words
    stream = field_text.stream
    if is_consecutive_match(words, stream):
        return FieldMatch(exists=True, is_consecutive=True)
    if is_subsequence_match(words, field_text.words_only):
        return FieldMatch(exists=True, is_consecutive=False)
    return FieldMatch(exists=False, is_consecutive=False)


def contributes(phrase: CandidatePhrase, field_text: FieldText) -> bool:
    """Check if at least one keyword (or word) of the phrase comes from the field."""
    if field_text.is_empty:
        return False
    vocabulary = field_text.vocabulary
    return any(k in vocabulary for k in phrase.keywords) or any(
        w in vocabulary for w in phrase.words
    )


@dataclass(frozen=True)
class MatchContext:
    """Everything the classification rules look at for one phrase."""
    title: FieldMatch
    subtitle: FieldMatch
    keywords: FieldMatch
    from_title: bool
    from_subtitle: bool
    from_keywords: bool

    @property
    def contributing_fields(self) -> int:
        return sum((self.from_title, self.from_subtitle, self.from_keywords))


@dataclass(frozen=True)
class ClassificationRule:
    """One row of the ordered classification table."""
    tier: StrengthTier
    applies: Callable[[MatchContext], bool]
    is_consecutive: bool
    suggestion: Optional[str]


# Evaluated top to bottom; the first rule whose condition holds decides the
# tier. Do not reorder.
CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        StrengthTier.TITLE_CONSECUTIVE,
        lambda m: m.title.exists and m.title.is_consecutive,
        True,
        None,
    ),
    ClassificationRule(
        StrengthTier.TITLE_NON_CONSECUTIVE,
        lambda m: m.title.exists and not m.title.is_consecutive,
        False,
        "Make words consecutive in title for maximum ranking power",
    ),
    ClassificationRule(
        StrengthTier.TITLE_KEYWORDS_CROSS,
        lambda m: m.from_title and m.from_keywords and not m.from_subtitle,
        False,
        "Make words consecutive in title for maximum ranking power",
    ),
    ClassificationRule(
        StrengthTier.CROSS_ELEMENT,
        lambda m: m.from_title and m.from_subtitle and not m.from_keywords,
        False,
        "Move all keywords to title to strengthen",
    ),
    ClassificationRule(
        StrengthTier.KEYWORDS_CONSECUTIVE,
        lambda m: m.keywords.exists and m.keywords.is_consecutive,
        True,
        "Move to title to strengthen",
    ),
    ClassificationRule(
        StrengthTier.SUBTITLE_CONSECUTIVE,
        lambda m: m.subtitle.exists and m.subtitle.is_consecutive,
        True,
        "Move to title to strengthen",
    ),
    ClassificationRule(
        StrengthTier.KEYWORDS_SUBTITLE_CROSS,
        lambda m: m.from_keywords and m.from_subtitle and not m.from_title,
        False,
        "Move all keywords to title",
    ),
    ClassificationRule(
        StrengthTier.KEYWORDS_NON_CONSECUTIVE,
        lambda m: m.keywords.exists and not m.keywords.is_consecutive,
        False,
        "Move to title and make consecutive",
    ),
    ClassificationRule(
        StrengthTier.SUBTITLE_NON_CONSECUTIVE,
        lambda m: m.subtitle.exists and not m.subtitle.is_consecutive,
        False,
        "Move to title and make consecutive",
    ),
    ClassificationRule(
        StrengthTier.THREE_WAY_CROSS,
        lambda m: m.contributing_fields == 3,
        False,
        "Consolidate all keywords into title",
    ),
    ClassificationRule(
        StrengthTier.MISSING,
        lambda m: True,
        False,
        None,
    ),
)


def build_context(phrase: CandidatePhrase, fields: MetadataFields) -> MatchContext:
    """Compute field matches and contributions for one phrase."""
    return MatchContext(
        title=match_in_field(phrase, fields.title),
        subtitle=match_in_field(phrase, fields.subtitle),
        keywords=match_in_field(phrase, fields.keywords_field),
        from_title=contributes(phrase, fields.title),
        from_subtitle=contributes(phrase, fields.subtitle),
        from_keywords=contributes(phrase, fields.keywords_field),
    )


def classify_combo(phrase: CandidatePhrase, fields: MetadataFields) -> ClassifiedCombo:
    """
    Classify a phrase into its strength tier.

    Args:
        phrase: Candidate phrase to classify.
        fields: Tokenized metadata of the listing.

    Returns:
        ClassifiedCombo. Never raises; unmatched phrases are MISSING.
    """
    context = build_context(phrase, fields)

    source_fields = tuple(
        source
        for source, match in (
            (KeywordField.TITLE, context.title),
            (KeywordField.SUBTITLE, context.subtitle),
            (KeywordField.KEYWORDS_FIELD, context.keywords),
        )
        if match.exists
    )

    for rule in CLASSIFICATION_RULES:
        if rule.applies(context):
            return ClassifiedCombo(
                phrase=phrase,
                tier=rule.tier,
                is_consecutive=rule.is_consecutive,
                can_strengthen=rule.tier.can_strengthen,
                suggestion=rule.suggestion,
                source_fields=source_fields,
            )

    # Unreachable: the last rule always applies
    return ClassifiedCombo(phrase=phrase, tier=StrengthTier.MISSING)


def classify_combos(
    phrases: list[CandidatePhrase],
    fields: MetadataFields,
) -> list[ClassifiedCombo]:
    """Classify phrases, keeping their order."""
    classified = [classify_combo(phrase, fields) for phrase in phrases]
    logger.debug("Classified %d combos", len(classified))
    return classified


def classify_text(
    text: str,
    fields: MetadataFields,
) -> ClassifiedCombo:
    """Classify an arbitrary phrase typed by a user, e.g. "meditation zen"."""
    return classify_combo(CandidatePhrase.from_text(text), fields)
