"""
Combination generation for keyword combos.

Generates every 2-4 keyword combination that can be assembled from the
keywords already present in the metadata, so that missing arrangements can be
identified. Combinations are exhaustive (not sliding-window n-grams) and keep
the relative word order of the source list they were drawn from.

Sources, in generation order:
1. Title only
2. Subtitle only
3. Keywords field only
4. Title + Subtitle (at least one word from each, none from keywords field)
5. Title + Keywords field (none from subtitle)
6. Subtitle + Keywords field (none from title)
7. Title + Subtitle + Keywords field (at least one word from each)
"""

import logging
from itertools import combinations, product
from typing import Iterator, Optional

from .config import ComboAnalysisConfig
from .models import CandidatePhrase, FieldText, KeywordField, MetadataFields

logger = logging.getLogger(__name__)


SOURCE_GROUPS: tuple[tuple[KeywordField, ...], ...] = (
    (KeywordField.TITLE,),
    (KeywordField.SUBTITLE,),
    (KeywordField.KEYWORDS_FIELD,),
    (KeywordField.TITLE, KeywordField.SUBTITLE),
    (KeywordField.TITLE, KeywordField.KEYWORDS_FIELD),
    (KeywordField.SUBTITLE, KeywordField.KEYWORDS_FIELD),
    (KeywordField.TITLE, KeywordField.SUBTITLE, KeywordField.KEYWORDS_FIELD),
)


def _compositions(total: int, parts: int) -> Iterator[tuple[int, ...]]:
    """Yield every way to split `total` into `parts` positive integers."""
    if parts == 1:
        if total >= 1:
            yield (total,)
        return
    for first in range(total - parts + 1, 0, -1):
        for rest in _compositions(total - first, parts - 1):
            yield (first,) + rest


def iter_group_combinations(
    field_keywords: list[tuple[str, ...]],
    size: int,
) -> Iterator[tuple[str, ...]]:
    """
    Yield combinations that take at least one keyword from every field.

    Words from earlier fields always precede words from later fields, which
    is the order they have in the concatenated source list.

    Args:
        field_keywords: Keyword tuples of each field in the group.
        size: Total number of keywords per combination.
    """
    if any(not keywords for keywords in field_keywords):
        return
    for counts in _compositions(size, len(field_keywords)):
        if any(count > len(keywords) for count, keywords in zip(counts, field_keywords)):
            continue
        per_field = [
            combinations(keywords, count)
            for count, keywords in zip(counts, field_keywords)
        ]
        for parts in product(*per_field):
            yield tuple(word for part in parts for word in part)


def _field_for(fields: MetadataFields, source: KeywordField) -> FieldText:
    if source is KeywordField.TITLE:
        return fields.title
    if source is KeywordField.SUBTITLE:
        return fields.subtitle
    if source is KeywordField.KEYWORDS_FIELD:
        return fields.keywords_field
    return fields.promo_text


def generate_candidates(
    fields: MetadataFields,
    config: Optional[ComboAnalysisConfig] = None,
) -> list[CandidatePhrase]:
    """
    Generate the distinct candidate phrases for a listing.

    Args:
        fields: Tokenized metadata.
        config: Length bounds and the candidate cap.

    Returns:
        Candidate phrases in generation order, unique by phrase text.
    """
    config = config or ComboAnalysisConfig()
    seen: set[str] = set()
    candidates: list[CandidatePhrase] = []

    for group in SOURCE_GROUPS:
        field_keywords = [_field_for(fields, source).keywords for source in group]
        group_size = 0

        for size in config.lengths:
            if size < len(group):
                continue
            for keywords in iter_group_combinations(field_keywords, size):
                phrase = CandidatePhrase.from_keywords(keywords)
                words = phrase.words
                # The same word picked from two fields (or inside a
                # multi-word keywords entry) is not a combo
                if len(set(words)) < len(words):
                    continue
                if phrase.text in seen:
                    continue

                seen.add(phrase.text)
                candidates.append(phrase)
                group_size += 1

                if len(candidates) >= config.max_candidates:
                    logger.warning(
                        "Candidate cap reached (%d); generation stopped in %s",
                        config.max_candidates,
                        "+".join(source.value for source in group),
                    )
                    return candidates

        logger.debug(
            "Generated %d combos from %s",
            group_size,
            "+".join(source.value for source in group),
        )

    logger.debug("Generated %d candidate combos in total", len(candidates))
    return candidates

