"""
Keyword extraction from App Store metadata fields.

Free-text fields (title, subtitle, promotional text) are lowercased, stripped
of punctuation, split on whitespace and filtered for stopwords and one-letter
tokens. The keywords field is comma-delimited: every entry is a keyword the
developer chose explicitly, so it is only trimmed and lowercased.

Both paths keep first-seen order and drop duplicates.
"""

import logging
import re
from typing import Optional

from .config import DEFAULT_MAX_INPUT_KEYWORDS
from .models import ENTRY_SEPARATOR, FieldText, KeywordField, MetadataFields

logger = logging.getLogger(__name__)


# Articles, conjunctions, common prepositions and auxiliary verbs.
# These never form a useful combo on their own.
STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "nor",
    "in", "on", "at", "to", "for", "of", "with", "by", "from", "as", "into",
    "is", "was", "are", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did",
    "will", "would", "should", "could", "may", "might", "can", "must", "shall",
})

_NON_WORD = re.compile(r"\W+")


def split_words(text: Optional[str]) -> list[str]:
    """
    Lowercase text and split it into words, treating punctuation as spaces.

    Args:
        text: Input text, may be None or empty.

    Returns:
        List of words in original order (duplicates and stopwords kept).
    """
    if not text:
        return []
    return _NON_WORD.sub(" ", text.lower()).split()


def _dedupe(tokens: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for token in tokens:
        if token not in seen:
            seen.add(token)
            unique.append(token)
    return unique


def tokenize_text(text: Optional[str]) -> list[str]:
    """
    Extract keywords from a free-text field.

    Args:
        text: Title, subtitle or promotional text.

    Returns:
        Ordered distinct keywords with stopwords and 1-char tokens removed.
    """
    words = split_words(text)
    return _dedupe([w for w in words if len(w) > 1 and w not in STOPWORDS])


def split_keyword_entries(text: Optional[str]) -> list[list[str]]:
    """Split the keywords field into entries, each a list of normalized words."""
    if not text:
        return []
    entries = []
    for part in text.split(","):
        words = split_words(part)
        if words:
            entries.append(words)
    return entries


def tokenize_keywords_field(text: Optional[str]) -> list[str]:
    """
    Extract keywords from the comma-delimited keywords field.

    No stopword or length filtering is applied; stray commas and
    whitespace-only entries are silently dropped.

    Args:
        text: Raw keywords field, e.g. "sleep,white noise, ,relax".

    Returns:
        Ordered distinct keyword entries.
    """
    return _dedupe([" ".join(words) for words in split_keyword_entries(text)])


def normalize_field(source: KeywordField, text: Optional[str]) -> FieldText:
    """
    Normalize one metadata field into keywords and a matching stream.

    Args:
        source: Which field the text belongs to.
        text: Raw field text.

    Returns:
        FieldText with keywords and word stream populated.
    """
    raw = text or ""
    if source is KeywordField.KEYWORDS_FIELD:
        stream: list[str] = []
        for words in split_keyword_entries(raw):
            if stream:
                stream.append(ENTRY_SEPARATOR)
            stream.extend(words)
        keywords = tokenize_keywords_field(raw)
    else:
        stream = split_words(raw)
        keywords = tokenize_text(raw)

    return FieldText(
        source=source,
        raw=raw,
        keywords=tuple(keywords),
        stream=tuple(stream),
    )


def _cap_keywords(fields: list[FieldText], limit: int) -> list[FieldText]:
    """Keep at most `limit` distinct keywords, earlier fields first."""
    kept: set[str] = set()
    capped: list[FieldText] = []
    dropped = 0

    for field_text in fields:
        keywords = []
        for keyword in field_text.keywords:
            if keyword in kept:
                keywords.append(keyword)
            elif len(kept) < limit:
                kept.add(keyword)
                keywords.append(keyword)
            else:
                dropped += 1
        capped.append(FieldText(
            source=field_text.source,
            raw=field_text.raw,
            keywords=tuple(keywords),
            stream=field_text.stream,
        ))

    if dropped:
        logger.warning(
            "Input keyword cap reached: kept %d distinct keywords, dropped %d",
            len(kept), dropped,
        )
    return capped


def tokenize_metadata(
    title: Optional[str] = "",
    subtitle: Optional[str] = "",
    keywords_field: Optional[str] = "",
    promo_text: Optional[str] = None,
    max_input_keywords: int = DEFAULT_MAX_INPUT_KEYWORDS,
) -> MetadataFields:
    """
    Tokenize every metadata field of an app listing.

    Args:
        title: App title.
        subtitle: App subtitle.
        keywords_field: Comma-separated keywords field.
        promo_text: Optional promotional text (reserved, not combined).
        max_input_keywords: Hard cap on distinct combinable keywords.

    Returns:
        MetadataFields with one FieldText per field.
    """
    title_text, subtitle_text, keywords_text = _cap_keywords(
        [
            normalize_field(KeywordField.TITLE, title),
            normalize_field(KeywordField.SUBTITLE, subtitle),
            normalize_field(KeywordField.KEYWORDS_FIELD, keywords_field),
        ],
        max_input_keywords,
    )

    fields = MetadataFields(
        title=title_text,
        subtitle=subtitle_text,
        keywords_field=keywords_text,
        promo_text=normalize_field(KeywordField.PROMO_TEXT, promo_text),
    )
    logger.debug(
        "Tokenized metadata: title=%d subtitle=%d keywords=%d promo=%d",
        len(fields.title.keywords),
        len(fields.subtitle.keywords),
        len(fields.keywords_field.keywords),
        len(fields.promo_text.keywords),
    )
    return fields
