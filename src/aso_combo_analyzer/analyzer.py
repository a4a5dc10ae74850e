"""
Combo analysis orchestration.

Runs the full pipeline for one app listing:
Tokenizer -> Generator -> Classifier -> Scorer -> Selector -> Aggregator

The pipeline is pure and synchronous. External signals are either passed in
(analyze) or fetched once per run from providers (analyze_async); in both
cases missing or failed signals only lower the data quality of the scores.
"""

import logging
from typing import Iterable, Optional, Union

from .aggregator import calculate_tier_stats
from .combo_generator import generate_candidates
from .config import ComboAnalysisConfig
from .models import (
    ClassifiedCombo,
    ComboAnalysisResult,
    ComboRanking,
    KeywordPopularity,
    MetadataFields,
)
from .priority_scorer import score_combos
from .providers import PopularityProvider, RankingProvider, fetch_signals
from .selector import select_top_combos
from .strength_classifier import classify_combos
from .tokenizer import tokenize_metadata

logger = logging.getLogger(__name__)


RankingInput = Union[dict[str, ComboRanking], Iterable[ComboRanking], None]
PopularityInput = Union[dict[str, KeywordPopularity], Iterable[KeywordPopularity], None]


def _ranking_map(rankings: RankingInput) -> dict[str, ComboRanking]:
    if not rankings:
        return {}
    if isinstance(rankings, dict):
        return {" ".join(k.lower().split()): v for k, v in rankings.items()}
    return {r.combo: r for r in rankings}


def _popularity_map(popularity: PopularityInput) -> dict[str, KeywordPopularity]:
    if not popularity:
        return {}
    if isinstance(popularity, dict):
        return {k.strip().lower(): v for k, v in popularity.items()}
    return {p.keyword: p for p in popularity}


def _warn_if_stale(
    rankings: dict[str, ComboRanking],
    popularity: dict[str, KeywordPopularity],
) -> None:
    stale_rankings = sum(1 for r in rankings.values() if r.is_stale())
    stale_popularity = sum(1 for p in popularity.values() if p.is_stale)
    if stale_rankings or stale_popularity:
        logger.warning(
            "Using stale signals: %d rankings older than 24h, %d popularity entries flagged stale",
            stale_rankings,
            stale_popularity,
        )


class ComboAnalyzer:
    """
    Analyzes keyword combinations of an App Store listing.

    Example:
        analyzer = ComboAnalyzer(ComboAnalysisConfig.quick())
        result = analyzer.analyze("Meditation Sleep Timer", "Mindfulness Wellness App")
        for item in result.recommended_to_add(5):
            print(item.text, item.priority.total)
    """

    def __init__(self, config: Optional[ComboAnalysisConfig] = None):
        """
        Initialize the analyzer.

        Args:
            config: Analysis configuration. Defaults to ComboAnalysisConfig().
        """
        self.config = config or ComboAnalysisConfig()

    def classify_metadata(
        self,
        title: Optional[str] = "",
        subtitle: Optional[str] = "",
        keywords_field: Optional[str] = "",
        promo_text: Optional[str] = None,
    ) -> tuple[MetadataFields, list[ClassifiedCombo]]:
        """
        Tokenize, generate and classify without scoring.

        Returns:
            (tokenized fields, every classified combo in generation order).
        """
        fields = tokenize_metadata(
            title=title,
            subtitle=subtitle,
            keywords_field=keywords_field,
            promo_text=promo_text,
            max_input_keywords=self.config.max_input_keywords,
        )
        candidates = generate_candidates(fields, self.config)
        return fields, classify_combos(candidates, fields)

    def analyze(
        self,
        title: Optional[str] = "",
        subtitle: Optional[str] = "",
        keywords_field: Optional[str] = "",
        promo_text: Optional[str] = None,
        rankings: RankingInput = None,
        popularity: PopularityInput = None,
    ) -> ComboAnalysisResult:
        """
        Run the full analysis with already available signals.

        Args:
            title: App title.
            subtitle: App subtitle.
            keywords_field: Comma-separated keywords field.
            promo_text: Optional promotional text (tokenized, not combined).
            rankings: Ranking signals, as a list or a map keyed by combo text.
            popularity: Popularity signals, as a list or a map keyed by keyword.

        Returns:
            ComboAnalysisResult with the selected combos and full-set stats.
        """
        fields, classified = self.classify_metadata(title, subtitle, keywords_field, promo_text)
        return self._finish(fields, classified, _ranking_map(rankings), _popularity_map(popularity))

    async def analyze_async(
        self,
        title: Optional[str] = "",
        subtitle: Optional[str] = "",
        keywords_field: Optional[str] = "",
        promo_text: Optional[str] = None,
        ranking_provider: Optional[RankingProvider] = None,
        popularity_provider: Optional[PopularityProvider] = None,
        app_id: str = "",
    ) -> ComboAnalysisResult:
        """
        Run the analysis, fetching signals from providers once for the run.

        Provider failures and timeouts are logged and degrade data quality;
        they are never raised.

        Args:
            title: App title.
            subtitle: App subtitle.
            keywords_field: Comma-separated keywords field.
            promo_text: Optional promotional text.
            ranking_provider: Source of per-combo rankings.
            popularity_provider: Source of per-keyword popularity.
            app_id: App identifier forwarded to the ranking provider.

        Returns:
            ComboAnalysisResult.
        """
        fields, classified = self.classify_metadata(title, subtitle, keywords_field, promo_text)

        bundle = await fetch_signals(
            combos=[c.text for c in classified],
            keywords=fields.all_keywords,
            ranking_provider=ranking_provider,
            popularity_provider=popularity_provider,
            app_id=app_id,
            region=self.config.region,
            platform=self.config.platform,
            timeout=self.config.provider_timeout,
        )
        return self._finish(fields, classified, bundle.rankings, bundle.popularity)

    def _finish(
        self,
        fields: MetadataFields,
        classified: list[ClassifiedCombo],
        rankings: dict[str, ComboRanking],
        popularity: dict[str, KeywordPopularity],
    ) -> ComboAnalysisResult:
        """Score, select and aggregate classified combos."""
        _warn_if_stale(rankings, popularity)

        scored = score_combos(classified, rankings, popularity, self.config)
        selection = select_top_combos(scored, self.config.selection_budget)
        stats = calculate_tier_stats(classified)

        logger.info(
            "Analyzed %d combos: %d existing, %d missing, coverage %.1f%%, returned %d%s",
            stats.total_generated,
            stats.existing,
            stats.missing,
            stats.coverage,
            len(selection.selected),
            " (truncated)" if selection.truncated else "",
        )

        return ComboAnalysisResult(
            combos=selection.selected,
            stats=stats,
            truncated=selection.truncated,
            selection_budget=self.config.selection_budget,
            fields=fields,
        )


def analyze_metadata(
    title: Optional[str] = "",
    subtitle: Optional[str] = "",
    keywords_field: Optional[str] = "",
    promo_text: Optional[str] = None,
    config: Optional[ComboAnalysisConfig] = None,
    rankings: RankingInput = None,
    popularity: PopularityInput = None,
) -> ComboAnalysisResult:
    """Convenience wrapper around ComboAnalyzer(config).analyze(...)."""
    return ComboAnalyzer(config).analyze(
        title=title,
        subtitle=subtitle,
        keywords_field=keywords_field,
        promo_text=promo_text,
        rankings=rankings,
        popularity=popularity,
    )
