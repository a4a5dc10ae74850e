"""
ASO Combo Analyzer

Keyword combination analysis for App Store listings:
- Generates every 2-4 keyword combination from title, subtitle and keywords field
- Classifies how strongly each combination is placed (eleven strength tiers)
- Ranks combinations by priority using ranking and popularity signals
"""

__version__ = "1.0.0"
__author__ = "ASO Combo Analyzer Team"

from .config import ComboAnalysisConfig, ComboConfigError

from .models import (
    KeywordField,
    StrengthTier,
    TrendDirection,
    DataQuality,
    FieldText,
    MetadataFields,
    CandidatePhrase,
    FieldMatch,
    ClassifiedCombo,
    KeywordPopularity,
    ComboRanking,
    PriorityScore,
    ScoredCombo,
    SelectionResult,
    TierStats,
    ComboAnalysisResult,
)

from .tokenizer import tokenize_text, tokenize_keywords_field, tokenize_metadata
from .combo_generator import generate_candidates
from .strength_classifier import CLASSIFICATION_RULES, classify_combo, classify_combos
from .priority_scorer import (
    calculate_combo_priority,
    score_combos,
    get_priority_tier,
    format_priority_breakdown,
)
from .selector import select_top_combos
from .aggregator import (
    calculate_tier_stats,
    get_tier_number,
    get_tier_label,
    filter_combos_by_keyword,
    group_combos_by_length,
    count_combos_with_keyword,
)
from .comparison import (
    diff_combos,
    calculate_tier_distribution,
    analyze_keyword_impact,
    extract_strengthen_opportunities,
)
from .providers import (
    ProviderError,
    RankingProvider,
    PopularityProvider,
    HttpRankingProvider,
    HttpPopularityProvider,
    StaticRankingProvider,
    StaticPopularityProvider,
    SignalBundle,
    fetch_signals,
)
from .signal_loader import SignalLoadError, load_popularity_file, load_rankings_file
from .export import ExportError, combos_to_dataframe, export_result
from .analyzer import ComboAnalyzer, analyze_metadata

__all__ = [
    # Config
    "ComboAnalysisConfig",
    "ComboConfigError",
    # Models
    "KeywordField",
    "StrengthTier",
    "TrendDirection",
    "DataQuality",
    "FieldText",
    "MetadataFields",
    "CandidatePhrase",
    "FieldMatch",
    "ClassifiedCombo",
    "KeywordPopularity",
    "ComboRanking",
    "PriorityScore",
    "ScoredCombo",
    "SelectionResult",
    "TierStats",
    "ComboAnalysisResult",
    # Pipeline
    "tokenize_text",
    "tokenize_keywords_field",
    "tokenize_metadata",
    "generate_candidates",
    "CLASSIFICATION_RULES",
    "classify_combo",
    "classify_combos",
    "calculate_combo_priority",
    "score_combos",
    "get_priority_tier",
    "format_priority_breakdown",
    "select_top_combos",
    "calculate_tier_stats",
    "get_tier_number",
    "get_tier_label",
    "filter_combos_by_keyword",
    "group_combos_by_length",
    "count_combos_with_keyword",
    # Comparison
    "diff_combos",
    "calculate_tier_distribution",
    "analyze_keyword_impact",
    "extract_strengthen_opportunities",
    # Signals
    "ProviderError",
    "RankingProvider",
    "PopularityProvider",
    "HttpRankingProvider",
    "HttpPopularityProvider",
    "StaticRankingProvider",
    "StaticPopularityProvider",
    "SignalBundle",
    "fetch_signals",
    "SignalLoadError",
    "load_popularity_file",
    "load_rankings_file",
    # Export
    "ExportError",
    "combos_to_dataframe",
    "export_result",
    # Orchestration
    "ComboAnalyzer",
    "analyze_metadata",
]
