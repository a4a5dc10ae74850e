# -*- coding: utf-8 -*-
"""
Centralized configuration for the ASO Combo Analyzer.

This module provides a unified configuration dataclass that controls
combination generation bounds, the selection budget, opportunity scoring
constants and how external signal providers are called.
"""

from dataclasses import dataclass


# Hard ceiling on combination length. Longer combos explode combinatorially
# and are rejected at configuration time rather than silently clamped.
MAX_COMBO_LENGTH = 4

# Shortest combination that counts as a "combo"
MIN_COMBO_LENGTH = 2

DEFAULT_SELECTION_BUDGET = 500
DEFAULT_MAX_INPUT_KEYWORDS = 1000
DEFAULT_MAX_CANDIDATES = 100_000


class ComboConfigError(ValueError):
    """Raised when the analysis configuration violates its contract."""
    pass


@dataclass
class ComboAnalysisConfig:
    """
    Central configuration for combo analysis behavior.

    Attributes:
        min_length: Shortest combination (in keywords) to generate.
        max_length: Longest combination to generate. Never above
            MAX_COMBO_LENGTH.
        selection_budget: Maximum number of combos returned by the Selector.
            When more are generated, the result is flagged as truncated.

        max_input_keywords: Hard cap on distinct keyword tokens considered
            across all fields. Title tokens are kept first, then subtitle,
            then keywords field.
        max_candidates: Hard cap on generated candidate phrases. Generation
            stops early (with a warning) once reached.

        high_competition_threshold: totalResults above which a non-ranking
            combo is considered crowded.
        competition_penalty: Multiplier applied to the blue-ocean
            opportunity score when the threshold is exceeded.

        provider_timeout: Seconds allowed for each batched provider fetch.
        region: Storefront/country code forwarded to providers.
        platform: Store platform forwarded to the ranking provider.
    """

    # Combination bounds
    min_length: int = MIN_COMBO_LENGTH
    max_length: int = MAX_COMBO_LENGTH
    selection_budget: int = DEFAULT_SELECTION_BUDGET

    # Safety bounds (hard ceilings)
    max_input_keywords: int = DEFAULT_MAX_INPUT_KEYWORDS
    max_candidates: int = DEFAULT_MAX_CANDIDATES

    # Opportunity scoring
    high_competition_threshold: int = 10_000
    competition_penalty: float = 0.875

    # External providers
    provider_timeout: float = 10.0
    region: str = "us"
    platform: str = "ios"

    @property
    def lengths(self) -> range:
        """Combination lengths to generate, shortest first."""
        return range(self.min_length, self.max_length + 1)

    def __post_init__(self):
        """Validate configuration values."""
        if self.min_length < 0 or self.max_length < 0:
            raise ComboConfigError(
                f"min_length and max_length must be non-negative, "
                f"got min_length={self.min_length}, max_length={self.max_length}"
            )
        if self.min_length < MIN_COMBO_LENGTH:
            raise ComboConfigError(
                f"min_length must be >= {MIN_COMBO_LENGTH}, got {self.min_length}"
            )
        if self.max_length < self.min_length:
            raise ComboConfigError(
                f"max_length ({self.max_length}) must be >= "
                f"min_length ({self.min_length})"
            )
        if self.max_length > MAX_COMBO_LENGTH:
            raise ComboConfigError(
                f"max_length must be <= {MAX_COMBO_LENGTH}, got {self.max_length}"
            )
        if self.selection_budget < 1:
            raise ComboConfigError(
                f"selection_budget must be >= 1, got {self.selection_budget}"
            )
        if self.max_input_keywords < 1:
            raise ComboConfigError(
                f"max_input_keywords must be >= 1, got {self.max_input_keywords}"
            )
        if self.max_candidates < 1:
            raise ComboConfigError(
                f"max_candidates must be >= 1, got {self.max_candidates}"
            )
        if self.high_competition_threshold < 0:
            raise ComboConfigError(
                f"high_competition_threshold must be >= 0, "
                f"got {self.high_competition_threshold}"
            )
        if not 0 <= self.competition_penalty <= 1:
            raise ComboConfigError(
                f"competition_penalty must be between 0 and 1, "
                f"got {self.competition_penalty}"
            )
        if self.provider_timeout <= 0:
            raise ComboConfigError(
                f"provider_timeout must be > 0, got {self.provider_timeout}"
            )

    @classmethod
    def default(cls, **overrides) -> "ComboAnalysisConfig":
        """Create config with the standard defaults (lengths 2-4, budget 500)."""
        return cls(**overrides)

    @classmethod
    def quick(cls, **overrides) -> "ComboAnalysisConfig":
        """Create config for a fast overview.

        Quick mode:
        - Only 2 and 3 keyword combos
        - Smaller selection budget (100)

        Args:
            **overrides: Override any config values

        Returns:
            ComboAnalysisConfig with quick defaults
        """
        defaults = {
            "min_length": 2,
            "max_length": 3,
            "selection_budget": 100,
        }
        defaults.update(overrides)
        return cls(**defaults)

    @classmethod
    def exhaustive(cls, **overrides) -> "ComboAnalysisConfig":
        """Create config that keeps far more combos in the output.

        Args:
            **overrides: Override any config values

        Returns:
            ComboAnalysisConfig with a 5000 combo selection budget
        """
        defaults = {
            "min_length": MIN_COMBO_LENGTH,
            "max_length": MAX_COMBO_LENGTH,
            "selection_budget": 5000,
        }
        defaults.update(overrides)
        return cls(**defaults)
