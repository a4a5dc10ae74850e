"""
Pytest fixtures and configuration for ASO Combo Analyzer tests.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from aso_combo_analyzer.config import ComboAnalysisConfig
from aso_combo_analyzer.models import ComboRanking, KeywordPopularity
from aso_combo_analyzer.tokenizer import tokenize_metadata


@pytest.fixture
def meditation_fields():
    """Listing with title and subtitle only."""
    return tokenize_metadata(
        title="Meditation Sleep Timer",
        subtitle="Mindfulness Wellness App",
        keywords_field="",
    )


@pytest.fixture
def cross_fields():
    """Listing using all three combinable fields."""
    return tokenize_metadata(
        title="Meditation Timer",
        subtitle="Sleep Better",
        keywords_field="relaxation,breathing",
    )


@pytest.fixture
def default_config() -> ComboAnalysisConfig:
    return ComboAnalysisConfig()


@pytest.fixture
def sample_popularity() -> list[KeywordPopularity]:
    """Popularity signals for the meditation listing."""
    return [
        KeywordPopularity(keyword="meditation", popularity_score=80, intent_score=0.9),
        KeywordPopularity(keyword="sleep", popularity_score=70, intent_score=0.6),
        KeywordPopularity(keyword="timer", popularity_score=40, intent_score=0.3),
        KeywordPopularity(keyword="wellness", popularity_score=20, intent_score=None),
    ]


@pytest.fixture
def sample_rankings() -> list[ComboRanking]:
    """Ranking signals for a few meditation combos."""
    return [
        ComboRanking(combo="meditation sleep", position=3, total_results=500, trend="up",
                     position_change=12, checked_at=datetime.now(timezone.utc)),
        ComboRanking(combo="meditation timer", position=None, total_results=20_000),
        ComboRanking(combo="sleep timer", position=15, total_results=900, trend="down",
                     position_change=-6),
    ]


@pytest.fixture
def sample_popularity_csv(tmp_path: Path) -> Path:
    """Create a sample popularity CSV file."""
    csv_path = tmp_path / "popularity.csv"
    csv_content = """Keyword,Popularity Score,Intent,data_quality
Meditation,80,90,complete
sleep,70,0.6,stale
timer,,0.3,complete
 ,50,0.5,complete
wellness,20,,partial
"""
    csv_path.write_text(csv_content)
    return csv_path


@pytest.fixture
def sample_rankings_csv(tmp_path: Path) -> Path:
    """Create a sample rankings CSV file."""
    csv_path = tmp_path / "rankings.csv"
    csv_content = """combo,position,total_results,trend,position_change,checked_at
Meditation  Sleep,3,500,UP,12,2026-01-01T00:00:00Z
meditation timer,,20000,,,
sleep timer,15,900,down,-6,not a date
"""
    csv_path.write_text(csv_content)
    return csv_path


@pytest.fixture
def sample_popularity_excel(tmp_path: Path) -> Path:
    """Create a sample popularity Excel file."""
    import pandas as pd

    xlsx_path = tmp_path / "popularity.xlsx"
    df = pd.DataFrame({
        "term": ["meditation", "sleep", "timer"],
        "popularity": [80, 70, 40],
        "intent_score": [0.9, 0.6, 0.3],
    })
    df.to_excel(xlsx_path, index=False)
    return xlsx_path
