"""
Signal loading from CSV and Excel files.

Lets popularity and ranking signals exported from a keyword tool be fed
into an analysis without running the HTTP providers:
- Keyword popularity files (one row per keyword)
- Combo ranking files (one row per combo)
"""

import math
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

from .models import ComboRanking, KeywordPopularity


class SignalLoadError(Exception):
    """Raised when signal loading fails."""
    pass


# Common column name variations
KEYWORD_COLUMN_VARIANTS = ["keyword", "keywords", "term", "token"]
POPULARITY_COLUMN_VARIANTS = ["popularity_score", "popularity", "search_volume", "volume"]
INTENT_COLUMN_VARIANTS = ["intent_score", "intent"]
AUTOCOMPLETE_COLUMN_VARIANTS = ["autocomplete_score", "autocomplete"]
LENGTH_PRIOR_COLUMN_VARIANTS = ["length_prior"]
QUALITY_COLUMN_VARIANTS = ["data_quality", "quality"]

COMBO_COLUMN_VARIANTS = ["combo", "phrase", "keyword"]
POSITION_COLUMN_VARIANTS = ["position", "rank", "ranking"]
TOTAL_RESULTS_COLUMN_VARIANTS = ["total_results", "totalresults", "results", "competition"]
TREND_COLUMN_VARIANTS = ["trend"]
POSITION_CHANGE_COLUMN_VARIANTS = ["position_change", "positionchange", "change"]
CHECKED_AT_COLUMN_VARIANTS = ["checked_at", "checkedat", "snapshot_date", "date"]


def _normalize_column_name(name: str) -> str:
    """Normalize column name for matching."""
    return str(name).lower().strip().replace(" ", "_").replace("-", "_")


def _find_column(df: pd.DataFrame, variants: list[str]) -> Optional[str]:
    """
    Find a column in the DataFrame matching one of the variant names.

    Args:
        df: The DataFrame to search.
        variants: List of possible column name variants.

    Returns:
        The actual column name if found, None otherwise.
    """
    normalized_columns = {_normalize_column_name(col): col for col in df.columns}

    for variant in variants:
        normalized = _normalize_column_name(variant)
        if normalized in normalized_columns:
            return normalized_columns[normalized]

    return None


def read_table(file_path: Union[str, Path], sheet_name: Optional[str] = None) -> pd.DataFrame:
    """
    Read a CSV or Excel file into a DataFrame.

    Raises:
        SignalLoadError: If the file is missing, unsupported or unreadable.
    """
    path = Path(file_path)

    if not path.exists():
        raise SignalLoadError(f"File not found: {file_path}")

    suffix = path.suffix.lower()
    try:
        if suffix == ".csv":
            try:
                df = pd.read_csv(path, encoding="utf-8")
            except UnicodeDecodeError:
                df = pd.read_csv(path, encoding="latin-1")
        elif suffix in (".xlsx", ".xls"):
            df = pd.read_excel(path, sheet_name=sheet_name or 0)
        else:
            raise SignalLoadError(
                f"Unsupported file format: {suffix}. Supported formats: .csv, .xlsx, .xls"
            )
    except SignalLoadError:
        raise
    except Exception as e:
        raise SignalLoadError(f"Failed to read {path.name}: {e}")

    if df.empty:
        raise SignalLoadError(f"Signal file is empty: {path.name}")
    return df


def _cell(row: pd.Series, column: Optional[str]) -> Any:
    """Return the cell value, or None when the column is absent or the cell is blank."""
    if column is None:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (ValueError, TypeError):
        return None
    # "inf" and "nan" cells are treated as blank
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def parse_popularity_dataframe(df: pd.DataFrame) -> list[KeywordPopularity]:
    """
    Parse a DataFrame into KeywordPopularity rows.

    Rows with a blank keyword or no popularity value are skipped. Intent
    values above 1 are read as percentages.

    Raises:
        SignalLoadError: If the keyword column is missing or no row is usable.
    """
    keyword_col = _find_column(df, KEYWORD_COLUMN_VARIANTS)
    if keyword_col is None:
        raise SignalLoadError(
            f"No keyword column found. Expected one of: {', '.join(KEYWORD_COLUMN_VARIANTS)}. "
            f"Found columns: {', '.join(map(str, df.columns))}"
        )

    popularity_col = _find_column(df, POPULARITY_COLUMN_VARIANTS)
    intent_col = _find_column(df, INTENT_COLUMN_VARIANTS)
    autocomplete_col = _find_column(df, AUTOCOMPLETE_COLUMN_VARIANTS)
    length_col = _find_column(df, LENGTH_PRIOR_COLUMN_VARIANTS)
    quality_col = _find_column(df, QUALITY_COLUMN_VARIANTS)

    signals: list[KeywordPopularity] = []

    for _, row in df.iterrows():
        keyword = _cell(row, keyword_col)
        if keyword is None:
            continue

        popularity = _to_float(_cell(row, popularity_col))
        if popularity is None:
            continue

        intent = _to_float(_cell(row, intent_col))
        if intent is not None and intent > 1:
            intent /= 100

        quality = _cell(row, quality_col)
        signals.append(
            KeywordPopularity(
                keyword=str(keyword),
                popularity_score=popularity,
                intent_score=intent,
                autocomplete_score=_to_float(_cell(row, autocomplete_col)) or 0.0,
                length_prior=_to_float(_cell(row, length_col)) or 0.0,
                data_quality=str(quality).strip().lower() if quality is not None else "complete",
            )
        )

    if not signals:
        raise SignalLoadError("No valid popularity rows found in file")

    return signals


def parse_rankings_dataframe(df: pd.DataFrame) -> list[ComboRanking]:
    """
    Parse a DataFrame into ComboRanking rows.

    Raises:
        SignalLoadError: If the combo column is missing or no row is usable.
    """
    combo_col = _find_column(df, COMBO_COLUMN_VARIANTS)
    if combo_col is None:
        raise SignalLoadError(
            f"No combo column found. Expected one of: {', '.join(COMBO_COLUMN_VARIANTS)}. "
            f"Found columns: {', '.join(map(str, df.columns))}"
        )

    position_col = _find_column(df, POSITION_COLUMN_VARIANTS)
    total_col = _find_column(df, TOTAL_RESULTS_COLUMN_VARIANTS)
    trend_col = _find_column(df, TREND_COLUMN_VARIANTS)
    change_col = _find_column(df, POSITION_CHANGE_COLUMN_VARIANTS)
    checked_col = _find_column(df, CHECKED_AT_COLUMN_VARIANTS)

    rankings: list[ComboRanking] = []

    for _, row in df.iterrows():
        combo = _cell(row, combo_col)
        if combo is None:
            continue

        checked_at = None
        raw_checked = _cell(row, checked_col)
        if raw_checked is not None:
            timestamp = pd.to_datetime(raw_checked, errors="coerce", utc=True)
            if not pd.isna(timestamp):
                checked_at = timestamp.to_pydatetime()

        rankings.append(
            ComboRanking(
                combo=str(combo),
                position=_to_int(_cell(row, position_col)),
                total_results=_to_int(_cell(row, total_col)),
                trend=_cell(row, trend_col),
                position_change=_to_int(_cell(row, change_col)),
                checked_at=checked_at,
            )
        )

    if not rankings:
        raise SignalLoadError("No valid ranking rows found in file")

    return rankings


def load_popularity_file(
    file_path: Union[str, Path],
    sheet_name: Optional[str] = None,
) -> list[KeywordPopularity]:
    """
    Load keyword popularity signals from a CSV or Excel file.

    Args:
        file_path: Path to the file.
        sheet_name: Optional sheet name for Excel files.

    Returns:
        List of KeywordPopularity objects, deduplicated by keyword (first wins).

    Raises:
        SignalLoadError: If the file cannot be read or is invalid.
    """
    signals = parse_popularity_dataframe(read_table(file_path, sheet_name))
    seen: set[str] = set()
    unique = []
    for signal in signals:
        if signal.keyword not in seen:
            seen.add(signal.keyword)
            unique.append(signal)
    return unique


def load_rankings_file(
    file_path: Union[str, Path],
    sheet_name: Optional[str] = None,
) -> list[ComboRanking]:
    """
    Load combo ranking signals from a CSV or Excel file.

    Args:
        file_path: Path to the file.
        sheet_name: Optional sheet name for Excel files.

    Returns:
        List of ComboRanking objects.

    Raises:
        SignalLoadError: If the file cannot be read or is invalid.
    """
    return parse_rankings_dataframe(read_table(file_path, sheet_name))
