"""
Export analysis results to CSV or Excel.
"""

import logging
from pathlib import Path
from typing import Union

import pandas as pd

from .models import ComboAnalysisResult

logger = logging.getLogger(__name__)


EXPORT_COLUMNS = [
    "combo",
    "length",
    "tier",
    "strength_score",
    "is_consecutive",
    "can_strengthen",
    "suggestion",
    "popularity",
    "opportunity",
    "trend",
    "intent",
    "priority",
    "data_quality",
]


class ExportError(Exception):
    """Raised when a result cannot be exported."""
    pass


def combos_to_dataframe(result: ComboAnalysisResult) -> pd.DataFrame:
    """
    Flatten the selected combos into one row each.

    Args:
        result: Analysis result.

    Returns:
        DataFrame with EXPORT_COLUMNS, highest priority first.
    """
    rows = []
    for item in result.combos:
        combo = item.combo
        priority = item.priority
        rows.append({
            "combo": combo.text,
            "length": combo.length,
            "tier": combo.tier.value,
            "strength_score": combo.strength_score,
            "is_consecutive": combo.is_consecutive,
            "can_strengthen": combo.can_strengthen,
            "suggestion": combo.suggestion or "",
            "popularity": priority.popularity,
            "opportunity": priority.opportunity,
            "trend": priority.trend,
            "intent": priority.intent,
            "priority": priority.total,
            "data_quality": priority.data_quality.value,
        })
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_result(result: ComboAnalysisResult, output_path: Union[str, Path]) -> Path:
    """
    Write the selected combos to a .csv or .xlsx file.

    Args:
        result: Analysis result.
        output_path: Destination; the suffix picks the format.

    Returns:
        The path written.

    Raises:
        ExportError: For unsupported suffixes or write failures.
    """
    path = Path(output_path)
    suffix = path.suffix.lower()
    if suffix not in (".csv", ".xlsx"):
        raise ExportError(f"Unsupported export format: {suffix or '(none)'}. Use .csv or .xlsx")

    df = combos_to_dataframe(result)
    try:
        if suffix == ".csv":
            df.to_csv(path, index=False)
        else:
            df.to_excel(path, index=False, sheet_name="Combos")
    except OSError as e:
        raise ExportError(f"Failed to write {path}: {e}")

    logger.info("Exported %d combos to %s", len(df), path)
    return path
