"""
Top-N selection of scored combos under the output budget.
"""

import logging

from .config import DEFAULT_SELECTION_BUDGET
from .models import ScoredCombo, SelectionResult

logger = logging.getLogger(__name__)


def select_top_combos(
    scored: list[ScoredCombo],
    budget: int = DEFAULT_SELECTION_BUDGET,
) -> SelectionResult:
    """
    Rank combos by total priority and keep the first `budget`.

    Ties keep generation order (sorted() is stable and the input is in
    generation order).

    Args:
        scored: Scored combos in generation order.
        budget: Maximum number of combos to return.

    Returns:
        SelectionResult with the selected combos, the total generated and
        whether the list was truncated.
    """
    ranked = sorted(scored, key=lambda item: item.priority.total, reverse=True)
    total = len(scored)
    truncated = total > budget

    if truncated:
        logger.info(
            "Selection budget reached: returning %d of %d combos", budget, total
        )

    return SelectionResult(
        selected=ranked[:budget],
        total_generated=total,
        truncated=truncated,
    )
