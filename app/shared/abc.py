"""Two-dimensional ABC (Pareto) classification.

Items are ranked independently by value and by quantity. Walking each
ranking from the top, an item's class is decided by the cumulative share
reached *including* that item: <= 70% is A, <= 90% is B, the rest C.
The combined class is value class followed by quantity class ("AB").
"""

import pandas as pd

A_THRESHOLD = 0.70
B_THRESHOLD = 0.90
ABC_CLASSES = ("A", "B", "C")

# Cumulative shares are rounded before comparing so float noise from
# cumsum cannot push an item sitting exactly on a threshold into the next class
SHARE_DECIMALS = 9


def abc_class_for(cumulative_share: float) -> str:
    """Class letter for a cumulative share in [0, 1]."""
    if cumulative_share <= A_THRESHOLD:
        return "A"
    if cumulative_share <= B_THRESHOLD:
        return "B"
    return "C"


def normalize_share(value: float) -> float:
    """Bring a percentage to [0, 1]; values above 1 are already scaled by 100."""
    return value / 100 if value > 1 else value


def rank_dimension(frame: pd.DataFrame, column: str, prefix: str) -> pd.DataFrame:
    """Rank rows by ``column`` descending and classify the cumulative share.

    Args:
        frame: Input rows; left untouched.
        column: Numeric column to rank on.
        prefix: Prefix of the added columns (``<prefix>_rank``,
            ``<prefix>_share``, ``<prefix>_cumulative``, ``<prefix>_class``).

    Returns:
        Copy of ``frame`` (original index and order) with the added columns.
    """
    result = frame.copy()
    if result.empty:
        for suffix in ("rank", "share", "cumulative", "class"):
            result[f"{prefix}_{suffix}"] = pd.Series(dtype="object")
        return result

    ordered = result[column].astype(float).sort_values(ascending=False, kind="mergesort")
    total = float(ordered.sum())
    share = ordered / total if total > 0 else ordered * 0.0
    cumulative = share.cumsum().round(SHARE_DECIMALS)

    result[f"{prefix}_rank"] = pd.Series(range(1, len(ordered) + 1), index=ordered.index)
    result[f"{prefix}_share"] = share
    result[f"{prefix}_cumulative"] = cumulative
    result[f"{prefix}_class"] = cumulative.map(abc_class_for)
    return result


def classify_two_dimensions(
    frame: pd.DataFrame,
    value_column: str = "value",
    qty_column: str = "qty",
) -> pd.DataFrame:
    """Classify rows by value and by quantity.

    Returns:
        Rows sorted by value rank with ``value_*``, ``qty_*`` columns and
        the combined ``abc_class``.
    """
    result = rank_dimension(frame, value_column, "value")
    result = rank_dimension(result, qty_column, "qty")
    if result.empty:
        result["abc_class"] = pd.Series(dtype="object")
        return result
    result["abc_class"] = result["value_class"] + result["qty_class"]
    return result.sort_values("value_rank", kind="mergesort")
