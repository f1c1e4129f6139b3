"""Article name aliases.

The portal carries the same product under several labels (spelling,
capitalization, the Portuguese and English menu). Names are canonicalized
at query time, so stored rows keep the label the portal printed.

Keys are the lowercased, trimmed label; values the canonical name.
Keys must stay ASCII: SQLite's lower() only folds ASCII letters.
"""

from typing import Any

from sqlalchemy import ColumnElement, case, func

ARTICLE_ALIASES: dict[str, str] = {
    "molho ranch": "Molho Ranch Fumado",
    "molho ranch fumado": "Molho Ranch Fumado",
    "ranch sauce": "Molho Ranch Fumado",
    "smoked ranch sauce": "Molho Ranch Fumado",
    "molho barbecue": "Molho BBQ",
    "molho bbq": "Molho BBQ",
    "bbq sauce": "Molho BBQ",
    "coca cola": "Coca-Cola",
    "coca-cola": "Coca-Cola",
    "coca cola zero": "Coca-Cola Zero",
    "coca-cola zero": "Coca-Cola Zero",
    "agua 50cl": "Água 50cl",
    "pizza margarita": "Pizza Margherita",
    "pizza margherita": "Pizza Margherita",
    "margherita": "Pizza Margherita",
}


def canonical_name(name: str) -> str:
    """Canonical label for ``name``; unknown names are returned unchanged."""
    return ARTICLE_ALIASES.get(name.strip().lower(), name)


def canonical_name_expr(column: ColumnElement[Any]) -> ColumnElement[Any]:
    """SQL expression mapping ``column`` through the alias table.

    Usable in SELECT and GROUP BY so aliased rows fall into one bucket.
    """
    return case(ARTICLE_ALIASES, value=func.lower(func.trim(column)), else_=column)
