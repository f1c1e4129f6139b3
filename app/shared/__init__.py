"""Shared utilities used across 3+ features."""

from app.shared.abc import abc_class_for, classify_two_dimensions, rank_dimension
from app.shared.models import TimestampMixin

__all__ = [
    "TimestampMixin",
    "abc_class_for",
    "classify_two_dimensions",
    "rank_dimension",
]
