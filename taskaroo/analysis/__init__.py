"""Task ordering helpers."""
from .ordering import PRIORITY_WEIGHTS, SortMode, order, priority_weight, sort_key

__all__ = ["PRIORITY_WEIGHTS", "SortMode", "order", "priority_weight", "sort_key"]
