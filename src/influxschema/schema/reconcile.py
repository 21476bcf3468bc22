"""
Three-way partition of two name sets.
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class NamePartition:
    """Result of comparing a left (live) and right (desired) name set."""

    left_only: Tuple[str, ...]
    both: Tuple[str, ...]
    right_only: Tuple[str, ...]


def partition_names(left: Iterable[str], right: Iterable[str]) -> NamePartition:
    """
    Split two name sets into left-only, intersection and right-only.

    Both inputs are sorted once and walked with a single merge, so each output
    is strictly ascending in plain string order.
    """
    left_sorted = sorted(set(left))
    right_sorted = sorted(set(right))

    left_only: List[str] = []
    both: List[str] = []
    right_only: List[str] = []

    i = j = 0
    while i < len(left_sorted) and j < len(right_sorted):
        a, b = left_sorted[i], right_sorted[j]
        if a == b:
            both.append(a)
            i += 1
            j += 1
        elif a < b:
            left_only.append(a)
            i += 1
        else:
            right_only.append(b)
            j += 1
    left_only.extend(left_sorted[i:])
    right_only.extend(right_sorted[j:])

    return NamePartition(tuple(left_only), tuple(both), tuple(right_only))
