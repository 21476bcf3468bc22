"""
Value-equivalence rules used to decide whether a live entity differs from its
desired counterpart.
"""

import re
from typing import Mapping

# Seconds per duration unit.
DURATION_UNITS: Mapping[str, int] = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
}

INFINITE_DURATION = "INF"

_DURATION_PART = re.compile(r"(\d+)([smhdw])", re.IGNORECASE)

# Never echoed back by SHOW CONTINUOUS QUERIES and has no effect on results.
_NOOP_FILL = "fill(null)"

_QUOTES_AND_TERMINATORS = str.maketrans("", "", "\"';")


def duration_to_seconds(literal: str) -> int:
    """
    Convert a duration literal such as ``2w``, ``168h0m0s`` or ``INF`` to seconds.

    ``INF`` maps to 0, matching how InfluxDB reports infinite retention.
    The literal is assumed to be well formed.
    """
    literal = literal.strip()
    if literal.upper() == INFINITE_DURATION:
        return 0
    return sum(
        int(amount) * DURATION_UNITS[unit.lower()]
        for amount, unit in _DURATION_PART.findall(literal)
    )


def durations_equal(left: str, right: str) -> bool:
    return duration_to_seconds(left) == duration_to_seconds(right)


def normalize_query(text: str) -> str:
    """Canonical form of a continuous query definition, for comparison only."""
    collapsed = "".join(text.split())
    collapsed = collapsed.translate(_QUOTES_AND_TERMINATORS).lower()
    return collapsed.replace(_NOOP_FILL, "")


def queries_equivalent(left: str, right: str) -> bool:
    return normalize_query(left) == normalize_query(right)
