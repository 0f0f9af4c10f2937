# constants.py
# Machine constants shared by the numerical routines.

from __future__ import annotations

import sys

EPSILON = sys.float_info.epsilon          # ~2.22e-16
MIN_POSITIVE = sys.float_info.min         # smallest normalised positive float
MAX_REAL = sys.float_info.max

# central-difference bump used by CostFunction.gradient / jacobian
FINITE_DIFFERENCE_EPSILON = 1e-8


def close_enough(x: float, y: float, n: int = 42) -> bool:
    """Relative float comparison with a tolerance of ``n`` ulps-ish.

    Both arguments equal (including both zero) compare close; otherwise
    the difference is measured against the larger magnitude.
    """
    if x == y:
        return True
    diff = abs(x - y)
    tolerance = n * EPSILON
    if x == 0.0 or y == 0.0:
        return diff < tolerance * tolerance
    return diff <= tolerance * abs(x) or diff <= tolerance * abs(y)
