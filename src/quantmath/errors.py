"""Exception hierarchy for quantmath.

Every library error derives from :class:`QuantMathError`, so a calibration
driver can catch the whole family in one clause and still tell a bad input
apart from a computation that simply did not get accurate enough::

    try:
        result = solver.solve(b)
    except ConvergenceError as exc:
        retry_with_more_restarts(exc.result)
"""

from __future__ import annotations

from typing import Any


class QuantMathError(Exception):
    """Base exception for all library errors."""


class PreconditionError(QuantMathError, ValueError):
    """Malformed input sizes or out-of-domain parameters."""


class ConvergenceError(QuantMathError):
    """An iterative computation ran but missed the requested accuracy.

    ``result`` optionally carries whatever partial result the routine had
    reached (e.g. a :class:`~quantmath.gmres.GMRESResult`).
    """

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result


__all__ = ["QuantMathError", "PreconditionError", "ConvergenceError"]
