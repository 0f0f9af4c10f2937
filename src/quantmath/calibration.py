# calibration.py
# SABR smile fitting and SabrVolSurface.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .constraints import NonhomogeneousBoundaryConstraint, ProjectedConstraint
from .costfunction import ProjectedCostFunction, SimpleCostFunction
from .endcriteria import EndCriteria, EndCriteriaType
from .errors import PreconditionError
from .levenberg_marquardt import LevenbergMarquardt
from .logging import get_logger
from .problem import Problem
from .sabr import unsafe_sabr_volatility, validate_sabr_parameters
from .smile_section import SabrSmileSection

__all__ = ["SabrParams", "SabrVolSurface", "fit_sabr", "fit_sabr_surface"]

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# SABR slice parameters
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SabrParams:
    """SABR parameters of a single expiry slice.

    Parameters
    ----------
    alpha, beta, nu, rho : float
        SABR parameters (initial vol, CEV exponent, vol-of-vol,
        correlation).
    expiry : float
        Slice expiry in years.
    forward : float
        Forward of the slice.
    """
    alpha: float
    beta: float
    nu: float
    rho: float
    expiry: float
    forward: float

    def __post_init__(self):
        validate_sabr_parameters(self.alpha, self.beta, self.nu, self.rho)
        if self.expiry <= 0:
            raise PreconditionError(f"expiry must be positive, got {self.expiry}")
        if self.forward <= 0:
            raise PreconditionError(f"forward must be positive, got {self.forward}")

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.alpha, self.beta, self.nu, self.rho)

    def iv(self, K: np.ndarray | float) -> np.ndarray:
        """Hagan implied vol at absolute strike(s)."""
        K = np.asarray(K, dtype=float)
        vols = [unsafe_sabr_volatility(k, self.forward, self.expiry, *self.as_tuple())
                for k in K.ravel()]
        return np.array(vols, dtype=float).reshape(K.shape)

    def total_var(self, K: np.ndarray | float) -> np.ndarray:
        """Total implied variance ``iv(K)^2 * expiry``."""
        return self.iv(K) ** 2 * self.expiry

    def smile_section(self) -> SabrSmileSection:
        return SabrSmileSection(self.expiry, self.forward, self.as_tuple())


# ---------------------------------------------------------------------------
# SabrVolSurface
# ---------------------------------------------------------------------------
class SabrVolSurface:
    """Interpolating vol surface built from SABR slices.

    Between calibrated expiries total variance is linearly interpolated at
    fixed strike; outside them the nearest slice is used.

    Parameters
    ----------
    slices : dict[float, SabrParams]
        Mapping ``{expiry: SabrParams}``.
    """

    def __init__(self, slices: dict[float, SabrParams]):
        if not slices:
            raise PreconditionError("At least one SABR slice is required.")
        self._slices = dict(sorted(slices.items()))
        self._expiries = np.array(sorted(slices.keys()), dtype=float)

    @property
    def slices(self) -> dict[float, SabrParams]:
        """Mapping ``{expiry: SabrParams}`` (read-only copy)."""
        return dict(self._slices)

    @property
    def expiries(self) -> np.ndarray:
        return self._expiries.copy()

    def forward(self, T: float) -> float:
        if T in self._slices:
            return self._slices[T].forward
        Fs = np.array([s.forward for s in self._slices.values()], dtype=float)
        return float(np.interp(T, self._expiries, Fs))

    def iv(self, K: float | np.ndarray, T: float) -> float | np.ndarray:
        """Implied vol from absolute strike(s) and expiry."""
        if T <= 0:
            raise PreconditionError(f"T must be positive, got {T}")
        K = np.asarray(K, dtype=float)

        idx = np.searchsorted(self._expiries, T)
        if T in self._slices:
            result = self._slices[T].iv(K)
        elif idx == 0:
            result = self._slices[self._expiries[0]].iv(K)
        elif idx >= len(self._expiries):
            result = self._slices[self._expiries[-1]].iv(K)
        else:
            T_lo = self._expiries[idx - 1]
            T_hi = self._expiries[idx]
            w_lo = self._slices[T_lo].total_var(K)
            w_hi = self._slices[T_hi].total_var(K)
            theta = (T - T_lo) / (T_hi - T_lo)
            w = (1 - theta) * w_lo + theta * w_hi
            result = np.sqrt(np.maximum(w, 0.0) / T)

        if result.ndim == 0:
            return float(result)
        return result


# ---------------------------------------------------------------------------
# SABR fitting
# ---------------------------------------------------------------------------
#                alpha   beta   nu     rho
_LOWER_BOUNDS = (1e-6,   0.0,   0.0,  -0.9999)
_UPPER_BOUNDS = (10.0,   1.0,   10.0,  0.9999)


def fit_sabr(
    strikes: np.ndarray,
    forward: float,
    expiry: float,
    market_ivs: np.ndarray,
    *,
    beta: float = 0.5,
    initial_guess: Optional[tuple] = None,
    fix_beta: bool = True,
    end_criteria: Optional[EndCriteria] = None,
) -> tuple[SabrParams, EndCriteriaType]:
    """Fit SABR to a single smile slice with Levenberg-Marquardt.

    Parameters
    ----------
    strikes : array-like, shape (N,)
        Absolute strikes.
    forward : float
        Forward for this expiry.
    expiry : float
        Time to expiry in years.
    market_ivs : array-like, shape (N,)
        Market implied volatilities (annualised).
    beta : float
        CEV exponent; kept fixed unless ``fix_beta`` is False.
    initial_guess : tuple, optional
        ``(alpha, beta, nu, rho)`` starting point; ``beta`` in it wins over
        the ``beta`` argument.
    fix_beta : bool
        Calibrate only ``(alpha, nu, rho)``.
    end_criteria : EndCriteria, optional
        Evaluation budget and function tolerance of the optimizer.

    Returns
    -------
    (SabrParams, EndCriteriaType)
        Fitted slice and the reason the optimizer stopped.
    """
    strikes = np.asarray(strikes, dtype=float)
    market_ivs = np.asarray(market_ivs, dtype=float)
    if strikes.shape != market_ivs.shape or strikes.ndim != 1:
        raise PreconditionError(
            f"strikes {strikes.shape} and market_ivs {market_ivs.shape} must be "
            "1-d arrays of the same length")
    if forward <= 0 or expiry <= 0:
        raise PreconditionError(
            f"forward and expiry must be positive, got {forward} and {expiry}")

    if initial_guess is None:
        order = np.argsort(strikes)
        atm_vol = float(np.interp(forward, strikes[order], market_ivs[order]))
        initial_guess = (atm_vol * forward ** (1.0 - beta), beta, 0.3, 0.0)
    guess = np.array(initial_guess, dtype=float)

    def residuals(params):
        alpha, b, nu, rho = params
        model = [unsafe_sabr_volatility(k, forward, expiry, alpha, b, nu, rho)
                 for k in strikes]
        return np.array(model) - market_ivs

    fix = [False, fix_beta, False, False]
    cost = ProjectedCostFunction(SimpleCostFunction(residuals), guess, fix)
    constraint = ProjectedConstraint(
        NonhomogeneousBoundaryConstraint(_LOWER_BOUNDS, _UPPER_BOUNDS), guess, fix)
    if not constraint.test(cost.project(guess)):
        raise PreconditionError(f"initial guess {tuple(guess)} outside the SABR domain")

    problem = Problem(cost, constraint, cost.project(guess))
    if end_criteria is None:
        end_criteria = EndCriteria(2000, None, 1e-10, 1e-12)
    ec_type = LevenbergMarquardt().minimize(problem, end_criteria)

    alpha, b, nu, rho = cost.include(problem.current_value)
    logger.debug("SABR slice T=%.4g fitted: alpha=%.6g beta=%.4g nu=%.6g rho=%.6g "
                 "(%s, %d evaluations)", expiry, alpha, b, nu, rho, ec_type,
                 problem.function_evaluation)
    fitted = SabrParams(alpha=float(alpha), beta=float(b), nu=float(nu), rho=float(rho),
                        expiry=float(expiry), forward=float(forward))
    return fitted, ec_type


def fit_sabr_surface(
    strikes_by_expiry: dict[float, np.ndarray],
    forwards: dict[float, float],
    market_ivs_by_expiry: dict[float, np.ndarray],
    *,
    beta: float = 0.5,
) -> SabrVolSurface:
    """Fit SABR slice-by-slice and return a full ``SabrVolSurface``.

    Parameters
    ----------
    strikes_by_expiry : dict[float, ndarray]
        ``{expiry: array_of_strikes}``.
    forwards : dict[float, float]
        ``{expiry: forward}``.
    market_ivs_by_expiry : dict[float, ndarray]
        ``{expiry: array_of_ivs}``.
    beta : float
        Fixed CEV exponent used for every slice.
    """
    slices: dict[float, SabrParams] = {}
    for T in sorted(strikes_by_expiry.keys()):
        slices[T], _ = fit_sabr(
            strikes_by_expiry[T],
            forwards[T],
            T,
            market_ivs_by_expiry[T],
            beta=beta,
        )
    return SabrVolSurface(slices)
