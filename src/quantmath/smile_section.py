# smile_section.py
# Volatility smile at a single expiry, and its Hagan SABR specialisation.

from __future__ import annotations

import enum
import math
from abc import ABC, abstractmethod
from typing import Sequence

from .black_formula import (
    CALL,
    OptionType,
    bachelier_black_formula,
    black_formula,
    black_formula_vol_derivative,
)
from .constants import EPSILON, MAX_REAL
from .errors import PreconditionError
from .sabr import unsafe_shifted_sabr_volatility, validate_sabr_parameters

__all__ = ["VolatilityType", "SmileSection", "SabrSmileSection"]


class VolatilityType(enum.Enum):
    SHIFTED_LOGNORMAL = "ShiftedLognormal"
    NORMAL = "Normal"


# ---------------------------------------------------------------------------
# SmileSection: abstract single-expiry smile
# ---------------------------------------------------------------------------
class SmileSection(ABC):
    """Implied volatility as a function of strike at one exercise time.

    Prices, digitals and the density are derived from ``volatility`` with
    the Black (shifted lognormal) or Bachelier (normal) formula, on the
    undiscounted forward measure scaled by ``discount``.

    Parameters
    ----------
    exercise_time : float
        Time to exercise in years, non-negative.
    volatility_type : VolatilityType
        Quoting convention of ``volatility``.
    shift : float
        Displacement of the shifted lognormal model.
    """

    def __init__(self, exercise_time: float,
                 volatility_type: VolatilityType = VolatilityType.SHIFTED_LOGNORMAL,
                 shift: float = 0.0):
        if exercise_time < 0.0:
            raise PreconditionError(
                f"expiry time must be positive: {exercise_time} not allowed")
        self._exercise_time = float(exercise_time)
        self._volatility_type = volatility_type
        self._shift = float(shift)

    @property
    def exercise_time(self) -> float:
        return self._exercise_time

    @property
    def volatility_type(self) -> VolatilityType:
        return self._volatility_type

    @property
    def shift(self) -> float:
        return self._shift

    @property
    @abstractmethod
    def atm_level(self) -> float:
        ...

    @property
    def min_strike(self) -> float:
        return -self._shift

    @property
    def max_strike(self) -> float:
        return MAX_REAL

    @abstractmethod
    def _volatility_impl(self, strike: float) -> float:
        ...

    def _variance_impl(self, strike: float) -> float:
        v = self._volatility_impl(strike)
        return v * v * self._exercise_time

    # --- public surface ----------------------------------------------------
    def volatility(self, strike: float) -> float:
        return self._volatility_impl(strike)

    def variance(self, strike: float) -> float:
        return self._variance_impl(strike)

    def option_price(self, strike: float, option_type: OptionType = CALL,
                     discount: float = 1.0) -> float:
        atm = self.atm_level
        if self._volatility_type is VolatilityType.SHIFTED_LOGNORMAL:
            if abs(strike + self._shift) < EPSILON:
                std_dev = 0.2
            else:
                std_dev = math.sqrt(self.variance(strike))
            return black_formula(option_type, strike, atm, std_dev, discount, self._shift)
        return bachelier_black_formula(option_type, strike, atm,
                                       math.sqrt(self.variance(strike)), discount)

    def _lowest_strike(self) -> float:
        if self._volatility_type is VolatilityType.SHIFTED_LOGNORMAL:
            return -self._shift
        return -MAX_REAL

    def digital_option_price(self, strike: float, option_type: OptionType = CALL,
                             discount: float = 1.0, gap: float = 1.0e-5) -> float:
        """Digital price as a call (or put) spread of width ``gap``."""
        kl = max(strike - gap / 2.0, self._lowest_strike())
        kr = kl + gap
        sign = 1.0 if option_type == CALL else -1.0
        return sign * (self.option_price(kl, option_type, discount)
                       - self.option_price(kr, option_type, discount)) / gap

    def density(self, strike: float, discount: float = 1.0, gap: float = 1.0e-4) -> float:
        """Risk-neutral density as a digital-call spread of width ``gap``."""
        kl = max(strike - gap / 2.0, self._lowest_strike())
        kr = kl + gap
        return (self.digital_option_price(kl, CALL, discount, gap)
                - self.digital_option_price(kr, CALL, discount, gap)) / gap

    def vega(self, strike: float, discount: float = 1.0) -> float:
        """Price change for a one-point (1%) volatility move."""
        if self._volatility_type is not VolatilityType.SHIFTED_LOGNORMAL:
            raise PreconditionError(
                f"vega requires a shifted lognormal section, not {self._volatility_type.value}")
        return black_formula_vol_derivative(
            strike, self.atm_level, math.sqrt(self.variance(strike)),
            self._exercise_time, discount, self._shift) * 0.01


# ---------------------------------------------------------------------------
# SabrSmileSection
# ---------------------------------------------------------------------------
class SabrSmileSection(SmileSection):
    """Smile given by the Hagan SABR expansion.

    Parameters
    ----------
    exercise_time : float
        Time to exercise in years.
    forward : float
        At-the-money forward.
    sabr_parameters : sequence of float
        ``(alpha, beta, nu, rho)``.
    shift : float
        Displacement; ``forward + shift`` must be positive.
    """

    _STRIKE_FLOOR = 1.0e-5

    def __init__(self, exercise_time: float, forward: float,
                 sabr_parameters: Sequence[float], shift: float = 0.0):
        super().__init__(exercise_time, VolatilityType.SHIFTED_LOGNORMAL, shift)
        if len(sabr_parameters) < 4:
            raise PreconditionError(
                f"sabr expects 4 parameters (alpha,beta,nu,rho) but "
                f"({len(sabr_parameters)}) given")
        self._forward = float(forward)
        self.alpha, self.beta, self.nu, self.rho = (float(p) for p in sabr_parameters[:4])
        if not self._forward + self._shift > 0.0:
            raise PreconditionError(
                f"at the money forward rate + shift must be positive: "
                f"{self._forward} with shift {self._shift} not allowed")
        validate_sabr_parameters(self.alpha, self.beta, self.nu, self.rho)

    @property
    def atm_level(self) -> float:
        return self._forward

    def _volatility_impl(self, strike: float) -> float:
        strike = max(self._STRIKE_FLOOR - self._shift, strike)
        return unsafe_shifted_sabr_volatility(
            strike, self._forward, self._exercise_time,
            self.alpha, self.beta, self.nu, self.rho, self._shift)
