"""Tests for the arbitrage-free SABR model and smile section."""

import logging
import math

import numpy as np
import pytest
from quantmath import (
    CALL, PUT, ConvergenceError, DiscreteSimpsonIntegral, NoArbSabrModel, NoArbSabrSmileSection,
    PreconditionError, black_formula, unsafe_sabr_volatility,
)

F, T = 0.03, 1.0
# alpha * F^(beta - 1) ~ 0.23
PARAMS = (0.04, 0.5, 0.3, -0.2)
STRIKES = np.linspace(0.005, 0.08, 30)


@pytest.fixture(scope="module")
def section():
    return NoArbSabrSmileSection(T, F, PARAMS)


@pytest.fixture(scope="module")
def model(section):
    return section.model


class TestModel:
    def test_absorption_probability(self, model):
        assert 0.0 <= model.absorption_probability < 1e-3

    def test_forward_matched(self, model):
        k = 1e-6
        expected = F - k * (1.0 - model.absorption_probability)
        assert model.option_price(k) == pytest.approx(expected, abs=1e-7)
        assert model.external_forward == F

    def test_call_prices_non_increasing(self, model):
        prices = [model.option_price(k) for k in STRIKES]
        assert all(b <= a + 1e-12 for a, b in zip(prices, prices[1:]))
        assert prices[-1] >= 0.0

    def test_call_prices_convex(self, model):
        prices = np.array([model.option_price(k) for k in STRIKES])
        assert np.all(np.diff(prices, 2) >= -1e-12)

    def test_density_non_negative_and_normalised(self, model):
        grid = np.linspace(1e-6, 0.3, 3001)
        dens = np.array([model.density(k) for k in grid])
        assert np.all(dens >= 0.0)
        mass = DiscreteSimpsonIntegral()(grid, dens)
        assert mass == pytest.approx(1.0 - model.absorption_probability, abs=1e-4)

    def test_digital_is_minus_call_slope(self, model):
        h = 1e-5
        for k in (0.02, 0.03, 0.045):
            slope = (model.option_price(k - h) - model.option_price(k + h)) / (2 * h)
            assert model.digital_option_price(k) == pytest.approx(slope, rel=1e-3)

    def test_digital_bounds(self, model):
        digitals = [model.digital_option_price(k) for k in STRIKES]
        assert all(0.0 <= d <= 1.0 for d in digitals)
        assert all(b <= a + 1e-12 for a, b in zip(digitals, digitals[1:]))
        assert model.digital_option_price(-0.01) == 1.0
        assert model.digital_option_price(0.0) == pytest.approx(1.0 - model.absorption_probability)

    def test_non_positive_strike(self, model):
        assert model.option_price(0.0) == F
        assert model.option_price(-0.01) == pytest.approx(F + 0.01)
        assert model.density(0.0) == 0.0

    @pytest.mark.parametrize("args", [
        (0.0, F, 0.04, 0.5, 0.3, -0.2),       # expiry
        (31.0, F, 0.04, 0.5, 0.3, -0.2),
        (T, -F, 0.04, 0.5, 0.3, -0.2),        # forward
        (T, F, 0.04, 1.0, 0.3, -0.2),         # beta
        (T, F, 0.2, 0.5, 0.3, -0.2),          # alpha F^(beta-1) > 1
        (T, F, 0.005, 0.5, 0.3, -0.2),        # alpha F^(beta-1) < 0.05
        (T, F, 0.04, 0.5, 0.9, -0.2),         # nu
        (T, F, 0.04, 0.5, 0.3, 0.995),        # rho
    ])
    def test_parameter_domain(self, args):
        with pytest.raises(PreconditionError):
            NoArbSabrModel(*args)


class TestSmileSection:
    def test_put_call_parity(self, section):
        for k in (0.01, 0.03, 0.05):
            c = section.option_price(k, CALL, 0.95)
            p = section.option_price(k, PUT, 0.95)
            assert c - p == pytest.approx(0.95 * (F - k), abs=1e-14)

    def test_digital_put(self, section):
        k = 0.025
        assert section.digital_option_price(k, PUT) == pytest.approx(
            1.0 - section.digital_option_price(k, CALL))

    def test_volatility_reprices(self, section):
        for k in (0.015, 0.025, 0.03, 0.04, 0.06):
            vol = section.volatility(k)
            assert 0.0 < vol < 1.0
            option_type = CALL if k >= F else PUT
            price = black_formula(option_type, k, F, vol * math.sqrt(T))
            assert price == pytest.approx(section.option_price(k, option_type), abs=2e-8)

    def test_close_to_hagan_near_the_money(self, section):
        hagan = unsafe_sabr_volatility(F, F, T, *PARAMS)
        assert section.volatility(F) == pytest.approx(hagan, rel=0.1)

    def test_hagan_fallback(self, section, monkeypatch, caplog):
        monkeypatch.setattr("quantmath.noarb_sabr.try_black_formula_implied_std_dev",
                            lambda *args, **kwargs: None)
        with caplog.at_level(logging.INFO, logger="quantmath"):
            vol = section.volatility(0.02)
        assert vol == pytest.approx(unsafe_sabr_volatility(0.02, F, T, *PARAMS))
        assert "falling back on the Hagan expansion" in caplog.text

    def test_implied_volatility_none_for_zero_strike(self, section):
        assert section.implied_volatility(0.0) is None
        with pytest.raises(PreconditionError):
            section.volatility(0.0)

    def test_attributes(self, section):
        assert section.atm_level == F
        assert section.min_strike == 0.0
        assert section.params == PARAMS
        assert section.density(F) == section.model.density(F)

    def test_shift_not_supported(self):
        with pytest.raises(PreconditionError):
            NoArbSabrSmileSection(T, F, PARAMS, shift=0.01)


# ---------------------------------------------------------------------------
# Corners of the admissible parameter region
# ---------------------------------------------------------------------------
def _alpha(sigma_i, forward, beta):
    return sigma_i * forward ** (1.0 - beta)


CORNERS = [
    # expiry, forward, alpha, beta, nu, rho
    (10.0, 0.03, 0.025, 0.5, 0.8, 0.7),
    (20.0, 0.03, 0.1, 0.7, 0.6, 0.3),
    (30.0, 0.05, 0.3, 0.99, 0.8, -0.99),
    (30.0, 0.03, _alpha(0.3, 0.03, 0.5), 0.5, 0.8, 0.0),
    (5.0, 0.03, _alpha(0.3, 0.03, 0.01), 0.01, 0.4, 0.99),
    (5.0, 0.03, _alpha(0.2, 0.03, 0.99), 0.99, 0.79, -0.99),
    (30.0, 0.02, _alpha(0.5, 0.02, 0.3), 0.3, 0.01, 0.0),
]


@pytest.fixture(scope="module", params=CORNERS, ids=lambda c: "T{}-b{}-nu{}-rho{}".format(
    c[0], c[3], c[4], c[5]))
def corner(request):
    expiry, forward, alpha, beta, nu, rho = request.param
    return NoArbSabrSmileSection(expiry, forward, (alpha, beta, nu, rho))


class TestParameterCorners:
    def test_model_forward_is_market_forward(self, corner):
        F0 = corner.atm_level
        assert corner.model.option_price(1e-12) == pytest.approx(F0, rel=1e-6)
        assert 0.0 <= corner.model.absorption_probability < 1.0

    def test_call_prices_non_increasing(self, corner):
        F0 = corner.atm_level
        prices = [corner.model.option_price(k) for k in np.linspace(0.1, 5.0, 25) * F0]
        assert all(b <= a + 1e-9 * F0 for a, b in zip(prices, prices[1:]))
        assert all(0.0 <= c <= F0 for c in prices)

    def test_volatility_reprices_without_fallback(self, corner):
        F0, T0 = corner.atm_level, corner.exercise_time
        for k in (0.5 * F0, F0, 2.0 * F0):
            vol = corner.implied_volatility(k)
            assert vol is not None
            assert corner.volatility(k) == vol
            option_type = CALL if k >= F0 else PUT
            price = black_formula(option_type, k, F0, vol * math.sqrt(T0))
            assert price == pytest.approx(corner.option_price(k, option_type), abs=1e-6 * F0)


class TestForwardMatching:
    def test_benign_parameters_need_no_rescaling(self, model):
        assert model.strike_scale == pytest.approx(1.0, abs=1e-6)

    def test_density_that_cannot_be_integrated(self, monkeypatch):
        monkeypatch.setattr(NoArbSabrModel, "_unnormalized",
                            lambda self, f, forward: np.zeros_like(np.asarray(f, dtype=float)))
        with pytest.raises(ConvergenceError):
            NoArbSabrModel(T, F, *PARAMS)
