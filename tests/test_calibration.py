"""Tests for SABR calibration and SabrVolSurface."""

import numpy as np
import pytest
from quantmath import (
    EndCriteria, EndCriteriaType, PreconditionError, SabrParams, SabrSmileSection,
    SabrVolSurface, fit_sabr, fit_sabr_surface,
)

F, T = 0.03, 1.0
STRIKES = np.linspace(0.015, 0.06, 15)


# ---------------------------------------------------------------------------
# SabrParams evaluation
# ---------------------------------------------------------------------------
class TestSabrParams:
    def test_iv_shape_and_sign(self):
        p = SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=T, forward=F)
        ivs = p.iv(STRIKES)
        assert ivs.shape == STRIKES.shape
        assert np.all(ivs > 0)
        assert p.iv(F).shape == ()

    def test_total_var(self):
        p = SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=2.0, forward=F)
        np.testing.assert_allclose(p.total_var(STRIKES), p.iv(STRIKES) ** 2 * 2.0)

    def test_smile_section(self):
        p = SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=T, forward=F)
        section = p.smile_section()
        assert isinstance(section, SabrSmileSection)
        assert section.volatility(0.025) == pytest.approx(float(p.iv(0.025)))

    @pytest.mark.parametrize("kwargs", [
        dict(alpha=-0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=T, forward=F),
        dict(alpha=0.04, beta=0.5, nu=0.4, rho=-1.3, expiry=T, forward=F),
        dict(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=0.0, forward=F),
        dict(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=T, forward=-F),
    ])
    def test_validation(self, kwargs):
        with pytest.raises(PreconditionError):
            SabrParams(**kwargs)


# ---------------------------------------------------------------------------
# SABR fitting: round-trip
# ---------------------------------------------------------------------------
class TestFitSabr:
    def test_zero_noise_recovery(self):
        """Fit SABR to vols generated from known params and recover them."""
        true = SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=T, forward=F)
        ivs = true.iv(STRIKES)

        fitted, reason = fit_sabr(STRIKES, F, T, ivs, beta=0.5)

        assert fitted.beta == 0.5
        assert abs(fitted.alpha - true.alpha) < 1e-4
        assert abs(fitted.nu - true.nu) < 1e-2
        assert abs(fitted.rho - true.rho) < 1e-2
        assert reason in (EndCriteriaType.STATIONARY_FUNCTION_VALUE,
                          EndCriteriaType.NONE)

    def test_unsorted_strikes(self):
        true = SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=T, forward=F)
        order = np.random.default_rng(1).permutation(STRIKES.size)
        strikes = STRIKES[order]
        fitted, _ = fit_sabr(strikes, F, T, true.iv(strikes))
        assert abs(fitted.alpha - true.alpha) < 1e-4

    def test_noisy_fit_residuals(self):
        """With small noise, residuals should be small."""
        true = SabrParams(alpha=0.05, beta=0.5, nu=0.3, rho=-0.1, expiry=0.5, forward=F)
        ivs = true.iv(STRIKES) + np.random.default_rng(42).normal(0, 0.002, size=STRIKES.shape)

        fitted, _ = fit_sabr(STRIKES, F, 0.5, ivs)

        rmse = float(np.sqrt(np.mean((fitted.iv(STRIKES) - ivs) ** 2)))
        assert rmse < 0.005, f"RMSE too large: {rmse:.6f}"

    def test_free_beta(self):
        true = SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=T, forward=F)
        ivs = true.iv(STRIKES)
        fitted, _ = fit_sabr(STRIKES, F, T, ivs, fix_beta=False)
        assert 0.0 <= fitted.beta <= 1.0
        rmse = float(np.sqrt(np.mean((fitted.iv(STRIKES) - ivs) ** 2)))
        assert rmse < 1e-4

    def test_fitted_params_in_domain(self):
        rng = np.random.default_rng(7)
        ivs = 0.25 + 0.05 * rng.random(STRIKES.size)
        fitted, _ = fit_sabr(STRIKES, F, T, ivs)
        assert fitted.alpha > 0
        assert fitted.nu >= 0
        assert -1.0 < fitted.rho < 1.0

    def test_custom_end_criteria(self):
        true = SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=T, forward=F)
        _, reason = fit_sabr(STRIKES, F, T, true.iv(STRIKES),
                             end_criteria=EndCriteria(5, 2, 1e-10, 1e-12))
        assert reason is EndCriteriaType.MAX_ITERATIONS

    def test_mismatched_inputs(self):
        with pytest.raises(PreconditionError):
            fit_sabr(STRIKES, F, T, np.full(3, 0.2))

    def test_bad_initial_guess(self):
        with pytest.raises(PreconditionError):
            fit_sabr(STRIKES, F, T, np.full(STRIKES.size, 0.2),
                     initial_guess=(0.04, 0.5, 0.3, 1.5))


# ---------------------------------------------------------------------------
# SabrVolSurface
# ---------------------------------------------------------------------------
@pytest.fixture
def surface():
    s1 = SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=0.5, forward=0.03)
    s2 = SabrParams(alpha=0.035, beta=0.5, nu=0.3, rho=-0.2, expiry=2.0, forward=0.032)
    return SabrVolSurface({2.0: s2, 0.5: s1})


class TestSabrVolSurface:
    def test_expiries_sorted(self, surface):
        np.testing.assert_array_equal(surface.expiries, [0.5, 2.0])
        assert list(surface.slices) == [0.5, 2.0]

    def test_on_slice(self, surface):
        s1 = surface.slices[0.5]
        assert surface.iv(0.025, 0.5) == pytest.approx(float(s1.iv(0.025)))

    def test_interpolates_total_variance(self, surface):
        k, t = 0.03, 1.25
        w1 = float(surface.slices[0.5].total_var(k))
        w2 = float(surface.slices[2.0].total_var(k))
        expected = np.sqrt((0.5 * w1 + 0.5 * w2) / t)
        assert surface.iv(k, t) == pytest.approx(expected)

    def test_flat_extrapolation(self, surface):
        assert surface.iv(0.03, 0.1) == pytest.approx(float(surface.slices[0.5].iv(0.03)))
        assert surface.iv(0.03, 5.0) == pytest.approx(float(surface.slices[2.0].iv(0.03)))

    def test_vector_strikes(self, surface):
        ivs = surface.iv(STRIKES, 1.0)
        assert isinstance(ivs, np.ndarray)
        assert ivs.shape == STRIKES.shape
        assert isinstance(surface.iv(0.03, 1.0), float)

    def test_forward(self, surface):
        assert surface.forward(0.5) == 0.03
        assert surface.forward(1.25) == pytest.approx(0.031)

    def test_invalid(self, surface):
        with pytest.raises(PreconditionError):
            surface.iv(0.03, 0.0)
        with pytest.raises(PreconditionError):
            SabrVolSurface({})


class TestFitSabrSurface:
    def test_two_slices(self):
        true = {
            0.5: SabrParams(alpha=0.04, beta=0.5, nu=0.4, rho=-0.3, expiry=0.5, forward=0.03),
            2.0: SabrParams(alpha=0.035, beta=0.5, nu=0.3, rho=-0.2, expiry=2.0, forward=0.032),
        }
        strikes = {T: STRIKES for T in true}
        forwards = {T: p.forward for T, p in true.items()}
        ivs = {T: p.iv(STRIKES) for T, p in true.items()}

        surface = fit_sabr_surface(strikes, forwards, ivs)

        np.testing.assert_array_equal(surface.expiries, [0.5, 2.0])
        for T, p in true.items():
            np.testing.assert_allclose(surface.iv(STRIKES, T), p.iv(STRIKES), atol=1e-5)
