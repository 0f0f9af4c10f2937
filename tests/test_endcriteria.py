"""Tests for EndCriteria termination logic."""

import pytest
from quantmath import EndCriteria, EndCriteriaType, PreconditionError, StationaryCounter

EC = EndCriteria(max_iterations=100, max_stationary_state_iterations=10,
                 root_epsilon=1e-8, function_epsilon=1e-8)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------
class TestConstruction:
    def test_default_stationary_iterations(self):
        assert EndCriteria(1000, None, 1e-8, 1e-8).max_stationary_state_iterations == 100
        assert EndCriteria(10, None, 1e-8, 1e-8).max_stationary_state_iterations == 5

    def test_default_gradient_epsilon(self):
        ec = EndCriteria(100, 10, 1e-8, 1e-6)
        assert ec.gradient_norm_epsilon == 1e-6
        assert EndCriteria(100, 10, 1e-8, 1e-6, 1e-3).gradient_norm_epsilon == 1e-3

    @pytest.mark.parametrize("max_iter,max_stat", [(10, 1), (10, 10), (10, 20), (3, None)])
    def test_invalid_stationary_iterations(self, max_iter, max_stat):
        with pytest.raises(PreconditionError):
            EndCriteria(max_iter, max_stat, 1e-8, 1e-8)

    def test_precondition_error_is_value_error(self):
        with pytest.raises(ValueError):
            EndCriteria(10, 1, 1e-8, 1e-8)

    def test_frozen(self):
        with pytest.raises(AttributeError):
            EC.max_iterations = 5

    def test_type_str(self):
        assert str(EndCriteriaType.MAX_ITERATIONS) == "MaxIterations"
        assert str(EndCriteriaType.STATIONARY_FUNCTION_VALUE) == "StationaryFunctionValue"


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------
class TestChecks:
    def test_max_iterations(self):
        assert EC.check_max_iterations(99) == (False, EndCriteriaType.NONE)
        assert EC.check_max_iterations(100) == (True, EndCriteriaType.MAX_ITERATIONS)

    def test_reason_passed_through_when_not_fired(self):
        fired, reason = EC.check_max_iterations(5, EndCriteriaType.ZERO_GRADIENT_NORM)
        assert not fired
        assert reason is EndCriteriaType.ZERO_GRADIENT_NORM

    def test_stationary_function_value_counts_then_fires(self):
        counter = StationaryCounter()
        for i in range(10):
            fired, reason = EC.check_stationary_function_value(1.0, 1.0, counter)
            assert not fired
            assert counter.count == i + 1
        fired, reason = EC.check_stationary_function_value(1.0, 1.0, counter)
        assert fired
        assert reason is EndCriteriaType.STATIONARY_FUNCTION_VALUE
        assert counter.count == 11

    def test_stationary_function_value_resets(self):
        counter = StationaryCounter()
        for _ in range(5):
            EC.check_stationary_function_value(1.0, 1.0, counter)
        assert counter.count == 5
        fired, _ = EC.check_stationary_function_value(1.0, 2.0, counter)
        assert not fired
        assert counter.count == 0

    def test_stationary_point(self):
        counter = StationaryCounter(count=10)
        fired, reason = EC.check_stationary_point(0.5, 0.5, counter)
        assert fired
        assert reason is EndCriteriaType.STATIONARY_POINT
        fired, _ = EC.check_stationary_point(0.5, 0.6, counter)
        assert not fired
        assert counter.count == 0

    def test_function_accuracy_only_for_positive_problems(self):
        assert EC.check_stationary_function_accuracy(1e-10, False)[0] is False
        fired, reason = EC.check_stationary_function_accuracy(1e-10, True)
        assert fired
        assert reason is EndCriteriaType.STATIONARY_FUNCTION_ACCURACY
        assert EC.check_stationary_function_accuracy(1e-3, True)[0] is False

    def test_zero_gradient_norm(self):
        assert EC.check_zero_gradient_norm(1e-12) == (True, EndCriteriaType.ZERO_GRADIENT_NORM)
        assert EC.check_zero_gradient_norm(1.0)[0] is False


# ---------------------------------------------------------------------------
# Combined test
# ---------------------------------------------------------------------------
class TestCall:
    def test_max_iterations_first(self):
        stop, reason = EC(100, StationaryCounter(), True, 1.0, 1.0, 0.0)
        assert stop
        assert reason is EndCriteriaType.MAX_ITERATIONS

    def test_function_accuracy(self):
        stop, reason = EC(1, StationaryCounter(), True, 1.0, 1e-12, 1.0)
        assert stop
        assert reason is EndCriteriaType.STATIONARY_FUNCTION_ACCURACY

    def test_zero_gradient(self):
        stop, reason = EC(1, StationaryCounter(), False, 1.0, 0.5, 1e-12)
        assert stop
        assert reason is EndCriteriaType.ZERO_GRADIENT_NORM

    def test_continue(self):
        stop, reason = EC(1, StationaryCounter(), False, 1.0, 0.5, 1.0)
        assert not stop
        assert reason is EndCriteriaType.NONE

    def test_stationary_loop(self):
        counter = StationaryCounter()
        reasons = [EC(i, counter, False, 2.0, 2.0, 1.0) for i in range(12)]
        assert [stop for stop, _ in reasons].index(True) == 10
        assert reasons[10][1] is EndCriteriaType.STATIONARY_FUNCTION_VALUE
