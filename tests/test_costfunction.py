"""Tests for cost functions, projections, constraints and Problem."""

import numpy as np
import pytest
from quantmath import (
    BoundaryConstraint, CompositeConstraint, ConvergenceError, NoConstraint,
    NonhomogeneousBoundaryConstraint, PositiveConstraint, PreconditionError, Problem,
    ProjectedConstraint, ProjectedCostFunction, Projection, SimpleCostFunction,
)


def _residuals(x):
    return np.array([x[0] - 1.0, 2.0 * (x[1] + 2.0), x[0] * x[1]])


# ---------------------------------------------------------------------------
# CostFunction
# ---------------------------------------------------------------------------
class TestCostFunction:
    def test_value_is_sum_of_squares(self):
        cf = SimpleCostFunction(_residuals)
        x = np.array([2.0, 1.0])
        assert cf.value(x) == pytest.approx(1.0 + 36.0 + 4.0)

    def test_scalar_residual_promoted(self):
        cf = SimpleCostFunction(lambda x: x[0] - 3.0)
        assert cf.values(np.array([1.0])).shape == (1,)

    def test_gradient(self):
        cf = SimpleCostFunction(_residuals)
        x = np.array([2.0, 1.0])
        # d/dx [(x-1)^2 + 4 (y+2)^2 + x^2 y^2]
        expected = [2.0 * (x[0] - 1.0) + 2.0 * x[0] * x[1] ** 2,
                    8.0 * (x[1] + 2.0) + 2.0 * x[0] ** 2 * x[1]]
        np.testing.assert_allclose(cf.gradient(x), expected, rtol=1e-6)

    def test_jacobian_shape_and_values(self):
        cf = SimpleCostFunction(_residuals)
        x = np.array([2.0, 1.0])
        jac = cf.jacobian(x)
        assert jac.shape == (3, 2)
        np.testing.assert_allclose(jac, [[1.0, 0.0], [0.0, 2.0], [1.0, 2.0]], atol=1e-6)

    def test_analytic_jacobian(self):
        cf = SimpleCostFunction(lambda x: x ** 2, jac=lambda x: np.diag(2.0 * x))
        np.testing.assert_array_equal(cf.jacobian(np.array([1.0, 3.0])), [[2.0, 0.0], [0.0, 6.0]])

    def test_value_and_gradient(self):
        cf = SimpleCostFunction(_residuals)
        x = np.array([0.5, -1.0])
        f, g = cf.value_and_gradient(x)
        assert f == cf.value(x)
        np.testing.assert_allclose(g, cf.gradient(x))


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------
class TestProjection:
    def test_project_and_include(self):
        p = Projection([1.0, 2.0, 3.0], [False, True, False])
        assert p.number_of_free_parameters == 2
        np.testing.assert_array_equal(p.project([4.0, 5.0, 6.0]), [4.0, 6.0])
        np.testing.assert_array_equal(p.include([7.0, 8.0]), [7.0, 2.0, 8.0])

    def test_default_all_free(self):
        p = Projection([1.0, 2.0])
        assert p.number_of_free_parameters == 2

    def test_all_fixed(self):
        with pytest.raises(PreconditionError):
            Projection([1.0, 2.0], [True, True])

    def test_wrong_sizes(self):
        p = Projection([1.0, 2.0, 3.0], [False, True, False])
        with pytest.raises(PreconditionError):
            p.include([1.0])
        with pytest.raises(PreconditionError):
            p.project([1.0, 2.0])

    def test_projected_cost_function(self):
        cf = SimpleCostFunction(_residuals)
        projected = ProjectedCostFunction(cf, [0.0, -2.0], [False, True])
        assert projected.value(np.array([1.0])) == pytest.approx(cf.value(np.array([1.0, -2.0])))
        assert projected.jacobian(np.array([1.0])).shape == (3, 1)


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------
class TestConstraints:
    def test_no_constraint(self):
        c = NoConstraint()
        assert c.empty()
        assert c.test(np.array([-1e300, 1e300]))

    def test_positive(self):
        c = PositiveConstraint()
        assert c.test([1.0, 0.1])
        assert not c.test([1.0, 0.0])
        np.testing.assert_array_equal(c.lower_bound([1.0, 2.0]), [0.0, 0.0])
        assert not c.empty()

    def test_boundary(self):
        c = BoundaryConstraint(0.0, 1.0)
        assert c.test([0.0, 1.0])
        assert not c.test([0.5, 1.1])
        np.testing.assert_array_equal(c.upper_bound([0.2, 0.3]), [1.0, 1.0])

    def test_nonhomogeneous_boundary(self):
        c = NonhomogeneousBoundaryConstraint([0.0, -1.0], [1.0, 1.0])
        assert c.test([0.5, -0.5])
        assert not c.test([-0.5, 0.0])
        with pytest.raises(PreconditionError):
            c.test([0.5])

    def test_nonhomogeneous_bound_sizes(self):
        with pytest.raises(PreconditionError):
            NonhomogeneousBoundaryConstraint([0.0, 0.0], [1.0])

    def test_composite(self):
        c = CompositeConstraint(PositiveConstraint(), BoundaryConstraint(-1.0, 2.0))
        assert c.test([1.0])
        assert not c.test([-0.5])
        assert not c.test([3.0])
        np.testing.assert_array_equal(c.lower_bound([1.0]), [0.0])
        np.testing.assert_array_equal(c.upper_bound([1.0]), [2.0])

    def test_projected(self):
        inner = NonhomogeneousBoundaryConstraint([0.0, 0.0, -1.0], [1.0, 1.0, 1.0])
        c = ProjectedConstraint(inner, [0.5, 0.5, 0.0], [False, True, False])
        assert c.test([0.2, 0.9])
        assert not c.test([2.0, 0.0])
        np.testing.assert_array_equal(c.lower_bound([0.2, 0.9]), [0.0, -1.0])

    def test_update_halves_until_feasible(self):
        c = BoundaryConstraint(0.0, 1.0)
        new, step = c.update([0.5], [1.0], 2.0)
        assert step == 0.5
        np.testing.assert_array_equal(new, [1.0])

    def test_update_feasible_first_try(self):
        new, step = NoConstraint().update([1.0, 1.0], [1.0, -1.0], 3.0)
        assert step == 3.0
        np.testing.assert_array_equal(new, [4.0, -2.0])

    def test_update_gives_up(self):
        with pytest.raises(ConvergenceError):
            PositiveConstraint().update([-1.0], [0.0], 1.0)


# ---------------------------------------------------------------------------
# Problem
# ---------------------------------------------------------------------------
class TestProblem:
    def test_defaults(self):
        problem = Problem(SimpleCostFunction(_residuals))
        assert isinstance(problem.constraint, NoConstraint)
        assert problem.current_value.size == 0

    def test_evaluations_counted(self):
        problem = Problem(SimpleCostFunction(_residuals), initial_value=[1.0, 1.0])
        x = problem.current_value
        problem.value(x)
        problem.values(x)
        problem.gradient(x)
        problem.value_and_gradient(x)
        assert problem.function_evaluation == 3
        assert problem.gradient_evaluation == 2
        problem.reset()
        assert problem.function_evaluation == problem.gradient_evaluation == 0

    def test_current_value_copied(self):
        start = np.array([1.0, 2.0])
        problem = Problem(SimpleCostFunction(_residuals), initial_value=start)
        start[0] = 99.0
        assert problem.current_value[0] == 1.0
