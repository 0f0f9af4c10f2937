# quantmath: numerical optimization, quadrature and SABR smiles
# Public API

from .errors import QuantMathError, PreconditionError, ConvergenceError
from .logging import configure_logging, get_logger

# Optimization
from .endcriteria import EndCriteria, EndCriteriaType, StationaryCounter
from .costfunction import (
    CostFunction, SimpleCostFunction, Projection, ProjectedCostFunction,
)
from .constraints import (
    Constraint, NoConstraint, PositiveConstraint, BoundaryConstraint,
    NonhomogeneousBoundaryConstraint, CompositeConstraint, ProjectedConstraint,
)
from .problem import Problem
from .levenberg_marquardt import LevenbergMarquardt
from .linesearch import LineSearch, ArmijoLineSearch, GoldsteinLineSearch
from .linesearch_methods import (
    LineSearchBasedMethod, SteepestDescent, ConjugateGradient, BFGS,
)

# Linear algebra
from .tqr import EigenVectorCalculation, ShiftStrategy, TqrEigenDecomposition
from .gmres import GMRES, GMRESResult

# Quadrature
from .orthogonal_polynomials import (
    GaussianOrthogonalPolynomial, GaussLaguerrePolynomial, GaussHermitePolynomial,
    GaussJacobiPolynomial, GaussLegendrePolynomial, GaussChebyshevPolynomial,
    GaussChebyshev2ndPolynomial, GaussGegenbauerPolynomial, GaussHyperbolicPolynomial,
)
from .quadrature import (
    GaussianQuadrature, GaussLaguerreIntegration, GaussHermiteIntegration,
    GaussJacobiIntegration, GaussHyperbolicIntegration, GaussLegendreIntegration,
    GaussChebyshevIntegration, GaussChebyshev2ndIntegration, GaussGegenbauerIntegration,
    TabulatedGaussLegendre, DiscreteTrapezoidIntegral, DiscreteSimpsonIntegral,
    DiscreteTrapezoidIntegrator, DiscreteSimpsonIntegrator, survival_probability,
)

# Black formula & SABR smiles
from .black_formula import (
    CALL, PUT, black_formula, black_formula_vol_derivative,
    black_formula_implied_std_dev, try_black_formula_implied_std_dev,
    bachelier_black_formula,
)
from .sabr import (
    validate_sabr_parameters, sabr_volatility, shifted_sabr_volatility,
    unsafe_sabr_volatility, unsafe_shifted_sabr_volatility,
)
from .smile_section import VolatilityType, SmileSection, SabrSmileSection
from .noarb_sabr import NoArbSabrModel, NoArbSabrSmileSection

# Calibration
from .calibration import SabrParams, SabrVolSurface, fit_sabr, fit_sabr_surface

__all__ = [
    # Errors & logging
    "QuantMathError", "PreconditionError", "ConvergenceError",
    "configure_logging", "get_logger",
    # Optimization
    "EndCriteria", "EndCriteriaType", "StationaryCounter",
    "CostFunction", "SimpleCostFunction", "Projection", "ProjectedCostFunction",
    "Constraint", "NoConstraint", "PositiveConstraint", "BoundaryConstraint",
    "NonhomogeneousBoundaryConstraint", "CompositeConstraint", "ProjectedConstraint",
    "Problem", "LevenbergMarquardt",
    "LineSearch", "ArmijoLineSearch", "GoldsteinLineSearch",
    "LineSearchBasedMethod", "SteepestDescent", "ConjugateGradient", "BFGS",
    # Linear algebra
    "EigenVectorCalculation", "ShiftStrategy", "TqrEigenDecomposition",
    "GMRES", "GMRESResult",
    # Quadrature
    "GaussianOrthogonalPolynomial", "GaussLaguerrePolynomial", "GaussHermitePolynomial",
    "GaussJacobiPolynomial", "GaussLegendrePolynomial", "GaussChebyshevPolynomial",
    "GaussChebyshev2ndPolynomial", "GaussGegenbauerPolynomial", "GaussHyperbolicPolynomial",
    "GaussianQuadrature", "GaussLaguerreIntegration", "GaussHermiteIntegration",
    "GaussJacobiIntegration", "GaussHyperbolicIntegration", "GaussLegendreIntegration",
    "GaussChebyshevIntegration", "GaussChebyshev2ndIntegration", "GaussGegenbauerIntegration",
    "TabulatedGaussLegendre", "DiscreteTrapezoidIntegral", "DiscreteSimpsonIntegral",
    "DiscreteTrapezoidIntegrator", "DiscreteSimpsonIntegrator", "survival_probability",
    # Black formula & SABR
    "CALL", "PUT", "black_formula", "black_formula_vol_derivative",
    "black_formula_implied_std_dev", "try_black_formula_implied_std_dev",
    "bachelier_black_formula",
    "validate_sabr_parameters", "sabr_volatility", "shifted_sabr_volatility",
    "unsafe_sabr_volatility", "unsafe_shifted_sabr_volatility",
    "VolatilityType", "SmileSection", "SabrSmileSection",
    "NoArbSabrModel", "NoArbSabrSmileSection",
    # Calibration
    "SabrParams", "SabrVolSurface", "fit_sabr", "fit_sabr_surface",
]

__version__ = "0.1.0"
