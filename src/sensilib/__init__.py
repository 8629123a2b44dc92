"""
SensiLib: Curve-Quote Sensitivity Engine

A modular library for:
- Bump-and-reprice sensitivities (delta, gamma, hedge ratios) of pricers
  with respect to market-curve quotes
- Semi-analytic sensitivities from pricer-supplied gradients and Hessians
- Tabular reporting of the results

Scope: curve quotes only; curve calibration and product valuation
are supplied by the caller.
"""

__version__ = "0.1.0"

# Core modules
from .config import SensitivityConfig, configure_logging
from .conventions import BP, BumpType, BumpFlags, BumpTarget, CurveKind, ResetAction
from .errors import (
    SensitivityError,
    ConfigurationError,
    CyclicDependencyError,
    PricerNotFoundError,
    CurveNotFoundError,
    StateMismatchError,
)

# Curves
from .curves import Curve, CurveTenor, DependencyGraph, create_flat_curve

# Risk
from .risk import (
    TenorEquivalenceGroup,
    BumpHandler,
    ReEvaluator,
    AggregateEvaluator,
    DerivativesWrtCurve,
    DerivativeCollection,
    DerivativeCollectionArray,
    SensitivityEngine,
    spread01,
    spread_gamma,
    spread_hedge,
    rate01,
    semi_analytic_spread_sensitivities,
    semi_analytic_vod,
    semi_analytic_recovery,
)

# Reporting
from .reporting import ResultTable, ResultRow, export_to_csv

__all__ = [
    "__version__",
    # Core
    "SensitivityConfig",
    "configure_logging",
    "BP",
    "BumpType",
    "BumpFlags",
    "BumpTarget",
    "CurveKind",
    "ResetAction",
    "SensitivityError",
    "ConfigurationError",
    "CyclicDependencyError",
    "PricerNotFoundError",
    "CurveNotFoundError",
    "StateMismatchError",
    # Curves
    "Curve",
    "CurveTenor",
    "DependencyGraph",
    "create_flat_curve",
    # Risk
    "TenorEquivalenceGroup",
    "BumpHandler",
    "ReEvaluator",
    "AggregateEvaluator",
    "DerivativesWrtCurve",
    "DerivativeCollection",
    "DerivativeCollectionArray",
    "SensitivityEngine",
    "spread01",
    "spread_gamma",
    "spread_hedge",
    "rate01",
    "semi_analytic_spread_sensitivities",
    "semi_analytic_vod",
    "semi_analytic_recovery",
    # Reporting
    "ResultTable",
    "ResultRow",
    "export_to_csv",
]
