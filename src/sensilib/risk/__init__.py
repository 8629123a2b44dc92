"""
Risk module for curve-quote sensitivities.

Provides:
- Tenor bumping (selections, bump handlers)
- Pricer re-evaluation (ReEvaluator, AggregateEvaluator)
- Bump-and-reprice engine and Spread01/SpreadGamma/SpreadHedge helpers
- Semi-analytic derivatives and reports
"""

from .bumping import (
    BumpSpec,
    BumpHandler,
    TenorEquivalenceGroup,
    make_tenor_filter,
    uniform_selection,
    parallel_selections,
    by_category_selections,
    by_tenor_selections,
    bump_tenors,
    restore_curves,
)
from .evaluators import (
    BasketCapability,
    Evaluator,
    PricerEvaluator,
    ReEvaluator,
    AggregateEvaluator,
    ReEvaluatorList,
    to_evaluator,
)
from .derivatives import (
    DerivativesWrtCurve,
    DerivativeCollection,
    DerivativeCollectionArray,
)
from .sensitivities import (
    SensitivityEngine,
    calc_delta,
    calc_gamma,
    calc_hedge,
    spread01,
    spread_gamma,
    spread_hedge,
    rate01,
)
from .semi_analytic import (
    AnalyticDerivativesProvider,
    semi_analytic_sensitivities,
    semi_analytic_spread_sensitivities,
    semi_analytic_vod,
    semi_analytic_recovery,
)

__all__ = [
    "BumpSpec",
    "BumpHandler",
    "TenorEquivalenceGroup",
    "make_tenor_filter",
    "uniform_selection",
    "parallel_selections",
    "by_category_selections",
    "by_tenor_selections",
    "bump_tenors",
    "restore_curves",
    "BasketCapability",
    "Evaluator",
    "PricerEvaluator",
    "ReEvaluator",
    "AggregateEvaluator",
    "ReEvaluatorList",
    "to_evaluator",
    "DerivativesWrtCurve",
    "DerivativeCollection",
    "DerivativeCollectionArray",
    "SensitivityEngine",
    "calc_delta",
    "calc_gamma",
    "calc_hedge",
    "spread01",
    "spread_gamma",
    "spread_hedge",
    "rate01",
    "AnalyticDerivativesProvider",
    "semi_analytic_sensitivities",
    "semi_analytic_spread_sensitivities",
    "semi_analytic_vod",
    "semi_analytic_recovery",
]
