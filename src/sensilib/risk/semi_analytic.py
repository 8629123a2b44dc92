"""
Semi-analytic sensitivities from pricer-supplied derivatives.

Pricers that know their own derivatives with respect to curve quotes
implement AnalyticDerivativesProvider. The reports here apply the
quadratic model of DerivativesWrtCurve to a bump vector instead of
repricing:

- semi_analytic_spread_sensitivities: delta/gamma per curve (Parallel)
  or per tenor (ByTenor), with optional hedge ratios
- semi_analytic_vod: value on default per curve
- semi_analytic_recovery: recovery delta per curve

Bump vector per tenor: bump * quote for relative bumps, bump * 1bp
for absolute bumps.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np

from ..conventions import BP, BumpType
from ..curves.curve import Curve
from ..errors import ConfigurationError, StateMismatchError
from ..reporting.result_table import ResultTable
from .derivatives import DerivativeCollection, DerivativeCollectionArray, DerivativesWrtCurve

logger = logging.getLogger(__name__)

MATCHING = "matching"

# Parallel hedge deltas are per million notional, by-tenor ones per hundred
PARALLEL_HEDGE_SCALE = 1.0e6
BY_TENOR_HEDGE_SCALE = 1.0e2
_HEDGE_TOLERANCE = 1e-8


@runtime_checkable
class AnalyticDerivativesProvider(Protocol):
    """Pricer able to compute its derivatives with respect to curve quotes."""
    description: str
    notional: float

    def derivatives_wrt_quotes(self) -> DerivativeCollection: ...


def _pricer_name(pricer: Any) -> str:
    return getattr(pricer, "description", None) or type(pricer).__name__


def _derivatives_of(pricer: Any) -> DerivativeCollection:
    name = _pricer_name(pricer)
    if not isinstance(pricer, AnalyticDerivativesProvider):
        logger.error("Pricer %s does not support semi-analytic sensitivities. "
                     "Calculations are not performed for pricer %s", name, name)
        return DerivativeCollection(name)
    collection = pricer.derivatives_wrt_quotes()
    if not collection.name:
        collection.name = name
    return collection


def semi_analytic_sensitivities(
    pricers: Sequence[Any],
    max_workers: Optional[int] = None
) -> DerivativeCollectionArray:
    """
    Collect the derivatives of each pricer.

    Pricers without analytic support are logged and get an empty
    collection. Derivatives are pure computations on the pricers, so
    they may be computed in a thread pool.

    Args:
        pricers: Pricers, in report order
        max_workers: Thread pool size (None or 1 = serial)

    Returns:
        DerivativeCollectionArray in pricer order

    Raises:
        ConfigurationError: Two pricers share a name
    """
    pricers = [p for p in pricers if p is not None]
    if max_workers is not None and max_workers > 1 and len(pricers) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            collections = list(executor.map(_derivatives_of, pricers))
    else:
        collections = [_derivatives_of(p) for p in pricers]
    return DerivativeCollectionArray(collections)


def bump_vector(curve: Curve, bump: float, bump_relative: bool) -> np.ndarray:
    """Bump per tenor of the curve in quote units."""
    if bump_relative:
        return bump * curve.quotes
    return np.full(len(curve.tenors), bump * BP)


def _hedge_derivatives(curve: Curve, tenor_name: str) -> Optional[DerivativesWrtCurve]:
    tenor = curve.get_tenor(tenor_name)
    if tenor is None or curve.hedge_pricer is None:
        return None
    hedge = curve.hedge_pricer(curve, tenor)
    if not isinstance(hedge, AnalyticDerivativesProvider):
        return None
    collection = hedge.derivatives_wrt_quotes()
    if len(collection) == 0:
        return None
    if curve.name in collection:
        return collection.get_derivatives(curve.name)
    return collection.get_derivatives(0)


def _hedge_pricer_name(curve: Curve, tenor_name: str) -> Optional[str]:
    tenor = curve.get_tenor(tenor_name)
    if tenor is None or curve.hedge_pricer is None:
        return None
    return _pricer_name(curve.hedge_pricer(curve, tenor))


def _ratio(value: float, hedge: float, notional: float) -> float:
    return 0.0 if abs(hedge) < _HEDGE_TOLERANCE else value / hedge * notional


def semi_analytic_spread_sensitivities(
    pricers: Sequence[Any],
    bump: float = 1.0,
    bump_type: Union[str, BumpType] = BumpType.PARALLEL,
    bump_relative: bool = False,
    calc_hedge: bool = False,
    hedge_tenor: Optional[str] = None,
    max_workers: Optional[int] = None
) -> ResultTable:
    """
    Spread delta and gamma from analytic derivatives.

    Parallel: one row per (pricer, curve) with
        delta = compute_sensitivity(bp) * notional
        gamma = second_order_only(bp) * notional
    ByTenor: one row per (pricer, curve, tenor l) with
        delta = g[l] * bp[l] * notional
        gamma = H[l,l] * bp[l]^2 * notional

    Args:
        pricers: Pricers to report on
        bump: Bump size (bp, or fraction of the quote when relative)
        bump_type: Parallel or ByTenor
        bump_relative: Bump proportionally to the quotes
        calc_hedge: Add hedge columns
        hedge_tenor: Hedge tenor name, or "matching" for by-tenor hedges
        max_workers: Thread pool size for collecting derivatives

    Returns:
        ResultTable with metadata["elapsed"] in seconds

    Raises:
        ConfigurationError: Unsupported bump type
    """
    bump_type = BumpType.from_string(bump_type)
    if bump_type not in (BumpType.PARALLEL, BumpType.BY_TENOR):
        raise ConfigurationError(
            f"Semi-analytic sensitivities support Parallel and ByTenor bumps, not {bump_type.value}")

    start = time.perf_counter()
    table = ResultTable(calc_gamma=True, calc_hedge=calc_hedge)
    pricers = [p for p in pricers if p is not None]
    collections = semi_analytic_sensitivities(pricers, max_workers)

    for pricer, collection in zip(pricers, collections):
        notional = float(getattr(pricer, "notional", 1.0))
        for derivatives in collection:
            curve = derivatives.reference_curve
            bp = bump_vector(curve, bump, bump_relative)
            if bump_type == BumpType.PARALLEL:
                _parallel_row(table, collection.name, derivatives, bp, notional,
                              calc_hedge, hedge_tenor)
            else:
                _by_tenor_rows(table, collection.name, derivatives, bp, notional,
                               calc_hedge, hedge_tenor)

    elapsed = time.perf_counter() - start
    logger.info("Completed spread sensitivity in %.3fs", elapsed)
    table.metadata["elapsed"] = elapsed
    return table


def _parallel_row(table, pricer_name, derivatives, bp, notional, calc_hedge, hedge_tenor):
    curve = derivatives.reference_curve
    dv01 = derivatives.compute_sensitivity(bp)
    row = table.new_row()
    row.category = curve.category
    row.element = curve.name
    row.pricer = pricer_name
    row.delta = dv01 * notional
    row.gamma = derivatives.second_order_only(bp) * notional
    if calc_hedge:
        row.hedge_tenor = hedge_tenor
        hedge = _hedge_derivatives(curve, hedge_tenor) if hedge_tenor else None
        if hedge is not None:
            hedge_dv01 = hedge.compute_sensitivity(bp)
            row.hedge_delta = (0.0 if abs(hedge_dv01) < _HEDGE_TOLERANCE
                               else hedge_dv01 * PARALLEL_HEDGE_SCALE)
            row.hedge_notional = _ratio(dv01, hedge_dv01, notional)
    table.add_row(row)


def _by_tenor_rows(table, pricer_name, derivatives, bp, notional, calc_hedge, hedge_tenor):
    curve = derivatives.reference_curve
    tenors = curve.tenors
    derivatives.check_state()

    # One hedge per tenor when matching, else a single hedge at hedge_tenor
    hedges: List[Optional[DerivativesWrtCurve]] = []
    hedge_pos = None
    if calc_hedge and hedge_tenor:
        if hedge_tenor == MATCHING:
            hedges = [_hedge_derivatives(curve, t.name) for t in tenors]
        else:
            tenor = curve.get_tenor(hedge_tenor)
            if tenor is not None:
                hedge_pos = curve.tenor_index(tenor)
                hedges = [_hedge_derivatives(curve, hedge_tenor)]
    for hedge in hedges:
        if hedge is not None and hedge.check_state() != len(tenors):
            raise StateMismatchError(
                f"Hedge derivatives on curve {hedge.curve_name} do not cover "
                f"the {len(tenors)} tenors of curve {curve.name}")

    for l, tenor in enumerate(tenors):
        gradient = float(derivatives.gradient[l])
        row = table.new_row()
        row.category = curve.category
        row.element = curve.name
        row.curve_tenor = tenor.name
        row.pricer = pricer_name
        row.delta = gradient * bp[l] * notional
        row.gamma = derivatives.hessian_at(l, l) * bp[l] * bp[l] * notional
        if calc_hedge and hedges:
            if hedge_pos is None:
                hedge = hedges[l]
                hedge_delta = float(hedge.gradient[l]) if hedge is not None else 0.0
            else:
                hedge = hedges[0]
                hedge_delta = (float(hedge.gradient[hedge_pos])
                               if hedge is not None and hedge_pos == l else 0.0)
            row.hedge_tenor = tenor.name
            row.hedge_delta = (0.0 if abs(hedge_delta) < _HEDGE_TOLERANCE
                               else hedge_delta * BY_TENOR_HEDGE_SCALE)
            row.hedge_notional = _ratio(gradient, hedge_delta, notional)
        table.add_row(row)


def semi_analytic_vod(
    pricers: Sequence[Any],
    calc_hedge: bool = False,
    hedge_tenor: Optional[str] = None,
    max_workers: Optional[int] = None
) -> ResultTable:
    """
    Value on default per curve: delta = vod * notional.

    Hedge ratios use the value on default of the curve's hedge pricer
    at ``hedge_tenor``.
    """
    start = time.perf_counter()
    table = ResultTable(calc_hedge=calc_hedge, include_curve_tenor=False)
    pricers = [p for p in pricers if p is not None]
    collections = semi_analytic_sensitivities(pricers, max_workers)

    for pricer, collection in zip(pricers, collections):
        notional = float(getattr(pricer, "notional", 1.0))
        for derivatives in collection:
            curve = derivatives.reference_curve
            row = table.new_row()
            row.category = curve.category
            row.element = curve.name
            row.pricer = collection.name
            row.delta = derivatives.vod * notional
            if calc_hedge and hedge_tenor:
                hedge = _hedge_derivatives(curve, hedge_tenor)
                if hedge is not None:
                    row.hedge_tenor = _hedge_pricer_name(curve, hedge_tenor)
                    row.hedge_delta = hedge.vod * PARALLEL_HEDGE_SCALE
                    row.hedge_notional = _ratio(derivatives.vod, hedge.vod, notional)
            table.add_row(row)

    elapsed = time.perf_counter() - start
    logger.info("Completed VOD sensitivity in %.3fs", elapsed)
    table.metadata["elapsed"] = elapsed
    return table


def semi_analytic_recovery(
    pricers: Sequence[Any],
    bump: float = 1.0,
    max_workers: Optional[int] = None
) -> ResultTable:
    """Recovery delta per curve: delta = recovery_delta * notional * bump, gamma = 0."""
    start = time.perf_counter()
    table = ResultTable(calc_gamma=True, include_curve_tenor=False)
    pricers = [p for p in pricers if p is not None]
    collections = semi_analytic_sensitivities(pricers, max_workers)

    for pricer, collection in zip(pricers, collections):
        notional = float(getattr(pricer, "notional", 1.0))
        for derivatives in collection:
            curve = derivatives.reference_curve
            row = table.new_row()
            row.category = curve.category
            row.element = curve.name
            row.pricer = collection.name
            row.delta = derivatives.recovery_delta * notional * bump
            row.gamma = 0.0
            table.add_row(row)

    elapsed = time.perf_counter() - start
    logger.info("Completed recovery sensitivity in %.3fs", elapsed)
    table.metadata["elapsed"] = elapsed
    return table


__all__ = [
    "AnalyticDerivativesProvider",
    "semi_analytic_sensitivities",
    "semi_analytic_spread_sensitivities",
    "semi_analytic_vod",
    "semi_analytic_recovery",
    "bump_vector",
]
