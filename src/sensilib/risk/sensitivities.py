"""
Bump-and-reprice sensitivity calculations.

For every bump selection the engine:
1. Skips pricers that cannot see the bumped curves
2. Bumps the selection up and reprices
3. Bumps it down and reprices
4. Restores the base curves
5. Writes one row per pricer into the result table

Finite differences (u, d = actual up/down bump sizes in bp):
    delta = (V_up - V_0) - (V_down - V_0), divided by (u + d) when scaled
    gamma = ((V_up - V_0)/u + (V_down - V_0)/d) / ((u + d)/2)
    hedge = (H_up - H_down), divided by (u + d) when scaled

Convenience functions spread01, spread_gamma, spread_hedge and rate01
run a single uniform bump on one pricer and return one number.
"""

import logging
import math
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..config import SensitivityConfig
from ..conventions import BumpFlags, BumpTarget, BumpType
from ..curves.curve import Curve
from ..curves.graph import DependencyGraph
from ..errors import ConfigurationError
from ..reporting.result_table import ResultTable
from .bumping import (
    TenorEquivalenceGroup, bump_tenors, by_category_selections, by_tenor_selections,
    make_tenor_filter, parallel_selections, restore_curves, uniform_selection,
)
from .evaluators import (
    Evaluator, Measure, PricerEvaluator, ReEvaluator, ReEvaluatorBase, ReEvaluatorList,
    to_evaluator,
)

LOGGER = logging.getLogger(__name__)

MATCHING = "matching"
CURVE_SEPARATOR = "\n"
ALL = "all"

# Hedge deltas are reported per million of hedge notional
HEDGE_DELTA_SCALE = 1.0e6


def _is_zero(x: float) -> bool:
    return math.isclose(x, 0.0, abs_tol=1e-12)


def calc_delta(
    base: float,
    up: Optional[float],
    down: Optional[float],
    scaled: bool,
    up_bumped: float,
    down_bumped: float
) -> float:
    """
    Finite-difference delta.

    Args:
        base: Unbumped value
        up: Value after the up bump (None when not bumped up)
        down: Value after the down bump (None when not bumped down)
        scaled: Divide by the total bump size
        up_bumped: Actual up bump size
        down_bumped: Actual down bump size

    Returns:
        Delta; 0.0 when scaled and nothing was bumped
    """
    delta = 0.0
    if up is not None:
        delta += up - base
    if down is not None:
        delta -= down - base
    if scaled:
        if _is_zero(up_bumped + down_bumped):
            return 0.0
        delta /= up_bumped + down_bumped
    return delta


def calc_gamma(
    base: float,
    up: Optional[float],
    down: Optional[float],
    scaled: bool,
    up_bumped: float,
    down_bumped: float
) -> float:
    """
    Finite-difference gamma.

    Only defined when both sides were bumped and results are scaled;
    0.0 otherwise. With unequal bumps this estimates the gamma at
    x + (u - d)/2 rather than at x.
    """
    if up is None or down is None or not scaled:
        return 0.0
    if _is_zero(up_bumped) or _is_zero(down_bumped):
        return 0.0
    gamma = (up - base) / up_bumped + (down - base) / down_bumped
    return gamma / ((up_bumped + down_bumped) / 2)


def calc_hedge(
    up_hedge: float,
    down_hedge: float,
    scaled: bool,
    up_bumped: float,
    down_bumped: float
) -> float:
    """Finite-difference delta of the hedge instrument; 0.0 for a zero total bump."""
    hedge = up_hedge - down_hedge
    if scaled:
        # Bumps may be zeroed out, e.g. on a defaulted curve
        if _is_zero(up_bumped + down_bumped):
            return 0.0
        hedge /= up_bumped + down_bumped
    return hedge


def _element_label(selection: TenorEquivalenceGroup) -> str:
    names: List[str] = []
    for curve in selection.curves:
        if curve.name not in names:
            names.append(curve.name)
    return CURVE_SEPARATOR.join(names) if names else ALL


def _category(selection: TenorEquivalenceGroup) -> str:
    if len(selection.curves) == 1 and selection.curves[0].category:
        return selection.curves[0].category
    return ALL


class _HedgeFactory:
    """
    Builds and caches hedge evaluators for selections.

    Evaluators are shared between selections with the same curves and
    hedge tenor, so each hedge pricer is valued once per run.
    """

    def __init__(self, hedge_tenor: str, bump_type: BumpType, flags: BumpFlags,
                 measure: Measure, owned: List[ReEvaluatorBase],
                 logger: logging.Logger):
        self.hedge_tenor = hedge_tenor
        self.by_tenor_only = bump_type == BumpType.BY_TENOR and (
            hedge_tenor == MATCHING or bool(flags & BumpFlags.NO_HEDGE_ON_TENOR_MISMATCH))
        self.measure = measure
        self._owned = owned
        self._logger = logger
        self._cache: Dict[Tuple, Optional[ReEvaluatorBase]] = {}

    def __call__(self, selection: TenorEquivalenceGroup) -> Optional[ReEvaluatorBase]:
        if self.by_tenor_only:
            return self._matching(selection)
        return self._by_name(selection)

    def _matching(self, selection: TenorEquivalenceGroup) -> Optional[ReEvaluatorBase]:
        curve = selection.curves[0] if selection.curves else None
        tenor = selection.key_tenor
        if curve is None or curve.hedge_pricer is None:
            return None
        if self.hedge_tenor != MATCHING and tenor.name != self.hedge_tenor:
            return None
        key = (id(curve), id(tenor))
        if key not in self._cache:
            self._cache[key] = self._wrap([curve.hedge_pricer(curve, tenor)], tenor.name)
        return self._cache[key]

    def _by_name(self, selection: TenorEquivalenceGroup) -> Optional[ReEvaluatorBase]:
        key = (tuple(id(c) for c in selection.curves), self.hedge_tenor)
        if key in self._cache:
            return self._cache[key]
        pricers = []
        for curve in selection.curves:
            tenor = curve.get_tenor(self.hedge_tenor)
            if tenor is None or curve.hedge_pricer is None:
                continue
            pricers.append(curve.hedge_pricer(curve, tenor))
        if not pricers:
            self._logger.debug("No hedge pricer for tenor %s on selection %s",
                               self.hedge_tenor, selection.name)
        hedge = self._wrap(pricers, self.hedge_tenor)
        self._cache[key] = hedge
        return hedge

    def _wrap(self, pricers: Sequence[Any], name: str) -> Optional[ReEvaluatorBase]:
        hedge = to_evaluator(pricers, name, self.measure, logger=self._logger)
        if hedge is not None:
            self._owned.append(hedge)
        return hedge


class SensitivityEngine:
    """
    Bump-and-reprice sensitivity engine.

    A run mutates curve overlays and always restores the base curves
    before returning. Runs on the same curves must not overlap; use
    Curve.clone() to give concurrent runs private curves.

    Example:
        >>> engine = SensitivityEngine(SensitivityConfig(bump_type="ByTenor"))
        >>> table = engine.calculate([cds], BumpTarget.CREDIT_QUOTES, calc_gamma=True)
        >>> table.to_dataframe()
    """

    def __init__(self, config: Optional[SensitivityConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or SensitivityConfig()
        self._logger = logger or LOGGER

    def calculate(
        self,
        evaluators: Iterable[Any],
        target: BumpTarget = BumpTarget.CREDIT_QUOTES,
        *,
        measure: Measure = "pv",
        up_bump: Optional[float] = None,
        down_bump: Optional[float] = None,
        bump_type: Union[str, BumpType, None] = None,
        flags: Union[str, BumpFlags, None] = None,
        curve_names: Optional[Sequence[str]] = None,
        bump_tenors: Optional[Sequence[str]] = None,
        scaled_delta: Optional[bool] = None,
        calc_gamma: bool = False,
        hedge_tenor: Optional[str] = None,
        calc_hedge: bool = False,
        cache: Optional[bool] = None,
        cancel_event: Optional[threading.Event] = None,
        table: Optional[ResultTable] = None
    ) -> ResultTable:
        """
        Compute sensitivities of pricers to curve quotes.

        Args:
            evaluators: Pricers or Evaluator objects
            target: Quote categories to bump
            measure: Pricer method name or callable used to wrap plain pricers
            up_bump: Up bump size (config default when None)
            down_bump: Down bump size (config default when None)
            bump_type: Grouping of tenors into bumps
            flags: Bump semantics
            curve_names: Only bump these curves
            bump_tenors: Only bump tenors with these names
            scaled_delta: Divide by the actual bump sizes
            calc_gamma: Fill the Gamma column
            hedge_tenor: "matching" (by-tenor only) or a tenor name
            calc_hedge: Fill the hedge columns
            cache: Keep shifted ordinates cached on the curves afterwards
            cancel_event: Checked before each selection; a set event stops
                the run and returns the rows computed so far
            table: Table to append to (a new one when None)

        Returns:
            ResultTable with one row per (selection, affected pricer)

        Raises:
            ConfigurationError: Volatility target, negative bump sizes
        """
        config = self.config
        up_bump = config.up_bump if up_bump is None else float(up_bump)
        down_bump = config.down_bump if down_bump is None else float(down_bump)
        bump_type = BumpType.from_string(config.bump_type if bump_type is None else bump_type)
        flags = BumpFlags.from_string(config.flags if flags is None else flags)
        scaled = config.scaled_delta if scaled_delta is None else bool(scaled_delta)
        cache = config.cache if cache is None else bool(cache)

        if target & BumpTarget.VOLATILITIES:
            raise ConfigurationError("Volatility bumps are not supported by the curve engine")
        if up_bump < 0 or down_bump < 0:
            raise ConfigurationError(
                f"Bump sizes must be non-negative: up={up_bump}, down={down_bump}")

        calc_hedge = calc_hedge and hedge_tenor is not None
        if table is None:
            table = ResultTable(calc_gamma=calc_gamma, calc_hedge=calc_hedge)
        table.metadata.update(bump_type=bump_type.value, target=str(target), cancelled=False)

        start = time.perf_counter()
        graph = None
        with ReEvaluatorList() as re_evaluators:
            for e in evaluators:
                if e is None:
                    continue
                if not isinstance(e, Evaluator):
                    e = PricerEvaluator(e, measure)
                re_evaluator = ReEvaluator(e, logger=self._logger)
                re_evaluator.set_rescale_strike(bool(flags & BumpFlags.REMAP_CORRELATIONS))
                if flags & BumpFlags.REFIT_RECOVERY:
                    re_evaluator.mark_recovery_changed()
                re_evaluators.append(re_evaluator)

            # Hedge evaluators are closed with the pricers
            owned: List[ReEvaluatorBase] = []
            pricers = list(re_evaluators)
            try:
                graph = DependencyGraph(
                    [c for r in pricers for c in r.evaluator.curves],
                    lambda c: c.prerequisites)

                hedges = None
                if calc_hedge:
                    hedges = _HedgeFactory(hedge_tenor, bump_type, flags, measure,
                                           owned, self._logger)

                selections = self._selections(graph, bump_type, target,
                                              curve_names, bump_tenors, hedges)
                self._logger.debug("%d selections over %d curves for %d pricers",
                                   len(selections), len(graph), len(pricers))

                for selection in selections:
                    if cancel_event is not None and cancel_event.is_set():
                        self._logger.info("Sensitivity run cancelled after %d rows", len(table))
                        table.metadata["cancelled"] = True
                        break
                    self._calculate_selection(
                        pricers, graph, selection, up_bump, down_bump, flags, target,
                        scaled, calc_gamma, selection.hedge_evaluator, table)
            finally:
                re_evaluators.extend(owned)
                if graph is not None and not cache:
                    for curve in graph:
                        curve.shifts.clear()

        table.metadata["elapsed"] = time.perf_counter() - start
        return table

    def _selections(
        self,
        graph: DependencyGraph,
        bump_type: BumpType,
        target: BumpTarget,
        curve_names: Optional[Sequence[str]],
        bump_tenors: Optional[Sequence[str]],
        hedges: Optional[Callable[[TenorEquivalenceGroup], Optional[ReEvaluatorBase]]]
    ) -> List[TenorEquivalenceGroup]:
        tenor_filter = make_tenor_filter(target, curve_names, bump_tenors)

        if bump_type == BumpType.BY_TENOR:
            return by_tenor_selections(graph, tenor_filter, hedges)

        if bump_type == BumpType.UNIFORM:
            selections = uniform_selection(graph, tenor_filter)
        elif bump_type == BumpType.PARALLEL:
            selections = parallel_selections(graph, tenor_filter)
        elif bump_type == BumpType.BY_CATEGORY:
            selections = by_category_selections(graph, tenor_filter)
        else:
            raise ConfigurationError(f"Unsupported bump type: {bump_type}")

        if hedges is not None:
            for selection in selections:
                selection.hedge_evaluator = hedges(selection)
        return selections

    def _calculate_selection(
        self,
        pricers: List[ReEvaluator],
        graph: DependencyGraph,
        selection: TenorEquivalenceGroup,
        up_bump: float,
        down_bump: float,
        flags: BumpFlags,
        target: BumpTarget,
        scaled: bool,
        calc_gamma: bool,
        hedging: Optional[ReEvaluatorBase],
        table: ResultTable
    ) -> None:
        active = [p for p in pricers if p.depends_on(selection)]
        if not active:
            return

        affected: List[Curve] = []
        try:
            up_table = down_table = None
            up_bumped = down_bumped = up_hedge = down_hedge = 0.0

            if not _is_zero(up_bump):
                self._logger.debug("Selector %s - bumping up", selection.name)
                up_bumped = bump_tenors(graph, selection, up_bump, flags, affected, target)
                if not _is_zero(up_bumped):
                    up_table = [p.re_evaluate() for p in active]
                    if hedging is not None:
                        up_hedge = hedging.re_evaluate() - hedging.base_value

            if not _is_zero(down_bump):
                self._logger.debug("Selector %s - bumping down", selection.name)
                down_bumped = bump_tenors(graph, selection, down_bump,
                                          flags | BumpFlags.BUMP_DOWN, affected, target)
                if not _is_zero(down_bumped):
                    down_table = [p.re_evaluate() for p in active]
                    if hedging is not None:
                        down_hedge = hedging.re_evaluate() - hedging.base_value

            self._logger.debug("Selector %s - saving results", selection.name)
            self._fill(table, active, _category(selection), _element_label(selection),
                       selection.name, scaled, calc_gamma,
                       up_table, up_bumped, down_table, down_bumped,
                       hedging, up_hedge, down_hedge)
        finally:
            restore_curves(affected)

    def _fill(
        self,
        table: ResultTable,
        pricers: List[ReEvaluator],
        category: str,
        element: str,
        tenor_name: str,
        scaled: bool,
        with_gamma: bool,
        up_table: Optional[List[float]],
        up_bumped: float,
        down_table: Optional[List[float]],
        down_bumped: float,
        hedging: Optional[ReEvaluatorBase],
        up_hedge: float,
        down_hedge: float
    ) -> None:
        hedge_delta = (calc_hedge(up_hedge, down_hedge, scaled, up_bumped, down_bumped)
                       if hedging is not None else 0.0)
        hedge_name = hedging.name if hedging is not None else None

        for j, pricer in enumerate(pricers):
            base = pricer.base_value
            up = up_table[j] if up_table is not None else None
            down = down_table[j] if down_table is not None else None
            self._logger.debug("Tenor %s, trade %s, up = %s, mid = %s, down = %s",
                               tenor_name, pricer.name,
                               up if up is not None else 0.0, base,
                               down if down is not None else 0.0)

            row = table.new_row()
            row.category = category
            row.element = element
            row.curve_tenor = tenor_name
            row.pricer = pricer.name
            row.delta = calc_delta(base, up, down, scaled, up_bumped, down_bumped)
            if with_gamma:
                row.gamma = calc_gamma(base, up, down, scaled, up_bumped, down_bumped)
            if table.calc_hedge:
                row.hedge_tenor = hedge_name
                row.hedge_delta = HEDGE_DELTA_SCALE * hedge_delta
                row.hedge_notional = 0.0 if _is_zero(hedge_delta) else row.delta / hedge_delta
            table.add_row(row)


def _single_row(
    pricer: Any,
    measure: Measure,
    target: BumpTarget,
    up_bump: float,
    down_bump: float,
    flags: Union[str, BumpFlags],
    calc_gamma: bool = False,
    hedge_tenor: Optional[str] = None
):
    table = SensitivityEngine().calculate(
        [pricer], target,
        measure=measure,
        up_bump=up_bump,
        down_bump=down_bump,
        bump_type=BumpType.UNIFORM,
        flags=flags,
        scaled_delta=True,
        calc_gamma=calc_gamma,
        hedge_tenor=hedge_tenor,
        calc_hedge=hedge_tenor is not None,
    )
    return table[0] if len(table) else None


def spread01(
    pricer: Any,
    measure: Measure = "pv",
    up_bump: float = 1.0,
    down_bump: float = 0.0,
    flags: Union[str, BumpFlags] = BumpFlags.NONE
) -> float:
    """
    Change in the measure for a uniform 1bp move of all credit quotes.

    Returns:
        Scaled delta, NaN when the pricer has no credit curve to bump
    """
    row = _single_row(pricer, measure, BumpTarget.CREDIT_QUOTES, up_bump, down_bump, flags)
    return row.delta if row is not None else float("nan")


def spread_gamma(
    pricer: Any,
    measure: Measure = "pv",
    up_bump: float = 1.0,
    down_bump: float = 1.0,
    flags: Union[str, BumpFlags] = BumpFlags.NONE
) -> float:
    """Second-order change in the measure for a uniform move of credit quotes; NaN without rows."""
    row = _single_row(pricer, measure, BumpTarget.CREDIT_QUOTES, up_bump, down_bump, flags,
                      calc_gamma=True)
    return row.gamma if row is not None else float("nan")


def spread_hedge(
    pricer: Any,
    measure: Measure = "pv",
    hedge_tenor: str = "5Y",
    up_bump: float = 1.0,
    down_bump: float = 0.0,
    flags: Union[str, BumpFlags] = BumpFlags.NONE
) -> float:
    """
    Notional of the hedge instrument at ``hedge_tenor`` offsetting the spread delta.

    Returns:
        Hedge notional, NaN when the pricer has no credit curve to bump
    """
    row = _single_row(pricer, measure, BumpTarget.CREDIT_QUOTES, up_bump, down_bump, flags,
                      hedge_tenor=hedge_tenor)
    return row.hedge_notional if row is not None else float("nan")


def rate01(
    pricer: Any,
    measure: Measure = "pv",
    up_bump: float = 1.0,
    down_bump: float = 0.0,
    flags: Union[str, BumpFlags] = BumpFlags.NONE
) -> float:
    """Change in the measure for a uniform 1bp move of all interest-rate quotes; NaN without rows."""
    row = _single_row(pricer, measure, BumpTarget.INTEREST_RATES, up_bump, down_bump, flags)
    return row.delta if row is not None else float("nan")


__all__ = [
    "calc_delta",
    "calc_gamma",
    "calc_hedge",
    "SensitivityEngine",
    "spread01",
    "spread_gamma",
    "spread_hedge",
    "rate01",
    "MATCHING",
    "HEDGE_DELTA_SCALE",
]
