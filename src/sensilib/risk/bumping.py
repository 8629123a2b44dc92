"""
Tenor bumping framework for bump-and-reprice sensitivities.

Provides:
- BumpSpec: size + flags + target of one bump
- BumpHandler: applies one bump to the shift state of a curve
- TenorEquivalenceGroup: a set of tenors bumped as one unit
- Selection builders for Uniform, Parallel, ByTenor and ByCategory bumps
- bump_tenors / restore_curves: apply a group's bump across a curve graph

Bump sizes:
- Absolute bumps are in basis points of the quote
- Relative bumps are fractions of the quote (0.1 = 10% of the quote)
"""

import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Sequence,
)

import numpy as np

from ..conventions import BP, BumpFlags, BumpTarget
from ..curves.curve import Curve, CurveTenor
from ..curves.graph import DependencyGraph
from ..curves.shifts import CurveShifts
from ..errors import ConfigurationError

if TYPE_CHECKING:
    from .evaluators import ReEvaluatorBase

logger = logging.getLogger(__name__)

TenorFilter = Callable[[Curve, CurveTenor], bool]


@dataclass(frozen=True)
class BumpSpec:
    """
    Specification of a single bump.

    Attributes:
        size: Bump size in bump units (bp, or fraction when relative)
        flags: Bump semantics
        target: Quote category being bumped
    """
    size: float
    flags: BumpFlags = BumpFlags.NONE
    target: BumpTarget = BumpTarget.NONE

    @property
    def relative(self) -> bool:
        return bool(self.flags & BumpFlags.BUMP_RELATIVE)

    @property
    def down(self) -> bool:
        return bool(self.flags & BumpFlags.BUMP_DOWN)


class BumpHandler:
    """
    Applies one bump specification to every tenor of a group.

    Shift values are read and written under the representative
    (key) tenor together with the full tenor set, so all curves holding
    the group share one cache entry per bump, and groups with the same
    key tenor but different tenors never collide.
    """

    def __init__(self, key_tenor: CurveTenor, tenors: Sequence[CurveTenor], spec: BumpSpec):
        self.key_tenor = key_tenor
        self.tenors = list(tenors)
        self.spec = spec
        self._ids = {id(t) for t in self.tenors}

    def contains(self, tenor: CurveTenor) -> bool:
        return id(tenor) in self._ids

    def has_affected(self, shifts: CurveShifts) -> bool:
        """Whether any tenor of the group is held by the shift state's curve."""
        return any(shifts.contains(t) for t in self.tenors)

    def get_shift_values(self, shifts: CurveShifts) -> Optional[np.ndarray]:
        return shifts.get(self.key_tenor, self.spec, self.tenors)

    def set_shift_values(self, shifts: CurveShifts, values: np.ndarray) -> None:
        shifts.set(self.key_tenor, self.spec, values, self.tenors)

    def shift_for(self, tenor: CurveTenor) -> float:
        """Signed change applied to the tenor's quote."""
        if self.spec.relative:
            amount = self.spec.size * tenor.quote
        else:
            amount = self.spec.size * BP
        return -amount if self.spec.down else amount

    def bump_size_for(self, tenor: CurveTenor) -> float:
        """Actual bump size for the tenor in basis points (always positive)."""
        return abs(self.shift_for(tenor)) / BP

    def __repr__(self) -> str:
        return (f"BumpHandler(key={self.key_tenor.name}, tenors={len(self.tenors)}, "
                f"size={self.spec.size}, flags={self.spec.flags})")


class TenorEquivalenceGroup:
    """
    A set of tenors treated as one bump unit.

    The first tenor is the representative: shift values of the whole
    group are cached under it, so callers supply tenors in a stable order.

    Attributes:
        name: Label of the group (CurveTenor column of the report)
        curves: Curves the tenors naturally belong to
        tenors: Tenors of the group
        hedge_evaluator: Hedge pricer for this group, if any
    """

    def __init__(
        self,
        graph: Optional[DependencyGraph],
        curves: Iterable[Curve],
        tenors: Iterable[CurveTenor],
        hedge_evaluator: Optional["ReEvaluatorBase"] = None,
        name: Optional[str] = None
    ):
        tenors = list(tenors)
        if not tenors:
            raise ConfigurationError("A tenor equivalence group needs at least one tenor")
        self._graph = graph
        self.curves: List[Curve] = list(curves)
        self.tenors: List[CurveTenor] = tenors
        self.hedge_evaluator = hedge_evaluator
        self.name = name if name is not None else tenors[0].name
        self._ids = {id(t) for t in tenors}

    @property
    def key_tenor(self) -> CurveTenor:
        return self.tenors[0]

    @property
    def all_curves(self) -> List[Curve]:
        """Every curve of the run, dependents before their prerequisites."""
        if self._graph is None:
            return list(reversed(self.curves))
        return list(self._graph.reverse_ordered())

    @property
    def affected_curves(self) -> List[Curve]:
        """Curves holding at least one tenor of the group."""
        if self._graph is None:
            return list(self.curves)
        return [c for c in self._graph if any(c.shifts.contains(t) for t in self.tenors)]

    def contains(self, tenor: CurveTenor) -> bool:
        return id(tenor) in self._ids

    def with_graph(self, graph: DependencyGraph) -> "TenorEquivalenceGroup":
        """Same group bound to a different curve graph."""
        return TenorEquivalenceGroup(graph, self.curves, self.tenors,
                                     self.hedge_evaluator, self.name)

    def get_bump_handler(
        self,
        flags: BumpFlags,
        bump_sizes: Sequence[float],
        target: BumpTarget = BumpTarget.NONE
    ) -> BumpHandler:
        """
        Handler bumping every tenor of the group by the first size.

        Args:
            flags: Bump semantics
            bump_sizes: Bump sizes; only the first is used
            target: Quote category being bumped

        Returns:
            BumpHandler for this group
        """
        if bump_sizes is None or len(bump_sizes) == 0:
            raise ConfigurationError(f"No bump size given for group {self.name}")
        spec = BumpSpec(float(bump_sizes[0]), flags, target)
        return BumpHandler(self.key_tenor, self.tenors, spec)

    def __repr__(self) -> str:
        return f"TenorEquivalenceGroup(name={self.name}, tenors={[t.name for t in self.tenors]})"


def make_tenor_filter(
    target: BumpTarget,
    curve_names: Optional[Sequence[str]] = None,
    bump_tenors: Optional[Sequence[str]] = None
) -> TenorFilter:
    """
    Build a filter selecting tenors by curve kind, curve name and tenor name.

    Args:
        target: Quote categories to select
        curve_names: Restrict to these curves (None or empty = all)
        bump_tenors: Restrict to these tenor names (None or empty = all)

    Returns:
        Predicate (curve, tenor) -> bool
    """
    curve_names = set(curve_names or ())
    bump_tenors = set(bump_tenors or ())

    def tenor_filter(curve: Curve, tenor: CurveTenor) -> bool:
        if not (curve.kind.target & target):
            return False
        if curve_names and curve.name not in curve_names:
            return False
        if bump_tenors and tenor.name not in bump_tenors:
            return False
        return True

    return tenor_filter


def _selected(curve: Curve, tenor_filter: Optional[TenorFilter]) -> List[CurveTenor]:
    return [t for t in curve.tenors if tenor_filter is None or tenor_filter(curve, t)]


def uniform_selection(
    graph: DependencyGraph,
    tenor_filter: Optional[TenorFilter] = None,
    name: str = "Uniform"
) -> List[TenorEquivalenceGroup]:
    """One group holding every selected tenor of every curve."""
    curves, tenors, seen = [], [], set()
    for curve in graph:
        selected = [t for t in _selected(curve, tenor_filter) if id(t) not in seen]
        if not selected:
            continue
        curves.append(curve)
        for t in selected:
            seen.add(id(t))
            tenors.append(t)
    if not tenors:
        return []
    return [TenorEquivalenceGroup(graph, curves, tenors, name=name)]


def parallel_selections(
    graph: DependencyGraph,
    tenor_filter: Optional[TenorFilter] = None
) -> List[TenorEquivalenceGroup]:
    """One group per curve holding the curve's selected tenors."""
    groups = []
    for curve in graph:
        tenors = _selected(curve, tenor_filter)
        if tenors:
            groups.append(TenorEquivalenceGroup(graph, [curve], tenors, name=curve.name))
    return groups


def by_category_selections(
    graph: DependencyGraph,
    tenor_filter: Optional[TenorFilter] = None
) -> List[TenorEquivalenceGroup]:
    """One group per curve category (the curve kind when no category is set)."""
    curves: Dict[str, List[Curve]] = {}
    tenors: Dict[str, List[CurveTenor]] = {}
    seen = set()
    for curve in graph:
        category = curve.category or curve.kind.value
        selected = [t for t in _selected(curve, tenor_filter) if id(t) not in seen]
        if not selected:
            continue
        curves.setdefault(category, []).append(curve)
        for t in selected:
            seen.add(id(t))
            tenors.setdefault(category, []).append(t)
    return [
        TenorEquivalenceGroup(graph, curves[c], tenors[c], name=c)
        for c in curves
    ]


def by_tenor_selections(
    graph: DependencyGraph,
    tenor_filter: Optional[TenorFilter] = None,
    get_hedge_evaluator: Optional[Callable[[TenorEquivalenceGroup], Optional["ReEvaluatorBase"]]] = None
) -> List[TenorEquivalenceGroup]:
    """
    One group per distinct tenor.

    Curves are visited from the most dependent to the least, so a tenor
    shared by several curves belongs to the most dependent one. That curve
    also carries the most complete information for building a hedge pricer.
    """
    entries: Dict[int, tuple] = {}
    for curve in graph.reverse_ordered():
        for tenor in curve.tenors:
            if id(tenor) in entries:
                continue
            if tenor_filter is not None and not tenor_filter(curve, tenor):
                continue
            hedge = None
            if get_hedge_evaluator is not None:
                hedge = get_hedge_evaluator(
                    TenorEquivalenceGroup(graph, [curve], [tenor]))
            entries[id(tenor)] = (curve, tenor, hedge)

    return [
        TenorEquivalenceGroup(graph, [curve], [tenor], hedge_evaluator=hedge)
        for curve, tenor, hedge in entries.values()
    ]


def bump_tenors(
    graph: DependencyGraph,
    selection: TenorEquivalenceGroup,
    bump_size: float,
    flags: BumpFlags,
    affected: List[Curve],
    target: BumpTarget = BumpTarget.NONE
) -> float:
    """
    Bump the tenors of a group on every curve that holds them.

    Curves are visited in dependency order. Every bumped curve is appended
    to ``affected`` so the caller can restore it.

    Args:
        graph: Curves of the run
        selection: Group to bump
        bump_size: Size in bump units
        flags: Bump semantics (BUMP_DOWN for the down pass)
        affected: Workspace receiving the bumped curves
        target: Quote category being bumped

    Returns:
        Average actual bump size in bp, 0.0 if nothing was bumped
    """
    handler = selection.get_bump_handler(flags, [bump_size], target)
    total, count = 0.0, 0
    for curve in graph:
        if not handler.has_affected(curve.shifts):
            continue
        size = curve.apply_bump(handler)
        affected.append(curve)
        total += size
        count += 1
    if count == 0:
        logger.debug("Selector %s - no curve affected", selection.name)
        return 0.0
    return total / count


def restore_curves(affected: List[Curve]) -> None:
    """Restore base quotes on bumped curves and empty the workspace."""
    for curve in affected:
        curve.restore()
    affected.clear()


__all__ = [
    "BumpSpec",
    "BumpHandler",
    "TenorEquivalenceGroup",
    "TenorFilter",
    "make_tenor_filter",
    "uniform_selection",
    "parallel_selections",
    "by_category_selections",
    "by_tenor_selections",
    "bump_tenors",
    "restore_curves",
]
