"""
Pricer re-evaluation for bump-and-reprice runs.

Provides:
- PricerEvaluator: adapts a pricer and a measure to the evaluator interface
- ReEvaluator: caches the base value of one evaluator, knows which curves
  it depends on, re-evaluates on demand and restores the pricer on close
- AggregateEvaluator: arithmetic mean of several evaluators (hedge baskets)
- ReEvaluatorList: evaluators released together on every exit path

Pricers are opaque. The evaluator interface needs only a name, the curves
the pricer references, reset(action) and evaluate(). A pricer may also
expose a basket with a ``rescale_strikes`` switch.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import ExitStack
from typing import (
    Any, Callable, FrozenSet, Iterable, List, NamedTuple, Optional, Protocol,
    Union, runtime_checkable,
)

from ..conventions import ResetAction
from ..curves.curve import Curve

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class BasketCapability(Protocol):
    """Optional pricer capability: strikes rescaled on correlation changes."""
    rescale_strikes: bool


@runtime_checkable
class Evaluator(Protocol):
    """Pricer evaluation capability consumed by the engine."""

    @property
    def name(self) -> str: ...

    @property
    def curves(self) -> List[Curve]: ...

    def reset(self, action: ResetAction = ResetAction.NONE) -> "Evaluator": ...

    def evaluate(self) -> float: ...


Measure = Union[str, Callable[[Any], float]]


class PricerEvaluator:
    """
    Evaluates one measure of one pricer.

    Attributes:
        pricer: The wrapped pricer
        measure: Method name on the pricer, or a callable (pricer) -> float
    """

    def __init__(self, pricer: Any, measure: Measure = "pv", name: Optional[str] = None):
        self.pricer = pricer
        self.measure = measure
        self._name = name

    @property
    def name(self) -> str:
        if self._name:
            return self._name
        return getattr(self.pricer, "description", None) or type(self.pricer).__name__

    @property
    def curves(self) -> List[Curve]:
        return [c for c in getattr(self.pricer, "curves", ()) if c is not None]

    @property
    def notional(self) -> float:
        return float(getattr(self.pricer, "notional", 1.0))

    @property
    def basket(self) -> Optional[BasketCapability]:
        basket = getattr(self.pricer, "basket", None)
        return basket if isinstance(basket, BasketCapability) else None

    def reset(self, action: ResetAction = ResetAction.NONE) -> "PricerEvaluator":
        reset = getattr(self.pricer, "reset", None)
        if callable(reset):
            reset(action)
        return self

    def evaluate(self) -> float:
        if callable(self.measure):
            return float(self.measure(self.pricer))
        return float(getattr(self.pricer, self.measure)())

    def __repr__(self) -> str:
        return f"PricerEvaluator(name={self.name}, measure={self.measure})"


def _basket_of(evaluator: Any) -> Optional[BasketCapability]:
    basket = getattr(evaluator, "basket", None)
    return basket if isinstance(basket, BasketCapability) else None


def prerequisite_closure(curves: Iterable[Curve]) -> FrozenSet[Curve]:
    """The curves and every curve they transitively depend on."""
    closure = set()
    stack = [c for c in curves if c is not None]
    while stack:
        curve = stack.pop()
        if curve in closure:
            continue
        closure.add(curve)
        stack.extend(p for p in curve.prerequisites if p is not None)
    return frozenset(closure)


class BaseValuation(NamedTuple):
    """An evaluator together with its value before any bump."""
    evaluator: Any
    value: float


class ReEvaluatorBase(ABC):
    """Common interface of single and aggregate re-evaluators."""

    name: str

    @property
    @abstractmethod
    def base_value(self) -> float:
        """Value before any bump."""

    @abstractmethod
    def re_evaluate(self) -> float:
        """Value under the current (bumped) market."""

    @abstractmethod
    def depends_on(self, selection) -> bool:
        """Whether bumping the selection can change the value."""

    @abstractmethod
    def close(self) -> None:
        """Release the evaluator, restoring any pricer state it changed."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class ReEvaluator(ReEvaluatorBase):
    """
    Re-evaluates one pricer measure against bumped curves.

    Construction performs exactly one reset+evaluate pass to cache the
    base value, then freezes the closure of prerequisite curves used to
    skip selections the pricer cannot see.

    Must be closed exactly once, normally through ``with`` or a
    ReEvaluatorList; close() never raises.
    """

    def __init__(self, evaluator: Evaluator, logger: Optional[logging.Logger] = None):
        self._logger = logger or LOGGER
        self._recovery_changed = False
        self._correlation_changed = False
        self._closed = False

        self._basket = _basket_of(evaluator)
        self._saved_rescale_strikes = (
            self._basket.rescale_strikes if self._basket is not None else None)

        value = evaluator.reset(ResetAction.NONE).evaluate()
        self._base = BaseValuation(evaluator, value)
        self._prerequisites = prerequisite_closure(evaluator.curves)

    @property
    def name(self) -> str:
        return self._base.evaluator.name

    @property
    def evaluator(self) -> Evaluator:
        return self._base.evaluator

    @property
    def base_value(self) -> float:
        return self._base.value

    @property
    def prerequisite_curves(self) -> FrozenSet[Curve]:
        return self._prerequisites

    @property
    def recovery_changed(self) -> bool:
        return self._recovery_changed

    @property
    def correlation_changed(self) -> bool:
        return self._correlation_changed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def reset_action(self) -> ResetAction:
        action = ResetAction.NONE
        if self._recovery_changed:
            action |= ResetAction.RECOVERY_CHANGED
        if self._correlation_changed:
            action |= ResetAction.CORRELATION_CHANGED
        return action

    def mark_recovery_changed(self) -> None:
        """Recovery inputs will move; the pricer refreshes them on reset."""
        self._recovery_changed = True

    def set_rescale_strike(self, value: bool) -> None:
        """Switch strike rescaling on the pricer's basket, if it has one."""
        basket = self._basket
        if basket is None or basket.rescale_strikes == value:
            return
        basket.rescale_strikes = value
        self._correlation_changed = True

    def re_evaluate(self) -> float:
        return self.evaluator.reset(self.reset_action).evaluate()

    def depends_on(self, selection) -> bool:
        curves = getattr(selection, "affected_curves", None)
        if curves is None:
            curves = getattr(selection, "curves", None)
        if not curves:
            return False
        return any(c in self._prerequisites for c in curves)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            basket = self._basket
            if basket is not None and basket.rescale_strikes != self._saved_rescale_strikes:
                basket.rescale_strikes = self._saved_rescale_strikes
                self._correlation_changed = True
            self.evaluator.reset(self.reset_action)
        except Exception:
            self._logger.exception("Failed to restore state of pricer %s", self.name)

    def __repr__(self) -> str:
        return f"ReEvaluator(name={self.name}, base_value={self.base_value})"


class AggregateEvaluator(ReEvaluatorBase):
    """
    Arithmetic mean of several evaluators.

    Used when a hedge tenor exists on several curves of a selection:
    the hedge value is the average over the matching hedge pricers.
    """

    def __init__(self, evaluators: Iterable[Any], name: str,
                 logger: Optional[logging.Logger] = None):
        self.name = name
        self.members: List[ReEvaluator] = [
            e if isinstance(e, ReEvaluator) else ReEvaluator(e, logger=logger)
            for e in evaluators if e is not None
        ]

    @property
    def base_value(self) -> float:
        if not self.members:
            return 0.0
        return sum(m.base_value for m in self.members) / len(self.members)

    def re_evaluate(self) -> float:
        if not self.members:
            return 0.0
        return sum(m.re_evaluate() for m in self.members) / len(self.members)

    def depends_on(self, selection) -> bool:
        return any(m.depends_on(selection) for m in self.members)

    @property
    def prerequisite_curves(self) -> FrozenSet[Curve]:
        curves = set()
        for m in self.members:
            curves |= m.prerequisite_curves
        return frozenset(curves)

    @property
    def evaluators(self) -> List[Evaluator]:
        return [m.evaluator for m in self.members]

    def close(self) -> None:
        for m in self.members:
            m.close()

    def __repr__(self) -> str:
        return f"AggregateEvaluator(name={self.name}, members={len(self.members)})"


class ReEvaluatorList(list):
    """List of re-evaluators closed together when the block exits."""

    def __enter__(self) -> "ReEvaluatorList":
        return self

    def __exit__(self, exc_type, exc, tb):
        with ExitStack() as stack:
            for evaluator in self:
                stack.callback(evaluator.close)
        return False


def to_evaluator(pricers: Iterable[Any], name: str, measure: Measure = "pv",
                 logger: Optional[logging.Logger] = None) -> Optional[ReEvaluatorBase]:
    """
    Wrap hedge pricers: None for none, a ReEvaluator for one,
    an AggregateEvaluator averaging several. Release failures are
    reported to ``logger``.
    """
    evaluators = [
        p if isinstance(p, Evaluator) else PricerEvaluator(p, measure, name=name)
        for p in pricers if p is not None
    ]
    if not evaluators:
        return None
    if len(evaluators) == 1:
        return ReEvaluator(evaluators[0], logger=logger)
    return AggregateEvaluator(evaluators, name, logger=logger)


__all__ = [
    "BasketCapability",
    "Evaluator",
    "PricerEvaluator",
    "BaseValuation",
    "prerequisite_closure",
    "ReEvaluatorBase",
    "ReEvaluator",
    "AggregateEvaluator",
    "ReEvaluatorList",
    "to_evaluator",
]
