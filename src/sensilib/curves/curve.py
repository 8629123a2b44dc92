"""
Market curve representation for sensitivity runs.

The Curve class provides:
- An ordered list of quoted tenors
- A mutable name used as a unique key in reports and collections
- Prerequisite curves forming the dependency graph
- A bump overlay: shifted ordinates applied on top of the quotes

Curves are built and owned outside the engine. The engine only
switches a curve between its base quotes and a bumped overlay,
and always restores the base state afterwards.

Conventions:
    - value(t) is the curve's own interpolated ordinate plus the values
      of its prerequisites at t (spread-over-prerequisite model)
    - Tenor membership is by identity: a tenor object shared by two
      curves is bumped on both
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional

import numpy as np

from ..conventions import CurveKind
from ..dates import tenor_to_years
from .interpolation import Interpolator, create_interpolator
from .shifts import CurveShifts

if TYPE_CHECKING:
    from ..risk.bumping import BumpHandler


@dataclass(eq=False)
class CurveTenor:
    """
    A quoted point on a curve.

    Attributes:
        name: Tenor name (e.g. "5Y") or product identifier
        quote: Market quote in quote units
        years: Year fraction of the tenor (derived from the name when omitted)
        product: Optional description of the calibration product
    """
    name: str
    quote: float
    years: Optional[float] = None
    product: Any = field(default=None, repr=False)

    def __post_init__(self):
        if self.years is None:
            self.years = tenor_to_years(self.name)


class Curve:
    """
    Quoted market curve.

    Attributes:
        name: Curve name (mutable, used as unique key)
        kind: Quote category of the curve
        category: Reporting category (e.g. sector of a credit curve)
        tenors: Ordered list of CurveTenor
        prerequisites: Curves this curve is built on
        hedge_pricer: Optional factory (curve, tenor) -> pricer for hedging
        shifts: Cached shifted ordinates per bump
    """

    def __init__(
        self,
        name: str,
        tenors: Iterable[CurveTenor],
        kind: CurveKind = CurveKind.DISCOUNT,
        category: str = "",
        prerequisites: Iterable["Curve"] = (),
        hedge_pricer: Optional[Callable[["Curve", CurveTenor], Any]] = None,
        interpolation_method: str = "linear"
    ):
        self.name = name
        self.kind = kind
        self.category = category
        self.tenors: List[CurveTenor] = list(tenors)
        self.prerequisites: List[Curve] = list(prerequisites)
        self.hedge_pricer = hedge_pricer
        self.interpolation_method = interpolation_method
        self.shifts = CurveShifts(self.tenors)

        self._overlay: Optional[np.ndarray] = None
        self._interpolator: Optional[Interpolator] = None

    @property
    def quotes(self) -> np.ndarray:
        """Base quotes in tenor order."""
        return np.array([t.quote for t in self.tenors], dtype=float)

    @property
    def ordinates(self) -> np.ndarray:
        """Current ordinates: the bump overlay if any, else the quotes."""
        if self._overlay is not None:
            return self._overlay.copy()
        return self.quotes

    @property
    def is_bumped(self) -> bool:
        return self._overlay is not None

    def add_tenor(self, tenor: CurveTenor) -> None:
        """Append a tenor. Invalidates cached shifts and any overlay."""
        self.tenors.append(tenor)
        self.shifts = CurveShifts(self.tenors)
        self._overlay = None
        self._interpolator = None

    def get_tenor(self, name: str) -> Optional[CurveTenor]:
        """First tenor with the given name, or None."""
        for tenor in self.tenors:
            if tenor.name == name:
                return tenor
        return None

    def tenor_index(self, tenor: CurveTenor) -> int:
        """Position of a tenor object on this curve."""
        for i, t in enumerate(self.tenors):
            if t is tenor:
                return i
        raise ValueError(f"Tenor {tenor.name} not on curve {self.name}")

    def build(self) -> None:
        """Fit the interpolator to the current ordinates."""
        if not self.tenors:
            raise RuntimeError(f"Curve {self.name} has no tenors")
        interpolator = create_interpolator(self.interpolation_method)
        interpolator.fit(np.array([t.years for t in self.tenors]), self.ordinates)
        self._interpolator = interpolator

    def value(self, t: float) -> float:
        """
        Curve value at year fraction t.

        Args:
            t: Year fraction

        Returns:
            Own interpolated ordinate plus prerequisite values
        """
        if self._interpolator is None:
            self.build()
        total = self._interpolator.interpolate(t)
        for curve in self.prerequisites:
            total += curve.value(t)
        return total

    def apply_bump(self, handler: "BumpHandler") -> float:
        """
        Overlay the bump described by ``handler``.

        Shifted ordinates are taken from the shift cache when present,
        otherwise computed from the quotes and stored.

        Returns:
            Average actual bump size over the bumped tenors, in bump units
        """
        indices = [i for i, t in enumerate(self.tenors) if handler.contains(t)]
        if not indices:
            return 0.0

        values = handler.get_shift_values(self.shifts)
        if values is None or len(values) != len(self.tenors):
            values = self.quotes
            for i in indices:
                values[i] += handler.shift_for(self.tenors[i])
            handler.set_shift_values(self.shifts, values)

        self._overlay = np.asarray(values, dtype=float)
        self._interpolator = None
        return float(np.mean([handler.bump_size_for(self.tenors[i]) for i in indices]))

    def restore(self) -> None:
        """Drop the bump overlay and return to the base quotes."""
        if self._overlay is not None:
            self._overlay = None
            self._interpolator = None

    def clone(self) -> "Curve":
        """
        Copy for use by a separate task.

        Tenor objects and prerequisites are shared; the overlay and the
        shift cache are private to the copy.
        """
        new_curve = Curve(
            name=self.name,
            tenors=self.tenors,
            kind=self.kind,
            category=self.category,
            prerequisites=self.prerequisites,
            hedge_pricer=self.hedge_pricer,
            interpolation_method=self.interpolation_method,
        )
        new_curve.shifts = self.shifts.copy()
        if self._overlay is not None:
            new_curve._overlay = self._overlay.copy()
        return new_curve

    def __repr__(self) -> str:
        return (f"Curve(name={self.name}, kind={self.kind.value}, "
                f"tenors={len(self.tenors)}, bumped={self.is_bumped})")


def create_flat_curve(
    name: str,
    quote: float,
    tenor_names: Iterable[str] = ("1Y", "3Y", "5Y", "7Y", "10Y"),
    kind: CurveKind = CurveKind.DISCOUNT,
    **kwargs
) -> Curve:
    """
    Create a curve quoted flat at every tenor.

    Args:
        name: Curve name
        quote: Quote applied to every tenor
        tenor_names: Tenors to create
        kind: Quote category
        **kwargs: Passed to Curve

    Returns:
        Flat curve
    """
    tenors = [CurveTenor(t, quote) for t in tenor_names]
    return Curve(name, tenors, kind=kind, **kwargs)


__all__ = [
    "Curve",
    "CurveTenor",
    "create_flat_curve",
]
