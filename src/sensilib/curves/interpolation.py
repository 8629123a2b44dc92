"""
Interpolation of curve ordinates between tenor points.

Provides:
- LinearInterpolator: linear between tenors, flat beyond the ends
- FlatInterpolator: piecewise-constant, each tenor holds until the next

Interpolators are refitted whenever a curve switches between its base
and bumped ordinates, so fitting only sorts the knots.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Sequence, Union

import numpy as np

ArrayLike = Union[float, Sequence[float], np.ndarray]


class Interpolator(ABC):
    """Ordinates on a sorted grid of year fractions."""

    def __init__(self):
        self._knots: Optional[np.ndarray] = None
        self._ordinates: Optional[np.ndarray] = None

    @property
    def is_fitted(self) -> bool:
        return self._knots is not None

    def fit(self, times: ArrayLike, values: ArrayLike) -> "Interpolator":
        """
        Set the tenor points; they need not be sorted.

        Args:
            times: Year fractions of the tenors
            values: Ordinates at those tenors

        Returns:
            self
        """
        knots = np.atleast_1d(np.asarray(times, dtype=float))
        ordinates = np.atleast_1d(np.asarray(values, dtype=float))
        if knots.shape != ordinates.shape or knots.size == 0:
            raise ValueError(
                f"Cannot fit {knots.size} times against {ordinates.size} values")
        order = np.argsort(knots, kind="stable")
        self._knots = knots[order]
        self._ordinates = ordinates[order]
        return self

    @abstractmethod
    def _evaluate(self, t: np.ndarray) -> np.ndarray:
        ...

    def interpolate(self, t: ArrayLike) -> Union[float, np.ndarray]:
        """Interpolated ordinate at year fraction(s) t."""
        if not self.is_fitted:
            raise RuntimeError(f"{type(self).__name__} used before fit()")
        points = np.asarray(t, dtype=float)
        result = self._evaluate(np.atleast_1d(points))
        return float(result[0]) if points.ndim == 0 else result

    def __call__(self, t: ArrayLike) -> Union[float, np.ndarray]:
        return self.interpolate(t)


class LinearInterpolator(Interpolator):
    """Linear interpolation with flat extrapolation."""

    def _evaluate(self, t: np.ndarray) -> np.ndarray:
        return np.interp(t, self._knots, self._ordinates)


class FlatInterpolator(Interpolator):
    """Right-continuous steps; times before the first knot take its value."""

    def _evaluate(self, t: np.ndarray) -> np.ndarray:
        pos = np.searchsorted(self._knots, t, side="right") - 1
        return self._ordinates[np.clip(pos, 0, None)]


_METHODS: Dict[str, Callable[[], Interpolator]] = {
    "linear": LinearInterpolator,
    "lin": LinearInterpolator,
    "flat": FlatInterpolator,
    "step": FlatInterpolator,
    "piecewise_flat": FlatInterpolator,
}


def create_interpolator(method: str) -> Interpolator:
    """Interpolator for a method name such as "linear" or "flat"."""
    key = method.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return _METHODS[key]()
    except KeyError:
        raise ValueError(
            f"Unknown interpolation method '{method}', expected one of {sorted(_METHODS)}"
        ) from None


__all__ = [
    "Interpolator",
    "LinearInterpolator",
    "FlatInterpolator",
    "create_interpolator",
]
