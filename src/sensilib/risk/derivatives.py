"""
Semi-analytic derivatives of a pricing measure with respect to curve quotes.

Provides:
- DerivativesWrtCurve: gradient + packed symmetric Hessian for one curve,
  plus value-on-default and recovery delta
- DerivativeCollection: per-pricer set of DerivativesWrtCurve keyed by curve name
- DerivativeCollectionArray: per-portfolio set of collections keyed by pricer name

The quadratic model estimates the effect of an arbitrary joint tenor bump
p without repricing:

    dV ~ sum_i g[i] p[i] + 1/2 sum_{i,j} H[i,j] p[i] p[j]

The Hessian is stored as its lower triangle, row by row: entry (i, j)
with i >= j sits at index i*(i+1)/2 + j.
"""

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Union

import numpy as np

from ..curves.curve import Curve
from ..errors import (
    ConfigurationError, CurveNotFoundError, PricerNotFoundError, StateMismatchError,
)

logger = logging.getLogger(__name__)


def packed_size(n: int) -> int:
    """Length of a packed lower-triangular matrix of order n."""
    return n * (n + 1) // 2


class DerivativesWrtCurve:
    """
    First and second derivatives with respect to the quotes of one curve.

    The reference curve is shared, not owned: several collections may
    refer to the same curve. Array lengths are checked against the curve's
    tenor count when the model is evaluated, not at construction.

    Attributes:
        reference_curve: Curve whose tenors the derivatives refer to
        gradient: First derivatives, one per tenor
        hessian: Packed lower triangle of second derivatives
        vod: Value on default
        recovery_delta: Sensitivity to the recovery rate
    """

    def __init__(
        self,
        reference_curve: Curve,
        gradient: Optional[Sequence[float]] = None,
        hessian: Optional[Sequence[float]] = None,
        vod: float = 0.0,
        recovery_delta: float = 0.0
    ):
        n = len(reference_curve.tenors)
        self.reference_curve = reference_curve
        self.gradient = (np.zeros(n) if gradient is None
                         else np.asarray(gradient, dtype=float))
        self.hessian = (np.zeros(packed_size(n)) if hessian is None
                        else np.asarray(hessian, dtype=float))
        self.vod = float(vod)
        self.recovery_delta = float(recovery_delta)

    @property
    def curve_name(self) -> str:
        return self.reference_curve.name

    @staticmethod
    def hessian_index(i: int, j: int) -> int:
        """Packed index of (i, j); symmetric in its arguments."""
        if j > i:
            i, j = j, i
        return i * (i + 1) // 2 + j

    def hessian_at(self, i: int, j: int) -> float:
        return float(self.hessian[self.hessian_index(i, j)])

    def check_state(self) -> int:
        """
        Tenor count of the reference curve.

        Raises:
            StateMismatchError: Gradient or Hessian length does not match it
        """
        n = len(self.reference_curve.tenors)
        if len(self.gradient) != n:
            raise StateMismatchError(
                f"Gradient length {len(self.gradient)} does not match "
                f"{n} tenors of curve {self.curve_name}")
        if len(self.hessian) != packed_size(n):
            raise StateMismatchError(
                f"Hessian length {len(self.hessian)} does not match "
                f"{n} tenors of curve {self.curve_name} (expected {packed_size(n)})")
        return n

    @staticmethod
    def _bump_vector(bumps: Sequence[float], n: int) -> np.ndarray:
        # Zero-pad short vectors, truncate long ones
        p = np.zeros(n)
        values = np.asarray(bumps, dtype=float)[:n]
        p[:len(values)] = values
        return p

    def first_order(self, bumps: Sequence[float]) -> float:
        """Gradient term sum_i g[i] p[i]."""
        n = self.check_state()
        p = self._bump_vector(bumps, n)
        return float(np.dot(self.gradient, p))

    def compute_sensitivity(self, bumps: Sequence[float]) -> float:
        """
        Second-order Taylor estimate of the value change for a joint bump.

        Args:
            bumps: Bump per tenor in tenor order; shorter vectors are
                zero-padded, longer ones truncated

        Returns:
            sum_i g[i] p[i] + sum_{i>=j} H[i,j] w[i,j] p[i] p[j]
            with w = 1/2 on the diagonal and 1 off it
        """
        n = self.check_state()
        p = self._bump_vector(bumps, n)
        rows, cols = np.tril_indices(n)
        weights = np.where(rows == cols, 0.5, 1.0)
        quadratic = np.sum(self.hessian * weights * p[rows] * p[cols])
        return float(np.dot(self.gradient, p) + quadratic)

    def second_order_only(self, bumps: Sequence[float]) -> float:
        """
        Pure quadratic term scaled as a gamma.

        Returns sum_i H[i,i] p[i]^2 + 2 sum_{i>j} H[i,j] p[i] p[j], which is
        twice the quadratic part of compute_sensitivity.
        """
        n = self.check_state()
        p = self._bump_vector(bumps, n)
        rows, cols = np.tril_indices(n)
        weights = np.where(rows == cols, 1.0, 2.0)
        return float(np.sum(self.hessian * weights * p[rows] * p[cols]))

    def __repr__(self) -> str:
        return (f"DerivativesWrtCurve(curve={self.curve_name}, "
                f"tenors={len(self.gradient)}, vod={self.vod})")


class DerivativeCollection:
    """
    Derivatives of one pricer with respect to each of its curves.

    Curve names are unique within a collection. A blank curve name is
    replaced by "<collection name>.<running index>"; the running index
    advances on every add, including skipped duplicates.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._entries: List[DerivativesWrtCurve] = []
        self._index: Dict[str, int] = {}
        self._counter = 0

    @property
    def curve_count(self) -> int:
        return len(self._entries)

    @property
    def running_index(self) -> int:
        """Number of add attempts so far."""
        return self._counter

    @property
    def names(self) -> List[str]:
        return [d.curve_name for d in self._entries]

    def add(self, entry: DerivativesWrtCurve) -> bool:
        """
        Register derivatives for a curve.

        Returns:
            True if added, False if a curve with the same name was
            already registered (the entry is discarded)
        """
        index = self._counter
        self._counter += 1

        curve = entry.reference_curve
        if not curve.name or not curve.name.strip():
            curve.name = f"{self.name}.{index}"

        if curve.name in self._index:
            logger.warning("Collection %s: curve %s already registered, entry skipped",
                           self.name, curve.name)
            return False

        self._index[curve.name] = len(self._entries)
        self._entries.append(entry)
        return True

    def get_derivatives(self, key: Union[str, int]) -> DerivativesWrtCurve:
        """Derivatives by curve name or by position."""
        if isinstance(key, str):
            pos = self._index.get(key)
            if pos is None:
                raise CurveNotFoundError(key)
            return self._entries[pos]
        if key < 0 or key >= len(self._entries):
            raise IndexError(f"Curve index {key} out of range [0, {len(self._entries)})")
        return self._entries[key]

    def get_curve(self, i: int) -> Curve:
        return self.get_derivatives(int(i)).reference_curve

    def __contains__(self, name: str) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[DerivativesWrtCurve]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"DerivativeCollection(name={self.name}, curves={self.names})"


class DerivativeCollectionArray:
    """Derivative collections of a portfolio keyed by pricer name."""

    def __init__(self, collections: Sequence[DerivativeCollection] = ()):
        self._collections: List[DerivativeCollection] = []
        self._index: Dict[str, int] = {}
        for c in collections:
            self.add(c)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self._collections]

    def add(self, collection: DerivativeCollection) -> None:
        if collection.name in self._index:
            raise ConfigurationError(
                f"Duplicate derivative collection for pricer '{collection.name}'")
        self._index[collection.name] = len(self._collections)
        self._collections.append(collection)

    def get(self, pricer_name: str) -> DerivativeCollection:
        pos = self._index.get(pricer_name)
        if pos is None:
            raise PricerNotFoundError(pricer_name)
        return self._collections[pos]

    def scenario_sensitivity(
        self,
        pricer_name: str,
        curve_name: str,
        bumps: Sequence[float]
    ) -> float:
        """
        Semi-analytic value change of one pricer for a bump of one curve.

        Raises:
            PricerNotFoundError: Unknown pricer name
            CurveNotFoundError: Pricer has no derivatives for the curve
        """
        collection = self.get(pricer_name)
        return collection.get_derivatives(curve_name).compute_sensitivity(bumps)

    def __getitem__(self, i: int) -> DerivativeCollection:
        return self._collections[i]

    def __contains__(self, name: str) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[DerivativeCollection]:
        return iter(self._collections)

    def __len__(self) -> int:
        return len(self._collections)


__all__ = [
    "packed_size",
    "DerivativesWrtCurve",
    "DerivativeCollection",
    "DerivativeCollectionArray",
]
