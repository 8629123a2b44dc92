"""
Shift state attached to a curve.

A bump handler computes the shifted ordinates of a curve once and
stores them here, keyed by the handler's representative tenor, the
set of tenors it bumps and the bump specification. Later passes with
the same bump of the same tenors reuse them.
"""

from typing import TYPE_CHECKING, Dict, FrozenSet, Hashable, Iterable, Optional, Tuple

import numpy as np

if TYPE_CHECKING:
    from .curve import CurveTenor


class CurveShifts:
    """
    Cache of shifted ordinates for one curve.

    Attributes:
        tenors: Tenors the curve holds (identity membership)
    """

    def __init__(self, tenors: Iterable["CurveTenor"]):
        self._tenor_ids = {id(t) for t in tenors}
        self._values: Dict[Tuple[int, FrozenSet[int], Hashable], np.ndarray] = {}

    def contains(self, tenor: "CurveTenor") -> bool:
        """Whether the curve holds this tenor object."""
        return id(tenor) in self._tenor_ids

    @staticmethod
    def _key(tenor: "CurveTenor", spec: Hashable,
             group: Iterable["CurveTenor"]) -> Tuple[int, FrozenSet[int], Hashable]:
        ids = frozenset(id(t) for t in group) or frozenset([id(tenor)])
        return id(tenor), ids, spec

    def get(self, tenor: "CurveTenor", spec: Hashable,
            group: Iterable["CurveTenor"] = ()) -> Optional[np.ndarray]:
        """
        Cached ordinates or None.

        Args:
            tenor: Representative tenor of the bump
            spec: Bump specification
            group: Every tenor the bump moves (just ``tenor`` when empty)
        """
        values = self._values.get(self._key(tenor, spec, group))
        return None if values is None else values.copy()

    def set(self, tenor: "CurveTenor", spec: Hashable, values: np.ndarray,
            group: Iterable["CurveTenor"] = ()) -> None:
        """Store shifted ordinates under the same key as get()."""
        self._values[self._key(tenor, spec, group)] = np.array(values, dtype=float)

    def clear(self) -> None:
        """Drop every cached shift."""
        self._values.clear()

    def copy(self) -> "CurveShifts":
        """Independent copy with the same membership and cache."""
        other = CurveShifts(())
        other._tenor_ids = set(self._tenor_ids)
        other._values = {k: v.copy() for k, v in self._values.items()}
        return other

    def __len__(self) -> int:
        return len(self._values)


__all__ = ["CurveShifts"]
