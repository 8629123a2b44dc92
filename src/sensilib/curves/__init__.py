"""
Curves package - quoted curves and their dependency structure.

Provides:
- Curve / CurveTenor: quoted curves with a bump overlay
- CurveShifts: per-curve cache of shifted ordinates
- DependencyGraph: prerequisite-first ordering of curves
"""

from .curve import Curve, CurveTenor, create_flat_curve
from .shifts import CurveShifts
from .graph import DependencyGraph
from .interpolation import (
    Interpolator,
    LinearInterpolator,
    FlatInterpolator,
    create_interpolator,
)

__all__ = [
    "Curve",
    "CurveTenor",
    "create_flat_curve",
    "CurveShifts",
    "DependencyGraph",
    "Interpolator",
    "LinearInterpolator",
    "FlatInterpolator",
    "create_interpolator",
]
