"""
Bump conventions for curve-quote sensitivities.

Defines:
- BumpType: how tenors are grouped into bump units (Parallel, ByTenor, ...)
- BumpFlags: bump semantics (relative/absolute, up/down, refit options)
- BumpTarget: which market-quote category is perturbed
- CurveKind: the quote category a curve carries
- ResetAction: what a pricer must refresh before re-evaluation

Bump sizes are in bump units: basis points for absolute bumps,
fractions of the quote for relative bumps.
"""

from enum import Enum, Flag, auto
from typing import Union


# One basis point in quote units
BP = 1.0e-4


class BumpType(Enum):
    """Grouping of tenors into bump units."""
    UNIFORM = "Uniform"        # all selected tenors bumped together
    PARALLEL = "Parallel"      # one group per curve
    BY_TENOR = "ByTenor"       # one group per tenor
    BY_CATEGORY = "ByCategory" # one group per curve category

    @classmethod
    def from_string(cls, s: Union[str, "BumpType"]) -> "BumpType":
        """Parse bump type from its name or value."""
        if isinstance(s, cls):
            return s
        key = s.upper().replace(" ", "").replace("_", "")
        for member in cls:
            if key in (member.name.replace("_", ""), member.value.upper()):
                return member
        raise ValueError(f"Unknown bump type: {s}")


class BumpFlags(Flag):
    """Flags controlling how quotes are bumped."""
    NONE = 0
    BUMP_RELATIVE = auto()
    BUMP_DOWN = auto()
    BUMP_IN_PLACE = auto()
    REMAP_CORRELATIONS = auto()
    REFIT_RECOVERY = auto()
    NO_HEDGE_ON_TENOR_MISMATCH = auto()

    @classmethod
    def from_string(cls, s: Union[str, "BumpFlags"]) -> "BumpFlags":
        """Parse flags from names separated by '|' or ','."""
        if isinstance(s, cls):
            return s
        flags = cls.NONE
        for part in s.replace(",", "|").split("|"):
            part = part.strip().upper()
            if part:
                flags |= cls[part]
        return flags


class BumpTarget(Flag):
    """Market-quote categories that can be bumped."""
    NONE = 0
    INTEREST_RATES = auto()
    INTEREST_RATE_BASIS = auto()
    FX_RATES = auto()
    CREDIT_QUOTES = auto()
    INFLATION_RATES = auto()
    COMMODITY_PRICE = auto()
    STOCK_PRICE = auto()
    VOLATILITIES = auto()


ALL_CURVE_QUOTES = (
    BumpTarget.INTEREST_RATES | BumpTarget.INTEREST_RATE_BASIS
    | BumpTarget.FX_RATES | BumpTarget.CREDIT_QUOTES
    | BumpTarget.INFLATION_RATES | BumpTarget.COMMODITY_PRICE
    | BumpTarget.STOCK_PRICE
)


class CurveKind(Enum):
    """Quote category carried by a curve."""
    DISCOUNT = "Discount"
    BASIS = "Basis"
    FX = "Fx"
    SURVIVAL = "Survival"
    INFLATION = "Inflation"
    COMMODITY = "Commodity"
    STOCK = "Stock"

    @property
    def target(self) -> BumpTarget:
        """Bump target that selects curves of this kind."""
        return _KIND_TARGETS[self]


_KIND_TARGETS = {
    CurveKind.DISCOUNT: BumpTarget.INTEREST_RATES,
    CurveKind.BASIS: BumpTarget.INTEREST_RATE_BASIS,
    CurveKind.FX: BumpTarget.FX_RATES,
    CurveKind.SURVIVAL: BumpTarget.CREDIT_QUOTES,
    CurveKind.INFLATION: BumpTarget.INFLATION_RATES,
    CurveKind.COMMODITY: BumpTarget.COMMODITY_PRICE,
    CurveKind.STOCK: BumpTarget.STOCK_PRICE,
}


class ResetAction(Flag):
    """State a pricer must refresh before it is evaluated again."""
    NONE = 0
    RECOVERY_CHANGED = auto()
    CORRELATION_CHANGED = auto()


__all__ = [
    "BP",
    "BumpType",
    "BumpFlags",
    "BumpTarget",
    "ALL_CURVE_QUOTES",
    "CurveKind",
    "ResetAction",
]
