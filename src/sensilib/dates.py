"""
Tenor parsing utilities.

Curve tenors are named points such as "6M", "5Y" or "10D". Only an
approximate year fraction is needed: it places tenors on the curve's
time axis for interpolation.
"""

import re
from typing import NamedTuple, Optional

# number + unit (D/W/M/Y)
_TENOR_PATTERN = re.compile(r'^(\d+)([DWMY])$', re.IGNORECASE)

_YEARS_PER_UNIT = {
    "D": 1 / 365.0,
    "W": 7 / 365.0,
    "M": 1 / 12.0,
    "Y": 1.0,
}


class Tenor(NamedTuple):
    """A parsed tenor: amount of days, weeks, months or years."""
    amount: int
    unit: str

    @classmethod
    def parse(cls, name: str) -> "Tenor":
        """
        Parse a tenor name.

        Args:
            name: Tenor string like "1D", "3M", "2Y"

        Raises:
            ValueError: If the name is not a tenor
        """
        match = _TENOR_PATTERN.match(name.strip())
        if match is None:
            raise ValueError(f"Invalid tenor format: {name}. Expected format like '3M', '2Y'")
        return cls(int(match.group(1)), match.group(2).upper())

    @property
    def years(self) -> float:
        """Approximate year fraction."""
        return self.amount * _YEARS_PER_UNIT[self.unit]

    def __str__(self) -> str:
        return f"{self.amount}{self.unit}"


def is_tenor(name: str) -> bool:
    """Whether the name parses as a tenor."""
    return _TENOR_PATTERN.match(name.strip()) is not None


def tenor_to_years(name: str, default: Optional[float] = None) -> float:
    """
    Year fraction of a tenor name, or ``default`` for non-tenor names
    such as product identifiers.
    """
    if is_tenor(name):
        return Tenor.parse(name).years
    if default is None:
        raise ValueError(f"Cannot infer maturity from tenor name: {name}")
    return default


__all__ = ["Tenor", "is_tenor", "tenor_to_years"]
