"""
Exceptions raised by the sensitivity engine.

Configuration problems fail fast at construction; lookups carry
the missing key; state mismatches flag derivative arrays that no
longer match their reference curve.
"""


class SensitivityError(Exception):
    """Base class for all sensitivity engine errors."""


class ConfigurationError(SensitivityError, ValueError):
    """Invalid construction input (empty tenor set, empty bump sizes, duplicates)."""


class CyclicDependencyError(ConfigurationError):
    """The curve dependency graph contains a cycle."""


class _NamedLookupError(SensitivityError, LookupError):
    """Lookup failure carrying the requested name."""

    kind = "Item"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{self.kind} '{name}' not found")


class PricerNotFoundError(_NamedLookupError):
    """No derivative collection registered for the pricer name."""

    kind = "Pricer"


class CurveNotFoundError(_NamedLookupError):
    """No derivatives registered for the curve name."""

    kind = "Curve"


class StateMismatchError(SensitivityError, RuntimeError):
    """Derivative arrays are inconsistent with the reference curve."""


__all__ = [
    "SensitivityError",
    "ConfigurationError",
    "CyclicDependencyError",
    "PricerNotFoundError",
    "CurveNotFoundError",
    "StateMismatchError",
]
