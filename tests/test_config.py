"""
Unit tests for configuration, conventions, errors and tenor parsing.
"""

import logging

import pytest

from sensilib.config import DEFAULT_LOG_FORMAT, SensitivityConfig, configure_logging
from sensilib.conventions import (
    ALL_CURVE_QUOTES,
    BumpFlags,
    BumpTarget,
    BumpType,
    CurveKind,
)
from sensilib.dates import Tenor, is_tenor, tenor_to_years
from sensilib.errors import (
    ConfigurationError,
    CurveNotFoundError,
    CyclicDependencyError,
    PricerNotFoundError,
    SensitivityError,
    StateMismatchError,
)


class TestSensitivityConfig:
    """Tests for SensitivityConfig."""

    def test_defaults(self):
        """Default engine settings."""
        config = SensitivityConfig()
        assert config.up_bump == 4.0
        assert config.down_bump == 4.0
        assert config.bump_type == BumpType.PARALLEL
        assert config.flags == BumpFlags.NONE
        assert config.scaled_delta
        assert config.cache

    def test_string_enums(self):
        """Enum fields accept names."""
        config = SensitivityConfig(bump_type="by_tenor", flags="BUMP_RELATIVE|REFIT_RECOVERY")
        assert config.bump_type == BumpType.BY_TENOR
        assert config.flags == BumpFlags.BUMP_RELATIVE | BumpFlags.REFIT_RECOVERY

    @pytest.mark.parametrize("kwargs", [
        {"up_bump": -1.0},
        {"down_bump": -0.5},
        {"max_workers": 0},
        {"log_level": "LOUD"},
    ])
    def test_invalid(self, kwargs):
        """Invalid values fail at construction."""
        with pytest.raises(ConfigurationError):
            SensitivityConfig(**kwargs)

    def test_from_dict(self):
        """Build from plain values, ignoring unknown keys."""
        config = SensitivityConfig.from_dict({
            "up_bump": 1.0,
            "bump_type": "Uniform",
            "flags": "BUMP_DOWN",
            "comment": "ignored",
        })
        assert config.up_bump == 1.0
        assert config.bump_type == BumpType.UNIFORM
        assert config.flags == BumpFlags.BUMP_DOWN

    def test_configure_logging(self, monkeypatch):
        """Root logger is configured from the config level."""
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

        configure_logging(SensitivityConfig(log_level="debug"))

        assert calls["level"] == "DEBUG"
        assert calls["format"] == DEFAULT_LOG_FORMAT
        assert calls["force"]


class TestConventions:
    """Tests for bump conventions."""

    def test_bump_type_parsing(self):
        """Bump types parse from names and values."""
        assert BumpType.from_string("ByTenor") == BumpType.BY_TENOR
        assert BumpType.from_string("BY_CATEGORY") == BumpType.BY_CATEGORY
        assert BumpType.from_string(BumpType.UNIFORM) == BumpType.UNIFORM
        with pytest.raises(ValueError):
            BumpType.from_string("Diagonal")

    def test_flags_parsing(self):
        """Flags combine from separated names."""
        assert BumpFlags.from_string("") == BumpFlags.NONE
        assert BumpFlags.from_string("bump_down, bump_relative") == (
            BumpFlags.BUMP_DOWN | BumpFlags.BUMP_RELATIVE)

    def test_curve_kind_targets(self):
        """Every curve kind maps to a curve-quote target."""
        assert CurveKind.SURVIVAL.target == BumpTarget.CREDIT_QUOTES
        assert CurveKind.DISCOUNT.target == BumpTarget.INTEREST_RATES
        for kind in CurveKind:
            assert kind.target & ALL_CURVE_QUOTES
        assert not BumpTarget.VOLATILITIES & ALL_CURVE_QUOTES


class TestErrors:
    """Tests for the error hierarchy."""

    def test_hierarchy(self):
        """Errors derive from the matching built-in kinds."""
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(CyclicDependencyError, ConfigurationError)
        assert issubclass(PricerNotFoundError, LookupError)
        assert issubclass(CurveNotFoundError, LookupError)
        assert issubclass(StateMismatchError, RuntimeError)
        for error in (ConfigurationError, PricerNotFoundError, StateMismatchError):
            assert issubclass(error, SensitivityError)

    def test_lookup_message(self):
        """Lookup errors carry the missing name."""
        error = CurveNotFoundError("ACME")
        assert error.name == "ACME"
        assert str(error) == "Curve 'ACME' not found"


class TestTenors:
    """Tests for tenor parsing."""

    @pytest.mark.parametrize("tenor,years", [
        ("6M", 0.5),
        ("5Y", 5.0),
        ("2W", 14 / 365),
        ("30D", 30 / 365),
    ])
    def test_tenor_to_years(self, tenor, years):
        """Tenor strings convert to year fractions."""
        assert tenor_to_years(tenor) == pytest.approx(years)

    def test_parse(self):
        """Parsed tenors keep amount and unit."""
        tenor = Tenor.parse("10y")
        assert tenor == Tenor(10, "Y")
        assert str(tenor) == "10Y"
        with pytest.raises(ValueError):
            Tenor.parse("5X")

    def test_non_tenor(self):
        """Product names need a default."""
        assert not is_tenor("CDX.NA.IG")
        assert tenor_to_years("CDX.NA.IG", default=5.0) == 5.0
        with pytest.raises(ValueError):
            tenor_to_years("CDX.NA.IG")
