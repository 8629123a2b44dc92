"""
Unit tests for semi-analytic sensitivities.
"""

import logging

import numpy as np
import pytest

from sensilib.conventions import BumpType, CurveKind
from sensilib.curves import create_flat_curve
from sensilib.errors import ConfigurationError, StateMismatchError
from sensilib.risk.semi_analytic import (
    AnalyticDerivativesProvider,
    bump_vector,
    semi_analytic_recovery,
    semi_analytic_sensitivities,
    semi_analytic_spread_sensitivities,
    semi_analytic_vod,
)

from stubs import AnalyticPricer, CurvePricer

GRADIENT = [1.0, 2.0]
HESSIAN = [0.1, 0.05, 0.2]


def unit_hedge(curve, tenor):
    """Hedge whose only sensitivity is to its own tenor."""
    index = curve.tenor_index(tenor)
    gradient = [0.5 if i == index else 0.0 for i in range(len(curve.tenors))]
    return AnalyticPricer(f"CDS.{tenor.name}", curve, gradient, [0.0, 0.0, 0.0], vod=-0.8)


@pytest.fixture
def curve():
    """Two-tenor credit curve with analytic hedges."""
    return create_flat_curve("ACME", 0.01, tenor_names=("3Y", "5Y"),
                             kind=CurveKind.SURVIVAL, category="Industrials",
                             hedge_pricer=unit_hedge)


@pytest.fixture
def pricer(curve):
    """Analytic pricer with notional 100."""
    return AnalyticPricer("CDS", curve, GRADIENT, HESSIAN, notional=100.0,
                          vod=-0.4, recovery_delta=0.05)


class TestCollection:
    """Tests for collecting derivatives."""

    def test_provider_protocol(self, pricer, curve):
        """Analytic pricers are recognised structurally."""
        assert isinstance(pricer, AnalyticDerivativesProvider)
        assert not isinstance(CurvePricer("X", [curve]), AnalyticDerivativesProvider)

    def test_unsupported_pricer(self, pricer, curve, caplog):
        """Pricers without support get an empty collection and an error log."""
        plain = CurvePricer("PLAIN", [curve])
        with caplog.at_level(logging.ERROR):
            array = semi_analytic_sensitivities([pricer, plain])

        assert array.names == ["CDS", "PLAIN"]
        assert len(array.get("PLAIN")) == 0
        assert "does not support semi-analytic sensitivities" in caplog.text

    def test_thread_pool(self, curve):
        """Parallel collection keeps pricer order."""
        pricers = [AnalyticPricer(f"CDS{i}", curve, GRADIENT, HESSIAN) for i in range(5)]
        array = semi_analytic_sensitivities(pricers, max_workers=3)
        assert array.names == [f"CDS{i}" for i in range(5)]

    def test_duplicate_pricers(self, pricer):
        """Two pricers with one name cannot share an array."""
        with pytest.raises(ConfigurationError):
            semi_analytic_sensitivities([pricer, pricer])

    def test_bump_vector(self, curve):
        """Absolute bumps in bp, relative bumps in fractions of the quote."""
        assert np.allclose(bump_vector(curve, 2.0, False), [2e-4, 2e-4])
        assert np.allclose(bump_vector(curve, 0.1, True), [1e-3, 1e-3])


class TestSpreadSensitivities:
    """Tests for the spread report."""

    def test_parallel(self, pricer, curve):
        """One row per curve from the quadratic model."""
        table = semi_analytic_spread_sensitivities([pricer], bump=1.0)

        assert len(table) == 1
        row = table[0]
        assert row.category == "Industrials"
        assert row.element == "ACME"
        assert row.pricer == "CDS"
        # (3e-4 + 2e-9) * 100
        assert row.delta == pytest.approx(0.0300002)
        assert row.gamma == pytest.approx(4e-7)
        assert "elapsed" in table.metadata

    def test_parallel_relative(self, pricer):
        """Relative bumps scale with the quotes."""
        table = semi_analytic_spread_sensitivities([pricer], bump=0.1, bump_relative=True)
        assert table[0].delta == pytest.approx(0.30002)

    def test_by_tenor(self, pricer):
        """One row per tenor from the diagonal terms."""
        table = semi_analytic_spread_sensitivities([pricer], bump=1.0,
                                                   bump_type=BumpType.BY_TENOR)

        assert [r.curve_tenor for r in table] == ["3Y", "5Y"]
        assert [r.delta for r in table] == pytest.approx([0.01, 0.02])
        assert [r.gamma for r in table] == pytest.approx([1e-7, 2e-7])

    @pytest.mark.parametrize("gradient", [[1.0], [1.0, 2.0, 3.0]])
    def test_by_tenor_state_mismatch(self, curve, gradient):
        """Gradients not matching the curve's tenors are rejected."""
        bad = AnalyticPricer("BAD", curve, gradient, HESSIAN)
        with pytest.raises(StateMismatchError):
            semi_analytic_spread_sensitivities([bad], bump_type=BumpType.BY_TENOR)

    def test_by_tenor_hedge_state_mismatch(self, pricer, curve):
        """Hedge derivatives must cover every tenor of the curve."""
        curve.hedge_pricer = lambda c, t: AnalyticPricer(f"CDS.{t.name}", c, [0.5], [0.0])
        with pytest.raises(StateMismatchError):
            semi_analytic_spread_sensitivities([pricer], bump_type=BumpType.BY_TENOR,
                                               calc_hedge=True, hedge_tenor="matching")

    def test_unsupported_bump_type(self, pricer):
        """Only parallel and by-tenor bumps are supported."""
        with pytest.raises(ConfigurationError):
            semi_analytic_spread_sensitivities([pricer], bump_type="Uniform")

    def test_parallel_hedge(self, pricer):
        """Hedge ratio against the 5Y instrument."""
        table = semi_analytic_spread_sensitivities([pricer], bump=1.0, calc_hedge=True,
                                                   hedge_tenor="5Y")
        row = table[0]
        assert row.hedge_tenor == "5Y"
        assert row.hedge_delta == pytest.approx(50.0)
        assert row.hedge_notional == pytest.approx(3.00002e-4 / 0.5e-4 * 100)

    def test_missing_hedge(self, pricer):
        """Unknown hedge tenors leave zero hedges."""
        table = semi_analytic_spread_sensitivities([pricer], calc_hedge=True,
                                                   hedge_tenor="30Y")
        assert table[0].hedge_tenor == "30Y"
        assert table[0].hedge_notional == 0.0

    def test_matching_hedges(self, pricer):
        """Each tenor hedged with its own instrument."""
        table = semi_analytic_spread_sensitivities([pricer], bump_type=BumpType.BY_TENOR,
                                                   calc_hedge=True, hedge_tenor="matching")
        assert [r.hedge_tenor for r in table] == ["3Y", "5Y"]
        assert [r.hedge_delta for r in table] == pytest.approx([50.0, 50.0])
        assert [r.hedge_notional for r in table] == pytest.approx([200.0, 400.0])

    def test_single_tenor_hedge(self, pricer):
        """A single hedge only offsets its own tenor."""
        table = semi_analytic_spread_sensitivities([pricer], bump_type=BumpType.BY_TENOR,
                                                   calc_hedge=True, hedge_tenor="5Y")
        assert [r.hedge_notional for r in table] == pytest.approx([0.0, 400.0])

    def test_completion_logged(self, pricer, caplog):
        """Completion is logged with the elapsed time."""
        with caplog.at_level(logging.INFO):
            semi_analytic_spread_sensitivities([pricer])
        assert "Completed spread sensitivity" in caplog.text


class TestDefaultAndRecovery:
    """Tests for VOD and recovery reports."""

    def test_vod(self, pricer):
        """Value on default scaled by notional."""
        table = semi_analytic_vod([pricer])
        assert len(table) == 1
        assert table[0].delta == pytest.approx(-40.0)
        assert "Curve Tenor" not in table.columns

    def test_vod_hedge(self, pricer):
        """VOD hedge against the hedge pricer's VOD."""
        table = semi_analytic_vod([pricer], calc_hedge=True, hedge_tenor="5Y")
        row = table[0]
        assert row.hedge_tenor == "CDS.5Y"
        assert row.hedge_delta == pytest.approx(-0.8e6)
        assert row.hedge_notional == pytest.approx(50.0)

    def test_recovery(self, pricer):
        """Recovery delta scaled by notional and bump."""
        table = semi_analytic_recovery([pricer], bump=2.0)
        assert table[0].delta == pytest.approx(10.0)
        assert table[0].gamma == 0.0

    def test_empty(self):
        """No pricers, no rows."""
        assert len(semi_analytic_vod([])) == 0
        assert len(semi_analytic_recovery([])) == 0
