"""
Unit tests for pricer re-evaluation.
"""

import logging

import pytest

from sensilib.conventions import BumpFlags, CurveKind, ResetAction
from sensilib.curves import CurveTenor, DependencyGraph, create_flat_curve
from sensilib.risk.bumping import TenorEquivalenceGroup, bump_tenors, restore_curves
from sensilib.risk.evaluators import (
    AggregateEvaluator,
    PricerEvaluator,
    ReEvaluator,
    ReEvaluatorList,
    prerequisite_closure,
    to_evaluator,
)

from stubs import Basket, CurvePricer, FailingResetPricer


@pytest.fixture
def ois():
    """Flat 2% discount curve."""
    return create_flat_curve("USD.OIS", 0.02)


@pytest.fixture
def acme(ois):
    """Flat 100bp credit curve over the discount curve."""
    return create_flat_curve("ACME", 0.01, kind=CurveKind.SURVIVAL, prerequisites=[ois])


class TestPricerEvaluator:
    """Tests for the pricer adapter."""

    def test_measure_by_name(self, acme):
        """Measure given as a method name."""
        pricer = CurvePricer("CDS", [acme], notional=1.0)
        evaluator = PricerEvaluator(pricer)
        assert evaluator.name == "CDS"
        assert evaluator.curves == [acme]
        assert evaluator.evaluate() == pytest.approx(0.09)

    def test_measure_callable(self, acme):
        """Measure given as a callable."""
        pricer = CurvePricer("CDS", [acme], notional=1.0)
        evaluator = PricerEvaluator(pricer, lambda p: p.strip() * 2, name="Strip")
        assert evaluator.name == "Strip"
        assert evaluator.evaluate() == pytest.approx(0.18)

    def test_reset_forwarded(self, acme):
        """Resets reach the pricer."""
        pricer = CurvePricer("CDS", [acme])
        PricerEvaluator(pricer).reset(ResetAction.RECOVERY_CHANGED)
        assert pricer.resets == [ResetAction.RECOVERY_CHANGED]


class TestReEvaluator:
    """Tests for ReEvaluator."""

    def test_base_value_cached(self, acme):
        """Construction evaluates exactly once."""
        pricer = CurvePricer("CDS", [acme], notional=1.0)
        re_evaluator = ReEvaluator(PricerEvaluator(pricer))

        assert pricer.evaluations == 1
        assert pricer.resets == [ResetAction.NONE]
        assert re_evaluator.base_value == pytest.approx(0.09)
        assert re_evaluator.base_value == pytest.approx(0.09)
        assert pricer.evaluations == 1

    def test_re_evaluate_sees_bump(self, ois, acme):
        """Re-evaluation uses the bumped curves."""
        pricer = CurvePricer("CDS", [acme], notional=1.0)
        re_evaluator = ReEvaluator(PricerEvaluator(pricer))
        graph = DependencyGraph([acme], lambda c: c.prerequisites)
        group = TenorEquivalenceGroup(graph, [acme], acme.tenors)
        affected = []

        bump_tenors(graph, group, 10.0, BumpFlags.NONE, affected)
        try:
            assert re_evaluator.re_evaluate() == pytest.approx(0.09 + 3 * 0.001)
        finally:
            restore_curves(affected)
        assert re_evaluator.re_evaluate() == pytest.approx(0.09)

    def test_prerequisite_closure(self, ois, acme):
        """The closure includes prerequisite curves."""
        assert prerequisite_closure([acme]) == frozenset([acme, ois])
        re_evaluator = ReEvaluator(PricerEvaluator(CurvePricer("CDS", [acme])))
        assert re_evaluator.prerequisite_curves == frozenset([acme, ois])

    def test_depends_on(self, ois, acme):
        """Selections on unrelated curves are not seen."""
        other = create_flat_curve("OTHER", 0.03, kind=CurveKind.SURVIVAL)
        graph = DependencyGraph([acme, other], lambda c: c.prerequisites)
        re_evaluator = ReEvaluator(PricerEvaluator(CurvePricer("CDS", [acme])))

        assert re_evaluator.depends_on(TenorEquivalenceGroup(graph, [acme], acme.tenors))
        assert re_evaluator.depends_on(TenorEquivalenceGroup(graph, [ois], ois.tenors))
        assert not re_evaluator.depends_on(TenorEquivalenceGroup(graph, [other], other.tenors))

    def test_depends_on_empty_selection(self, ois, acme):
        """Selections holding no curve are never seen."""
        re_evaluator = ReEvaluator(PricerEvaluator(CurvePricer("CDS", [acme])))
        stray = CurveTenor("5Y", 0.01)

        no_curves = TenorEquivalenceGroup(None, [], [stray])
        assert no_curves.affected_curves == []
        assert not re_evaluator.depends_on(no_curves)

        graph = DependencyGraph([acme], lambda c: c.prerequisites)
        unheld = TenorEquivalenceGroup(graph, [], [stray])
        assert unheld.affected_curves == []
        assert not re_evaluator.depends_on(unheld)

        aggregate = AggregateEvaluator([re_evaluator], "ALL")
        assert not aggregate.depends_on(unheld)

    def test_reset_actions(self, acme):
        """Recovery and correlation changes are passed to reset."""
        basket = Basket(rescale_strikes=False)
        pricer = CurvePricer("CDO", [acme], basket=basket)
        re_evaluator = ReEvaluator(PricerEvaluator(pricer))

        re_evaluator.mark_recovery_changed()
        re_evaluator.set_rescale_strike(True)
        re_evaluator.re_evaluate()

        assert basket.rescale_strikes
        assert pricer.resets[-1] == (ResetAction.RECOVERY_CHANGED
                                     | ResetAction.CORRELATION_CHANGED)

    def test_set_rescale_strike_idempotent(self, acme):
        """Setting the current value changes nothing."""
        basket = Basket(rescale_strikes=True)
        re_evaluator = ReEvaluator(PricerEvaluator(CurvePricer("CDO", [acme], basket=basket)))
        re_evaluator.set_rescale_strike(True)
        assert not re_evaluator.correlation_changed
        assert re_evaluator.reset_action == ResetAction.NONE

    def test_no_basket(self, acme):
        """Pricers without a basket ignore strike rescaling."""
        re_evaluator = ReEvaluator(PricerEvaluator(CurvePricer("CDS", [acme])))
        re_evaluator.set_rescale_strike(True)
        assert not re_evaluator.correlation_changed

    def test_close_restores_basket(self, acme):
        """Closing restores the saved strike switch once."""
        basket = Basket(rescale_strikes=False)
        pricer = CurvePricer("CDO", [acme], basket=basket)
        with ReEvaluator(PricerEvaluator(pricer)) as re_evaluator:
            re_evaluator.set_rescale_strike(True)

        assert re_evaluator.closed
        assert not basket.rescale_strikes
        resets = len(pricer.resets)
        re_evaluator.close()
        assert len(pricer.resets) == resets

    def test_close_swallows_errors(self, acme, caplog):
        """Cleanup failures are logged, never raised."""
        re_evaluator = ReEvaluator(PricerEvaluator(FailingResetPricer("BAD", [acme])))
        with caplog.at_level(logging.ERROR):
            re_evaluator.close()
        assert re_evaluator.closed
        assert "Failed to restore state of pricer BAD" in caplog.text

    def test_injected_logger(self, acme, caplog):
        """An injected logger receives cleanup errors."""
        logger = logging.getLogger("tests.custom")
        re_evaluator = ReEvaluator(PricerEvaluator(FailingResetPricer("BAD", [acme])),
                                   logger=logger)
        with caplog.at_level(logging.ERROR, logger="tests.custom"):
            re_evaluator.close()
        assert any(r.name == "tests.custom" for r in caplog.records)


class TestAggregateEvaluator:
    """Tests for AggregateEvaluator."""

    def test_mean(self, ois, acme):
        """Values are averaged over members."""
        a = CurvePricer("A", [acme], notional=1.0)
        b = CurvePricer("B", [ois], notional=1.0)
        aggregate = AggregateEvaluator([PricerEvaluator(a), PricerEvaluator(b)], "5Y")

        assert aggregate.name == "5Y"
        assert aggregate.base_value == pytest.approx((0.09 + 0.06) / 2)
        assert aggregate.re_evaluate() == pytest.approx((0.09 + 0.06) / 2)
        assert aggregate.prerequisite_curves == frozenset([acme, ois])

    def test_empty(self):
        """An empty aggregate is worth zero."""
        aggregate = AggregateEvaluator([], "none")
        assert aggregate.base_value == 0.0
        assert aggregate.re_evaluate() == 0.0

    def test_close_all(self, acme):
        """Closing closes every member."""
        aggregate = AggregateEvaluator(
            [PricerEvaluator(CurvePricer(n, [acme])) for n in "AB"], "5Y")
        aggregate.close()
        assert all(m.closed for m in aggregate.members)


class TestHelpers:
    """Tests for to_evaluator and ReEvaluatorList."""

    def test_to_evaluator(self, acme):
        """None, one or several hedge pricers."""
        assert to_evaluator([], "5Y") is None
        assert to_evaluator([None], "5Y") is None

        single = to_evaluator([CurvePricer("H", [acme])], "5Y")
        assert isinstance(single, ReEvaluator)
        assert single.name == "5Y"

        several = to_evaluator([CurvePricer("H1", [acme]), CurvePricer("H2", [acme])], "5Y")
        assert isinstance(several, AggregateEvaluator)
        assert len(several.members) == 2

    @pytest.mark.parametrize("names", [["H"], ["H1", "H2"]])
    def test_to_evaluator_logger(self, acme, caplog, names):
        """Hedge release failures reach the given logger."""
        logger = logging.getLogger("tests.hedges")
        hedge = to_evaluator([FailingResetPricer(n, [acme]) for n in names], "5Y",
                             logger=logger)
        with caplog.at_level(logging.ERROR, logger="tests.hedges"):
            hedge.close()
        assert sum(r.name == "tests.hedges" for r in caplog.records) == len(names)

    def test_list_closes_on_error(self, acme):
        """Every member is closed when the block raises."""
        members = [ReEvaluator(PricerEvaluator(CurvePricer(n, [acme]))) for n in "AB"]
        with pytest.raises(ValueError):
            with ReEvaluatorList(members):
                raise ValueError("boom")
        assert all(m.closed for m in members)
