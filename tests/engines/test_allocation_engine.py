"""
Tests for the invoice allocation engine.

Covers:
- Overdue-first ordering with due date / invoice date / id tie-breaks
- Greedy application and conservation of the amount
- Status derivation
- Largest-balance-first strategy
"""

from datetime import date

import pytest

from ledger_engines.allocation import (
    ALLOCATABLE_STATUSES,
    AllocationEngine,
    InvoiceStatus,
    InvoiceTarget,
    LargestBalanceFirstStrategy,
    OverdueFirstStrategy,
    derive_invoice_status,
)

TODAY = date(2026, 1, 15)


def _target(invoice_id, due, total, paid=0, invoice_date=date(2026, 1, 1), status="PENDING"):
    return InvoiceTarget(
        invoice_id=invoice_id,
        invoice_number=f"INV-{invoice_id}",
        due_date=due,
        invoice_date=invoice_date,
        total_amount=total,
        amount_paid=paid,
        status=status,
    )


class TestOverdueFirstOrdering:

    def setup_method(self):
        self.engine = AllocationEngine()

    def test_overdue_before_current(self):
        targets = [
            _target(1, date(2026, 2, 1), 1000),
            _target(2, date(2026, 1, 10), 1000),
        ]

        plan = self.engine.plan(1500, targets, TODAY)

        assert [line.invoice_id for line in plan.lines] == [2, 1]
        assert plan.lines[0].new_status == InvoiceStatus.PAID.value
        assert plan.lines[1].applied == 500

    def test_ascending_due_date_within_group(self):
        targets = [
            _target(1, date(2026, 3, 1), 100),
            _target(2, date(2026, 2, 1), 100),
            _target(3, date(2026, 2, 15), 100),
        ]

        plan = self.engine.plan(300, targets, TODAY)

        assert [line.invoice_id for line in plan.lines] == [2, 3, 1]

    def test_due_today_is_not_overdue(self):
        strategy = OverdueFirstStrategy()

        assert not _target(1, TODAY, 100).is_overdue(TODAY)
        assert strategy.order([_target(1, TODAY, 100)], TODAY)[0].invoice_id == 1

    def test_ties_broken_by_invoice_date_then_id(self):
        due = date(2026, 2, 1)
        targets = [
            _target(5, due, 100, invoice_date=date(2026, 1, 5)),
            _target(4, due, 100, invoice_date=date(2026, 1, 5)),
            _target(9, due, 100, invoice_date=date(2026, 1, 2)),
        ]

        ordered = OverdueFirstStrategy().order(targets, TODAY)

        assert [t.invoice_id for t in ordered] == [9, 4, 5]


class TestGreedyApplication:

    def setup_method(self):
        self.engine = AllocationEngine()

    def test_credit_scenario_two_invoices(self):
        targets = [
            _target(1, date(2026, 2, 1), 50000),
            _target(2, date(2026, 2, 15), 30000),
        ]

        plan = self.engine.plan(70000, targets, TODAY)

        assert plan.total_applied == 70000
        assert plan.invoices_affected == 2
        assert plan.remainder == 0
        first, second = plan.lines
        assert (first.applied, first.new_status, first.new_balance) == (50000, "PAID", 0)
        assert (second.applied, second.new_status, second.new_balance) == (20000, "PARTIAL", 10000)

    def test_remainder_when_amount_exceeds_outstanding(self):
        plan = self.engine.plan(80000, [_target(1, date(2026, 2, 1), 50000, paid=20000)], TODAY)

        assert plan.total_applied == 30000
        assert plan.remainder == 50000
        assert plan.lines[0].new_amount_paid == 50000

    def test_no_targets_everything_is_remainder(self):
        plan = self.engine.plan(5000, [], TODAY)

        assert plan.lines == ()
        assert plan.remainder == 5000

    def test_stops_when_amount_runs_out(self):
        targets = [_target(i, date(2026, 2, i), 1000) for i in range(1, 6)]

        plan = self.engine.plan(2500, targets, TODAY)

        assert [line.applied for line in plan.lines] == [1000, 1000, 500]

    def test_paid_and_cancelled_are_skipped(self):
        targets = [
            _target(1, date(2026, 1, 1), 1000, paid=1000, status="PAID"),
            _target(2, date(2026, 1, 2), 1000, status="CANCELLED"),
            _target(3, date(2026, 1, 3), 1000),
        ]

        plan = self.engine.plan(1000, targets, TODAY)

        assert [line.invoice_id for line in plan.lines] == [3]

    def test_zero_amount_plans_nothing(self):
        plan = self.engine.plan(0, [_target(1, date(2026, 2, 1), 1000)], TODAY)

        assert plan.lines == ()
        assert plan.total_applied == 0

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            self.engine.plan(-1, [], TODAY)


class TestStatusDerivation:

    @pytest.mark.parametrize(
        "total,paid,current,expected",
        [
            (50000, 50000, "PENDING", "PAID"),
            (50000, 60000, "PARTIAL", "PAID"),
            (50000, 20000, "PENDING", "PARTIAL"),
            (50000, 0, "PENDING", "PENDING"),
            (50000, 0, "OUTSTANDING", "OUTSTANDING"),
            (50000, 0, "PARTIAL", "PENDING"),
            (50000, 0, "PAID", "PENDING"),
        ],
    )
    def test_derive(self, total, paid, current, expected):
        assert derive_invoice_status(total, paid, current) == expected

    def test_allocatable_statuses(self):
        assert ALLOCATABLE_STATUSES == {"PENDING", "OUTSTANDING", "PARTIAL"}


class TestLargestBalanceFirst:

    def test_largest_outstanding_first(self):
        engine = AllocationEngine(LargestBalanceFirstStrategy())
        targets = [
            _target(1, date(2026, 1, 1), 1000),
            _target(2, date(2026, 3, 1), 9000),
            _target(3, date(2026, 2, 1), 5000, paid=1000),
        ]

        plan = engine.plan(12000, targets, TODAY)

        assert plan.strategy == "largest_balance_first"
        assert [line.invoice_id for line in plan.lines] == [2, 3]
        assert [line.applied for line in plan.lines] == [9000, 3000]
