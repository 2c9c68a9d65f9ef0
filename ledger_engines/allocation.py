"""
Module: ledger_engines.allocation
Responsibility:
    Plan how a payment or credit amount is spread over a student's
    outstanding invoices, and derive invoice status from cumulative payment.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel/logging_config.

Invariants enforced:
    - Conservation: total_applied + remainder == amount.
    - No invoice receives more than its outstanding balance.
    - Determinism: the strategy defines a total order (ties broken by
      invoice date, then id), so the same inputs always give the same plan.
    - Purity: "today" is passed in by the caller; no clock access.

Failure modes:
    - ValueError on a negative amount.

Usage:
    from ledger_engines.allocation import AllocationEngine, InvoiceTarget

    engine = AllocationEngine()
    plan = engine.plan(
        amount=70000,
        targets=[
            InvoiceTarget(1, "INV-1", date(2026, 1, 10), date(2026, 1, 1), 50000, 0),
            InvoiceTarget(2, "INV-2", date(2026, 2, 10), date(2026, 1, 1), 30000, 0),
        ],
        as_of=date(2026, 1, 15),
    )
    plan.total_applied   # 70000
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    PENDING = "PENDING"
    OUTSTANDING = "OUTSTANDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


# Statuses that still accept payments
ALLOCATABLE_STATUSES = frozenset({
    InvoiceStatus.PENDING.value,
    InvoiceStatus.OUTSTANDING.value,
    InvoiceStatus.PARTIAL.value,
})


def derive_invoice_status(total_amount: int, amount_paid: int, current_status: str) -> str:
    """
    Status after a change to ``amount_paid``.

    ``>= total`` is PAID, ``> 0`` is PARTIAL.  Otherwise an unpaid invoice
    keeps its PENDING/OUTSTANDING status; a PARTIAL or PAID invoice whose
    payments were all reversed falls back to PENDING.
    """
    if amount_paid >= total_amount:
        return InvoiceStatus.PAID.value
    if amount_paid > 0:
        return InvoiceStatus.PARTIAL.value
    if current_status in (InvoiceStatus.PARTIAL.value, InvoiceStatus.PAID.value):
        return InvoiceStatus.PENDING.value
    return current_status


@dataclass(frozen=True)
class InvoiceTarget:
    """An invoice that can receive an allocation."""

    invoice_id: int
    invoice_number: str
    due_date: date
    invoice_date: date
    total_amount: int
    amount_paid: int
    status: str = InvoiceStatus.PENDING.value

    @property
    def outstanding(self) -> int:
        return max(self.total_amount - self.amount_paid, 0)

    def is_overdue(self, as_of: date) -> bool:
        return self.due_date < as_of


class AllocationStrategy(ABC):
    """Orders outstanding invoices for allocation."""

    name: str = "abstract"

    @abstractmethod
    def order(self, targets: Sequence[InvoiceTarget], as_of: date) -> list[InvoiceTarget]:
        ...


class OverdueFirstStrategy(AllocationStrategy):
    """
    Overdue invoices first, then oldest due date, then oldest invoice date,
    then lowest id.
    """

    name = "overdue_first_fifo"

    def order(self, targets: Sequence[InvoiceTarget], as_of: date) -> list[InvoiceTarget]:
        return sorted(
            targets,
            key=lambda t: (not t.is_overdue(as_of), t.due_date, t.invoice_date, t.invoice_id),
        )


class LargestBalanceFirstStrategy(AllocationStrategy):
    """Largest outstanding balance first; ties fall back to due date."""

    name = "largest_balance_first"

    def order(self, targets: Sequence[InvoiceTarget], as_of: date) -> list[InvoiceTarget]:
        return sorted(
            targets,
            key=lambda t: (-t.outstanding, t.due_date, t.invoice_date, t.invoice_id),
        )


@dataclass(frozen=True)
class AllocationLine:
    """Planned application to one invoice."""

    invoice_id: int
    invoice_number: str
    applied: int
    new_amount_paid: int
    new_status: str
    new_balance: int


@dataclass(frozen=True)
class AllocationPlan:
    """
    Complete allocation plan.

    Guarantees:
        - ``total_applied + remainder == amount``.
        - ``lines`` only contains invoices that received a positive amount,
          in application order.
    """

    amount: int
    strategy: str
    lines: tuple[AllocationLine, ...]
    total_applied: int
    remainder: int

    @property
    def invoices_affected(self) -> int:
        return len(self.lines)


class AllocationEngine:
    """
    Greedy allocation over strategy-ordered invoices.

    Contract:
        Pure.  Walks invoices in strategy order, applying
        ``min(remaining, outstanding)`` to each until the amount runs out.
    Non-goals:
        - Does not persist anything; callers apply the plan.
    """

    def __init__(self, strategy: AllocationStrategy | None = None):
        self.strategy = strategy or OverdueFirstStrategy()

    def plan(
        self,
        amount: int,
        targets: Sequence[InvoiceTarget],
        as_of: date,
    ) -> AllocationPlan:
        if amount < 0:
            raise ValueError("Allocation amount cannot be negative")

        eligible = [
            t for t in targets
            if t.outstanding > 0 and t.status in ALLOCATABLE_STATUSES
        ]
        remaining = amount
        lines: list[AllocationLine] = []

        for target in self.strategy.order(eligible, as_of):
            if remaining <= 0:
                break
            applied = min(remaining, target.outstanding)
            remaining -= applied
            new_paid = target.amount_paid + applied
            lines.append(
                AllocationLine(
                    invoice_id=target.invoice_id,
                    invoice_number=target.invoice_number,
                    applied=applied,
                    new_amount_paid=new_paid,
                    new_status=derive_invoice_status(target.total_amount, new_paid, target.status),
                    new_balance=target.total_amount - new_paid,
                )
            )

        logger.info("allocation_planned", extra={
            "strategy": self.strategy.name,
            "amount": amount,
            "total_applied": amount - remaining,
            "remainder": remaining,
            "invoices_affected": len(lines),
            "candidate_count": len(eligible),
        })

        return AllocationPlan(
            amount=amount,
            strategy=self.strategy.name,
            lines=tuple(lines),
            total_applied=amount - remaining,
            remainder=remaining,
        )
