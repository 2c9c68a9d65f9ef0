"""
Receivables Domain Models (``ledger_modules.receivables.models``).

Responsibility
--------------
Frozen dataclass value objects for invoices, invoice items and applied
allocations, as accepted from and returned to callers.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are ``int`` minor units -- NEVER ``float``.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from ledger_engines.allocation import InvoiceStatus


class TransactionType(str, Enum):
    """Legacy ledger transaction kinds written by the core."""

    FEE_PAYMENT = "FEE_PAYMENT"
    CREDIT_PAYMENT = "CREDIT_PAYMENT"
    REFUND = "REFUND"


class DebitCredit(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    MPESA = "MPESA"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"


# payment_reference marker for payments settled from the credit balance
CREDIT_BALANCE_REFERENCE = "CREDIT_BALANCE"


@dataclass(frozen=True)
class InvoiceItem:
    """A billed line on an invoice."""

    fee_category_id: int
    description: str
    amount: int
    gl_account_code: str | None = None


@dataclass(frozen=True)
class Invoice:
    """Read model of an invoice."""

    id: int
    invoice_number: str
    student_id: int
    term_id: int | None
    invoice_date: date
    due_date: date
    total_amount: int
    amount_paid: int
    status: str
    items: tuple[InvoiceItem, ...] = ()

    @property
    def outstanding(self) -> int:
        return max(self.total_amount - self.amount_paid, 0)

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID.value


@dataclass(frozen=True)
class AppliedAllocation:
    """One invoice touched by a payment or credit application."""

    invoice_id: int
    invoice_number: str
    amount_applied: int
    new_balance: int
    new_status: str
