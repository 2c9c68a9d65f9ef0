"""
Receivables Module.

Fee invoices, payments with receipts, payment-to-invoice allocation, and
the replay guard for payment and invoice requests.

Services are imported from their own modules
(``ledger_modules.receivables.payment_service``,
``ledger_modules.receivables.invoice_service``); the package exports the
domain models and the flush-only building blocks the credit module shares.
"""

from ledger_modules.receivables.allocator import AllocationOutcome, InvoiceAllocator
from ledger_modules.receivables.idempotency import ReplayGuard
from ledger_modules.receivables.models import (
    AppliedAllocation,
    Invoice,
    InvoiceItem,
    PaymentMethod,
    TransactionType,
)

__all__ = [
    "AllocationOutcome",
    "AppliedAllocation",
    "Invoice",
    "InvoiceAllocator",
    "InvoiceItem",
    "PaymentMethod",
    "ReplayGuard",
    "TransactionType",
]
