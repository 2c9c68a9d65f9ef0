"""
Module: ledger_engines.credit
Responsibility:
    The sign convention of the student credit ledger and the pure fold that
    turns a sequence of credit transactions into a balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Credit rows always store a positive amount; the row type alone gives
      the sign (RECEIVED adds, APPLIED and REFUNDED subtract).
    - ``CreditService.balance`` and the cache writer both go through
      ``fold_credit_balance``, so they cannot disagree.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class CreditTransactionType(str, Enum):
    """Kinds of rows in the credit ledger."""

    CREDIT_RECEIVED = "CREDIT_RECEIVED"
    CREDIT_APPLIED = "CREDIT_APPLIED"
    CREDIT_REFUNDED = "CREDIT_REFUNDED"


CREDIT_SIGN: dict[str, int] = {
    CreditTransactionType.CREDIT_RECEIVED.value: 1,
    CreditTransactionType.CREDIT_APPLIED.value: -1,
    CreditTransactionType.CREDIT_REFUNDED.value: -1,
}


def fold_credit_balance(rows: Iterable[tuple[str, int]]) -> int:
    """Balance from ``(transaction_type, amount)`` pairs.

    Unknown types contribute nothing.
    """
    return sum(CREDIT_SIGN.get(kind, 0) * amount for kind, amount in rows)
