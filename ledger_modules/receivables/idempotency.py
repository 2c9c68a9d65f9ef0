"""
ReplayGuard -- recognizes retried payment and invoice requests.

Responsibility:
    Answers "has this request already been executed?" before a payment or
    invoice flow writes anything.  Two strategies, checked in order:

    1. Explicit key: a normalized caller-supplied key looked up on
       ``ledger_transactions.idempotency_key`` (UNIQUE).
    2. Fuzzy replay: for flows without a key, an identical request from the
       same creator inside the trailing replay window.

Architecture position:
    Modules > Receivables.  Read-only; the calling service decides what to
    return on a hit.

Invariants enforced:
    - A hit never writes.  Callers return the original reference instead of
      re-executing.
    - Voided transactions are never treated as the original of a replay.
    - The window is measured with the injected Clock against the creation
      timestamp the services stamp from the same Clock.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.logging_config import get_logger
from ledger_kernel.utils.idempotency import (
    DEFAULT_MAX_KEY_LENGTH,
    normalize_idempotency_key,
    same_item_set,
)
from ledger_modules.receivables.orm import InvoiceModel, LedgerTransactionModel

logger = get_logger("modules.receivables.idempotency")

DEFAULT_REPLAY_WINDOW_SECONDS = 15


class ReplayGuard:
    """Explicit-key and fuzzy replay detection over the receivables tables."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        window_seconds: int = DEFAULT_REPLAY_WINDOW_SECONDS,
        max_key_length: int = DEFAULT_MAX_KEY_LENGTH,
    ):
        self.session = session
        self.clock = clock
        self.window_seconds = window_seconds
        self.max_key_length = max_key_length

    def normalize_key(self, key: str | None) -> str | None:
        return normalize_idempotency_key(key, self.max_key_length)

    def _window_start(self):
        return self.clock.now_utc() - timedelta(seconds=self.window_seconds)

    def find_by_key(self, key: str | None) -> LedgerTransactionModel | None:
        """Transaction previously recorded under ``key`` (already normalized)."""
        if key is None:
            return None
        existing = self.session.scalars(
            select(LedgerTransactionModel).where(
                LedgerTransactionModel.idempotency_key == key
            )
        ).first()
        if existing is not None:
            logger.info(
                "replay_detected_by_key",
                extra={
                    "transaction_id": existing.id,
                    "transaction_ref": existing.transaction_ref,
                },
            )
        return existing

    def find_payment_replay(
        self,
        student_id: int,
        amount: int,
        transaction_date: date,
        transaction_type: str,
        payment_method: str | None,
        payment_reference: str | None,
        created_by_id: int,
        invoice_id: int | None = None,
    ) -> LedgerTransactionModel | None:
        """Identical, non-voided transaction created inside the window."""
        stmt = (
            select(LedgerTransactionModel)
            .where(
                LedgerTransactionModel.student_id == student_id,
                LedgerTransactionModel.amount == amount,
                LedgerTransactionModel.transaction_date == transaction_date,
                LedgerTransactionModel.transaction_type == transaction_type,
                LedgerTransactionModel.created_by_id == created_by_id,
                LedgerTransactionModel.is_voided.is_(False),
                LedgerTransactionModel.created_at >= self._window_start(),
            )
            .order_by(LedgerTransactionModel.id.desc())
        )
        stmt = stmt.where(_null_safe_eq(LedgerTransactionModel.payment_method, payment_method))
        stmt = stmt.where(
            _null_safe_eq(LedgerTransactionModel.payment_reference, payment_reference)
        )
        stmt = stmt.where(_null_safe_eq(LedgerTransactionModel.invoice_id, invoice_id))

        existing = self.session.scalars(stmt).first()
        if existing is not None:
            logger.info(
                "replay_detected_by_match",
                extra={
                    "transaction_id": existing.id,
                    "transaction_ref": existing.transaction_ref,
                    "window_seconds": self.window_seconds,
                },
            )
        return existing

    def find_invoice_replay(
        self,
        student_id: int,
        term_id: int | None,
        invoice_date: date,
        due_date: date,
        total_amount: int,
        items: Iterable[Any],
        created_by_id: int,
    ) -> InvoiceModel | None:
        """Invoice with the same header and the same normalized item set."""
        items = list(items)
        candidates = self.session.scalars(
            select(InvoiceModel)
            .where(
                InvoiceModel.student_id == student_id,
                _null_safe_eq(InvoiceModel.term_id, term_id),
                InvoiceModel.invoice_date == invoice_date,
                InvoiceModel.due_date == due_date,
                InvoiceModel.total_amount == total_amount,
                InvoiceModel.created_by_id == created_by_id,
                InvoiceModel.created_at >= self._window_start(),
            )
            .order_by(InvoiceModel.id.desc())
        )
        for candidate in candidates:
            if same_item_set(candidate.items, items):
                logger.info(
                    "invoice_replay_detected",
                    extra={
                        "invoice_id": candidate.id,
                        "invoice_number": candidate.invoice_number,
                    },
                )
                return candidate
        return None


def _null_safe_eq(column, value):
    if value is None:
        return column.is_(None)
    return column == value
