"""
Human-readable reference numbers for journal entries, payments and invoices.

References combine a type prefix, a timestamp from the injected clock, and a
short random suffix.  Uniqueness is ultimately guaranteed by the UNIQUE
constraints on the columns that store them.
"""

import secrets
from datetime import datetime


def _nonce(length: int) -> str:
    return secrets.token_hex(length)[:length].upper()


def generate_entry_ref(entry_type: str, now: datetime) -> str:
    """
    Journal entry reference: first three letters of the type, epoch millis, nonce.

    Example:
        >>> generate_entry_ref("FEE_PAYMENT", now)
        'FEE-1768467600000-3F9A0C1B'
    """
    prefix = (entry_type[:3] or "JE").upper()
    millis = int(now.timestamp() * 1000)
    return f"{prefix}-{millis}-{_nonce(8)}"


def generate_transaction_ref(now: datetime) -> str:
    """Ledger transaction reference, e.g. ``TXN-20260115-1768467600000-7A1B``."""
    return f"TXN-{now:%Y%m%d}-{int(now.timestamp() * 1000)}-{_nonce(4)}"


def generate_receipt_number(now: datetime) -> str:
    """Receipt number, e.g. ``RCP-20260115-1768467600000-C2D4``."""
    return f"RCP-{now:%Y%m%d}-{int(now.timestamp() * 1000)}-{_nonce(4)}"


def generate_invoice_number(now: datetime) -> str:
    """Invoice number, e.g. ``INV-20260115-5E61A0``."""
    return f"INV-{now:%Y%m%d}-{_nonce(6)}"
