"""
Credit Ledger Module.

Append-only student credit balances, manual credit adjustments, and
overdue-first application of credit to outstanding invoices.

The service lives in ``ledger_modules.credit.service``.
"""

from ledger_modules.credit.orm import CreditTransactionModel

__all__ = ["CreditTransactionModel"]
