"""Read-only selectors over the ledger."""

from ledger_kernel.selectors.ledger_selector import (
    AccountBalance,
    LedgerSelector,
    TrialBalanceRow,
)

__all__ = ["AccountBalance", "LedgerSelector", "TrialBalanceRow"]
