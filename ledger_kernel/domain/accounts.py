"""
System account codes the core posts to on its own behalf.

The ledger never hard-codes an account id; every automatic posting goes
through a code from this mapping, which the configuration layer builds from
YAML.  Defaults follow the standard school chart of accounts.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field


def _default_method_accounts() -> dict[str, str]:
    return {"CASH": "1010"}


@dataclass(frozen=True)
class SystemAccounts:
    """Account codes used for automatic postings."""

    cash: str = "1010"
    bank: str = "1020"
    receivable: str = "1100"
    student_credit: str = "2020"
    default_revenue: str = "4300"
    # Payment methods with a dedicated account; anything else posts to bank
    payment_method_accounts: Mapping[str, str] = field(default_factory=_default_method_accounts)

    def account_for_method(self, payment_method: str) -> str:
        """Cash/bank account that receives a payment made with ``payment_method``."""
        return self.payment_method_accounts.get(payment_method.upper(), self.bank)
