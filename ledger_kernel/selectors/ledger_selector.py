"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: per-account debit/credit totals,
    signed balances, and the trial balance.  The general ledger is a derived
    view over journal lines -- there are no stored account balances.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Only posted, non-voided entries count.  A VOID_REVERSAL whose original
      was voided is excluded too, so a voided entry and its reversal net to
      nothing instead of leaving the reversal behind.
    - Balances are signed by the account's normal side: debit-normal
      accounts report debit - credit, credit-normal accounts credit - debit.

Failure modes:
    - Returns zero rows / zero balances when nothing is posted.
"""

from dataclasses import dataclass
from datetime import date

from sqlalchemy import and_, exists, func, select
from sqlalchemy.orm import aliased

from ledger_kernel.models.account import Account, NormalBalance
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountBalance:
    """Aggregated position of one account."""

    account_id: int
    account_code: str
    account_name: str
    account_type: str
    normal_balance: str
    debit_total: int
    credit_total: int

    @property
    def balance(self) -> int:
        """Balance signed by the account's normal side."""
        if self.normal_balance == NormalBalance.DEBIT.value:
            return self.debit_total - self.credit_total
        return self.credit_total - self.debit_total


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance report."""

    account_code: str
    account_name: str
    account_type: str
    debit_total: int
    credit_total: int

    @property
    def net_debit(self) -> int:
        return self.debit_total - self.credit_total


def counted_entry_filter():
    """WHERE clause selecting the journal entries that reports count."""
    original = aliased(JournalEntry)
    reversal_of_voided = exists().where(
        and_(original.id == JournalEntry.reversal_of_id, original.is_voided.is_(True))
    )
    return and_(
        JournalEntry.is_posted.is_(True),
        JournalEntry.is_voided.is_(False),
        ~reversal_of_voided,
    )


class LedgerSelector(BaseSelector):
    """Aggregates over counted journal lines."""

    def account_balances(
        self,
        as_of_date: date | None = None,
        start_date: date | None = None,
        include_inactive: bool = True,
    ) -> list[AccountBalance]:
        """
        Debit/credit totals for every account, dated within the range.

        Accounts without lines are returned with zero totals so callers can
        count them in totals.
        """
        line_filter = [counted_entry_filter()]
        if as_of_date is not None:
            line_filter.append(JournalEntry.entry_date <= as_of_date)
        if start_date is not None:
            line_filter.append(JournalEntry.entry_date >= start_date)

        totals = (
            select(
                JournalLine.account_id.label("account_id"),
                func.coalesce(func.sum(JournalLine.debit_amount), 0).label("debit_total"),
                func.coalesce(func.sum(JournalLine.credit_amount), 0).label("credit_total"),
            )
            .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
            .where(*line_filter)
            .group_by(JournalLine.account_id)
            .subquery()
        )

        query = (
            select(
                Account,
                func.coalesce(totals.c.debit_total, 0),
                func.coalesce(totals.c.credit_total, 0),
            )
            .outerjoin(totals, totals.c.account_id == Account.id)
            .order_by(Account.code)
        )
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))

        return [
            AccountBalance(
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                normal_balance=account.normal_balance,
                debit_total=int(debit_total),
                credit_total=int(credit_total),
            )
            for account, debit_total, credit_total in self.session.execute(query)
        ]

    def account_balance(self, account_code: str, as_of_date: date | None = None) -> int:
        for row in self.account_balances(as_of_date=as_of_date):
            if row.account_code == account_code:
                return row.balance
        return 0

    def trial_balance(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[TrialBalanceRow]:
        """Accounts with activity in the range, ordered by code."""
        return [
            TrialBalanceRow(
                account_code=row.account_code,
                account_name=row.account_name,
                account_type=row.account_type,
                debit_total=row.debit_total,
                credit_total=row.credit_total,
            )
            for row in self.account_balances(as_of_date=end_date, start_date=start_date)
            if row.debit_total or row.credit_total
        ]

    def total_debits_credits(self, as_of_date: date | None = None) -> tuple[int, int]:
        rows = self.account_balances(as_of_date=as_of_date)
        return (
            sum(row.debit_total for row in rows),
            sum(row.credit_total for row in rows),
        )
