"""
Service layer for the chart of accounts.

Accounts are never deleted.  Retiring an account deactivates it, after
which JournalService rejects any new line that targets it; historical
lines keep counting in every report.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    DuplicateAccountError,
    MissingFieldError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    DEFAULT_NORMAL_BALANCE,
    Account,
    AccountType,
    NormalBalance,
)
from ledger_kernel.services.base import BaseService, OperationResult

logger = get_logger("services.account")


@dataclass(frozen=True)
class AccountInfo:
    """Immutable view of a chart-of-accounts row."""

    id: int
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    is_active: bool
    description: str | None


@dataclass(frozen=True)
class AccountResult(OperationResult):
    account: AccountInfo | None = None


class AccountService(BaseService):
    """Create, look up and deactivate GL accounts."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)

    def _to_dto(self, account: Account) -> AccountInfo:
        return AccountInfo(
            id=account.id,
            code=account.code,
            name=account.name,
            account_type=AccountType(account.account_type),
            normal_balance=NormalBalance(account.normal_balance),
            is_active=account.is_active,
            description=account.description,
        )

    def _get_by_code(self, code: str) -> Account:
        account = self.session.scalars(select(Account).where(Account.code == code)).first()
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def get_account(self, code: str) -> AccountInfo | None:
        account = self.session.scalars(select(Account).where(Account.code == code)).first()
        return self._to_dto(account) if account is not None else None

    def list_accounts(self, include_inactive: bool = False) -> list[AccountInfo]:
        stmt = select(Account).order_by(Account.code)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        return [self._to_dto(account) for account in self.session.scalars(stmt)]

    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        actor_id: int,
        normal_balance: NormalBalance | None = None,
        description: str | None = None,
    ) -> AccountResult:
        """
        Add an account to the chart.

        ``normal_balance`` defaults from the account type (assets and
        expenses are debit-normal, everything else credit-normal).
        """

        def work() -> AccountResult:
            clean_code = (code or "").strip()
            clean_name = (name or "").strip()
            if not clean_code:
                raise MissingFieldError("code")
            if not clean_name:
                raise MissingFieldError("name")
            exists = self.session.scalars(
                select(Account.id).where(Account.code == clean_code)
            ).first()
            if exists is not None:
                raise DuplicateAccountError(clean_code)

            kind = AccountType(account_type)
            account = Account(
                code=clean_code,
                name=clean_name,
                account_type=kind.value,
                normal_balance=(normal_balance or DEFAULT_NORMAL_BALANCE[kind]).value,
                description=description,
                is_active=True,
                created_by_id=actor_id,
                created_at=self.clock.now_utc(),
            )
            self.session.add(account)
            self.session.flush()
            logger.info(
                "account_created",
                extra={"account_code": account.code, "account_type": account.account_type},
            )
            return AccountResult(
                success=True,
                message=f"Account {account.code} created",
                account=self._to_dto(account),
            )

        return self._execute("create_account", work, AccountResult)

    def deactivate_account(self, code: str, actor_id: int) -> AccountResult:
        """Soft-deactivate an account.  Already-inactive accounts are a no-op."""

        def work() -> AccountResult:
            account = self._get_by_code(code)
            if account.is_active:
                account.is_active = False
                account.updated_by_id = actor_id
                self.session.flush()
                logger.info("account_deactivated", extra={"account_code": code})
            return AccountResult(
                success=True,
                message=f"Account {code} deactivated",
                account=self._to_dto(account),
            )

        return self._execute("deactivate_account", work, AccountResult)

    def reactivate_account(self, code: str, actor_id: int) -> AccountResult:
        def work() -> AccountResult:
            account = self._get_by_code(code)
            account.is_active = True
            account.updated_by_id = actor_id
            self.session.flush()
            logger.info("account_reactivated", extra={"account_code": code})
            return AccountResult(
                success=True,
                message=f"Account {code} reactivated",
                account=self._to_dto(account),
            )

        return self._execute("reactivate_account", work, AccountResult)
