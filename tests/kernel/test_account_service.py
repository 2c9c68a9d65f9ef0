"""Chart of accounts: creation, lookup and soft deactivation."""

from datetime import date

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.models.account import AccountType, NormalBalance


class TestCreateAccount:

    def test_create_defaults_normal_balance(self, account_service, test_actor_id):
        result = account_service.create_account(
            code="1040", name="Bank Account - Co-op", account_type=AccountType.ASSET,
            actor_id=test_actor_id,
        )

        assert result.success
        assert result.account.code == "1040"
        assert result.account.normal_balance == NormalBalance.DEBIT
        assert result.account.is_active

    def test_create_credit_normal_for_liability(self, account_service, test_actor_id):
        result = account_service.create_account(
            code="2300", name="Deposits Held", account_type=AccountType.LIABILITY,
            actor_id=test_actor_id,
        )

        assert result.account.normal_balance == NormalBalance.CREDIT

    def test_explicit_normal_balance(self, account_service, test_actor_id):
        result = account_service.create_account(
            code="1390", name="Accumulated Depreciation", account_type=AccountType.ASSET,
            actor_id=test_actor_id, normal_balance=NormalBalance.CREDIT,
        )

        assert result.account.normal_balance == NormalBalance.CREDIT

    def test_duplicate_code_rejected(self, account_service, test_actor_id):
        result = account_service.create_account(
            code="1010", name="Another Cash", account_type=AccountType.ASSET,
            actor_id=test_actor_id,
        )

        assert not result.success
        assert result.error_code == "DUPLICATE_ACCOUNT"

    def test_blank_name_rejected(self, account_service, test_actor_id):
        result = account_service.create_account(
            code="6000", name=" ", account_type=AccountType.EXPENSE, actor_id=test_actor_id,
        )

        assert result.error_code == "MISSING_FIELD"
        assert account_service.get_account("6000") is None


class TestDeactivateAccount:

    def test_deactivate_is_soft(self, account_service, test_actor_id):
        result = account_service.deactivate_account("4200", test_actor_id)

        assert result.success
        account = account_service.get_account("4200")
        assert account is not None
        assert not account.is_active
        assert "4200" not in {a.code for a in account_service.list_accounts()}
        assert "4200" in {a.code for a in account_service.list_accounts(include_inactive=True)}

    def test_unknown_code(self, account_service, test_actor_id):
        result = account_service.deactivate_account("0000", test_actor_id)

        assert result.error_code == "ACCOUNT_NOT_FOUND"

    def test_history_still_counts(
        self, account_service, journal_service, ledger_selector, test_actor_id
    ):
        journal_service.post(
            entry_date=date(2026, 1, 10),
            entry_type="DONATION",
            description="Alumni gift",
            lines=[LineSpec.debit("1020", 9000), LineSpec.credit("4200", 9000)],
            created_by_id=test_actor_id,
        )

        account_service.deactivate_account("4200", test_actor_id)

        assert ledger_selector.account_balance("4200") == 9000

    def test_reactivate(self, account_service, journal_service, test_actor_id):
        account_service.deactivate_account("4200", test_actor_id)
        account_service.reactivate_account("4200", test_actor_id)

        result = journal_service.post(
            entry_date=date(2026, 1, 10),
            entry_type="DONATION",
            description="Gift",
            lines=[LineSpec.debit("1020", 10), LineSpec.credit("4200", 10)],
            created_by_id=test_actor_id,
        )

        assert result.success

    def test_deactivation_logged(self, account_service, captured_logs, test_actor_id):
        account_service.deactivate_account("5700", test_actor_id)

        assert any(
            r["message"] == "account_deactivated" and r["account_code"] == "5700"
            for r in captured_logs()
        )
