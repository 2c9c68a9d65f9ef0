"""
Reporting over the general ledger.

Covers:
- Balance sheet sections, totals and the accounting equation
- Exclusion of pending and voided entries
- Trial balance and income summary
- Dict rendering for JSON output
"""

import json
from datetime import date

import pytest

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.journal import EntryType
from ledger_modules.reporting.statements import render_to_dict


@pytest.fixture
def post(journal_service, test_actor_id):
    def _post(debit_code, credit_code, amount, entry_date=date(2026, 1, 10), **kwargs):
        result = journal_service.post(
            entry_date=entry_date,
            entry_type=EntryType.MANUAL.value,
            description=f"Dr {debit_code} / Cr {credit_code}",
            lines=[LineSpec.debit(debit_code, amount), LineSpec.credit(credit_code, amount)],
            created_by_id=test_actor_id,
            **kwargs,
        )
        assert result.success, result.message
        return result

    return _post


@pytest.fixture
def school_books(post):
    post("1020", "3010", 100000)
    post("1020", "4010", 80000)
    post("5010", "1020", 50000)


class TestBalanceSheet:

    def test_empty_books(self, reporting_service):
        report = reporting_service.balance_sheet()

        assert report.as_of_date == date(2026, 1, 15)
        assert report.total_assets == 0
        assert report.total_liabilities_and_equity == 0
        assert report.net_income == 0
        assert report.is_balanced
        assert report.assets.lines == ()

    def test_accounting_equation(self, reporting_service, school_books):
        report = reporting_service.balance_sheet()

        assert report.total_assets == 130000
        assert report.total_liabilities == 0
        assert report.total_equity == 100000
        assert report.net_income == 30000
        assert report.total_liabilities_and_equity == 130000
        assert report.is_balanced

    def test_sections_skip_zero_accounts(self, reporting_service, school_books):
        report = reporting_service.balance_sheet()

        assert [(line.account_code, line.balance) for line in report.assets.lines] == [
            ("1020", 130000)
        ]
        assert [line.account_code for line in report.equity.lines] == ["3010"]
        assert report.liabilities.lines == ()

    def test_as_of_date_cuts_off_later_entries(self, reporting_service, post, school_books):
        post("1010", "4200", 7000, entry_date=date(2026, 1, 20))

        before = reporting_service.balance_sheet(date(2026, 1, 15))
        after = reporting_service.balance_sheet(date(2026, 1, 20))

        assert before.total_assets == 130000
        assert after.total_assets == 137000
        assert after.is_balanced

    def test_student_payment_flow_stays_balanced(
        self, reporting_service, payment_service, student, create_invoice, test_actor_id
    ):
        create_invoice(student.id, amount=50000)
        payment_service.record_payment(student.id, 65000, "MPESA", date(2026, 1, 15), test_actor_id)

        report = reporting_service.balance_sheet()

        assert report.is_balanced
        assert reporting_service.account_balance("1100") == -15000
        assert reporting_service.account_balance("1020") == 65000
        assert reporting_service.net_income() == 50000

    def test_generation_is_logged(self, reporting_service, captured_logs):
        reporting_service.balance_sheet()

        records = [r for r in captured_logs() if r["message"] == "balance_sheet_generated"]
        assert records and records[0]["is_balanced"] is True


class TestExcludedEntries:

    def test_pending_entry_not_reported(self, reporting_service, post):
        post("1020", "4200", 5000, requires_approval=True)

        assert reporting_service.balance_sheet().total_assets == 0

    def test_voided_entry_and_its_reversal_not_reported(
        self, reporting_service, journal_service, post, test_actor_id
    ):
        posted = post("1020", "4200", 5000)
        journal_service.void(posted.entry_id, "Duplicate", test_actor_id)

        report = reporting_service.balance_sheet()

        assert report.total_assets == 0
        assert report.net_income == 0
        assert reporting_service.trial_balance().lines == ()


class TestTrialBalanceAndIncome:

    def test_trial_balance(self, reporting_service, school_books):
        report = reporting_service.trial_balance()

        assert report.is_balanced
        assert report.total_debits == report.total_credits == 230000
        assert [line.account_code for line in report.lines] == ["1020", "3010", "4010", "5010"]

    def test_trial_balance_period(self, reporting_service, post, school_books):
        post("1010", "4200", 7000, entry_date=date(2026, 2, 3))

        report = reporting_service.trial_balance(start_date=date(2026, 2, 1))

        assert [line.account_code for line in report.lines] == ["1010", "4200"]
        assert report.total_debits == 7000

    def test_income_summary(self, reporting_service, school_books):
        summary = reporting_service.income_summary()

        assert summary.total_revenue == 80000
        assert summary.total_expenses == 50000
        assert summary.net_income == 30000

    def test_unknown_account(self, reporting_service):
        with pytest.raises(AccountNotFoundError):
            reporting_service.account_balance("9999")


class TestRenderToDict:

    def test_balance_sheet_is_json_serializable(self, reporting_service, school_books):
        rendered = render_to_dict(reporting_service.balance_sheet())

        assert rendered["as_of_date"] == "2026-01-15"
        assert rendered["assets"]["lines"][0] == {
            "account_code": "1020",
            "account_name": "Bank Account - KCB",
            "balance": 130000,
        }
        assert json.loads(json.dumps(rendered))["is_balanced"] is True
