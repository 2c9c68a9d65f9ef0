"""
CreditService: the append-only credit ledger and its application to invoices.
"""

from datetime import date

import pytest
from sqlalchemy import select

from ledger_kernel.models.journal import JournalEntry
from ledger_modules.credit.orm import CreditTransactionModel
from ledger_modules.receivables.orm import InvoiceModel, LedgerTransactionModel


@pytest.fixture
def credited_student(student, credit_service, test_actor_id):
    result = credit_service.add_credit(student.id, 70000, test_actor_id, notes="Sibling transfer")
    assert result.success
    return student


class TestBalance:

    def test_new_student_has_zero(self, credit_service, student):
        assert credit_service.balance(student.id) == 0

    def test_add_credit(self, credit_service, student, test_actor_id):
        result = credit_service.add_credit(student.id, 2500, test_actor_id)

        assert result.success
        assert result.new_balance == 2500
        assert student.credit_balance == 2500
        row = credit_service.get_transactions(student.id)[0]
        assert row.transaction_type == "CREDIT_RECEIVED"
        assert row.notes == "Manual credit adjustment"
        assert row.signed_amount == 2500

    def test_add_non_positive_rejected(self, credit_service, student, test_actor_id):
        assert credit_service.add_credit(student.id, 0, test_actor_id).error_code == "INVALID_AMOUNT"

    def test_add_for_unknown_student(self, credit_service, test_actor_id):
        assert credit_service.add_credit(404, 10, test_actor_id).error_code == "STUDENT_NOT_FOUND"

    def test_transactions_newest_first_and_capped(self, credit_service, student, test_actor_id):
        for amount in (100, 200, 300):
            credit_service.add_credit(student.id, amount, test_actor_id)

        rows = credit_service.get_transactions(student.id, limit=2)

        assert [r.amount for r in rows] == [300, 200]


class TestAllocate:

    def test_spreads_over_invoices_by_due_date(
        self, session, credit_service, credited_student, create_invoice, test_actor_id
    ):
        first = create_invoice(credited_student.id, amount=50000, due_date=date(2026, 2, 1))
        second = create_invoice(credited_student.id, amount=30000, due_date=date(2026, 2, 15))

        result = credit_service.allocate(credited_student.id, test_actor_id)

        assert result.success
        assert result.total_credit_applied == 70000
        assert result.invoices_affected == 2
        assert result.remaining_balance == 0
        first_row = session.get(InvoiceModel, first.invoice_id)
        second_row = session.get(InvoiceModel, second.invoice_id)
        assert (first_row.amount_paid, first_row.status) == (50000, "PAID")
        assert (second_row.amount_paid, second_row.status) == (20000, "PARTIAL")

    def test_one_applied_row_per_invoice(
        self, session, credit_service, credited_student, create_invoice, test_actor_id
    ):
        first = create_invoice(credited_student.id, amount=50000, due_date=date(2026, 2, 1))
        second = create_invoice(credited_student.id, amount=30000, due_date=date(2026, 2, 15))

        credit_service.allocate(credited_student.id, test_actor_id)

        applied = session.scalars(
            select(CreditTransactionModel)
            .where(CreditTransactionModel.transaction_type == "CREDIT_APPLIED")
            .order_by(CreditTransactionModel.id)
        ).all()
        assert [(r.reference_invoice_id, r.amount) for r in applied] == [
            (first.invoice_id, 50000),
            (second.invoice_id, 20000),
        ]

    def test_single_consolidated_journal_entry(
        self, session, credit_service, credited_student, create_invoice, test_actor_id
    ):
        create_invoice(credited_student.id, amount=50000, due_date=date(2026, 2, 1))
        create_invoice(credited_student.id, amount=30000, due_date=date(2026, 2, 15))

        result = credit_service.allocate(credited_student.id, test_actor_id)

        entry = session.get(JournalEntry, result.journal_entry_id)
        assert entry.entry_type == "CREDIT_APPLICATION"
        assert [(ln.account.code, ln.debit_amount, ln.credit_amount) for ln in entry.lines] == [
            ("1100", 70000, 0),
            ("2020", 0, 70000),
        ]

    def test_partial_use_leaves_remaining_balance(
        self, credit_service, credited_student, create_invoice, test_actor_id
    ):
        create_invoice(credited_student.id, amount=25000)

        result = credit_service.allocate(credited_student.id, test_actor_id)

        assert result.total_credit_applied == 25000
        assert result.remaining_balance == 45000
        assert credited_student.credit_balance == 45000

    def test_overdue_invoice_before_earlier_created_current(
        self, session, credit_service, credited_student, create_invoice, test_actor_id
    ):
        current = create_invoice(credited_student.id, amount=60000, due_date=date(2026, 2, 1))
        overdue = create_invoice(
            credited_student.id,
            amount=60000,
            invoice_date=date(2025, 11, 1),
            due_date=date(2025, 12, 1),
        )

        result = credit_service.allocate(credited_student.id, test_actor_id)

        assert [a.invoice_id for a in result.allocations] == [
            overdue.invoice_id,
            current.invoice_id,
        ]
        assert session.get(InvoiceModel, current.invoice_id).amount_paid == 10000

    def test_no_balance(self, credit_service, student, create_invoice, test_actor_id):
        create_invoice(student.id)

        assert credit_service.allocate(student.id, test_actor_id).error_code == "NO_CREDIT_BALANCE"

    def test_no_outstanding_invoices(self, credit_service, credited_student, test_actor_id):
        result = credit_service.allocate(credited_student.id, test_actor_id)

        assert result.error_code == "NO_OUTSTANDING_INVOICES"
        assert credit_service.balance(credited_student.id) == 70000

    def test_cache_matches_fold_after_every_operation(
        self, credit_service, payment_service, credited_student, create_invoice, test_actor_id
    ):
        create_invoice(credited_student.id, amount=30000)
        credit_service.allocate(credited_student.id, test_actor_id)
        assert credited_student.credit_balance == credit_service.balance(credited_student.id)

        payment_service.record_payment(
            credited_student.id, 9000, "CASH", date(2026, 1, 15), test_actor_id
        )
        assert credited_student.credit_balance == credit_service.balance(credited_student.id) == 49000


class TestReverseCredit:

    def test_reverse_received_credit(self, credit_service, student, test_actor_id):
        added = credit_service.add_credit(student.id, 4000, test_actor_id)

        result = credit_service.reverse_credit(
            added.credit_transaction_id, "Posted to wrong student", test_actor_id
        )

        assert result.success
        assert result.new_balance == 0
        rows = credit_service.get_transactions(student.id)
        assert [r.transaction_type for r in rows] == ["CREDIT_REFUNDED", "CREDIT_RECEIVED"]

    def test_applied_row_not_reversible(
        self, session, credit_service, credited_student, create_invoice, test_actor_id
    ):
        create_invoice(credited_student.id, amount=1000)
        credit_service.allocate(credited_student.id, test_actor_id)
        applied = session.scalars(
            select(CreditTransactionModel).where(
                CreditTransactionModel.transaction_type == "CREDIT_APPLIED"
            )
        ).one()

        result = credit_service.reverse_credit(applied.id, "Nope", test_actor_id)

        assert result.error_code == "CREDIT_NOT_REVERSIBLE"

    def test_spent_credit_cannot_be_reversed(
        self, credit_service, credited_student, create_invoice, test_actor_id
    ):
        original = credit_service.get_transactions(credited_student.id)[0]
        create_invoice(credited_student.id, amount=50000)
        credit_service.allocate(credited_student.id, test_actor_id)

        result = credit_service.reverse_credit(original.id, "Too late", test_actor_id)

        assert result.error_code == "INSUFFICIENT_CREDIT"
        assert credit_service.balance(credited_student.id) == 20000

    def test_reason_required(self, credit_service, student, test_actor_id):
        added = credit_service.add_credit(student.id, 100, test_actor_id)

        result = credit_service.reverse_credit(added.credit_transaction_id, "", test_actor_id)

        assert result.error_code == "MISSING_FIELD"

    def test_unknown_row(self, credit_service, test_actor_id):
        assert credit_service.reverse_credit(99, "x", test_actor_id).error_code == (
            "CREDIT_NOT_FOUND"
        )


class TestPayWithCredit:

    def test_pays_one_invoice(
        self, session, credit_service, credited_student, create_invoice, test_actor_id
    ):
        invoice = create_invoice(credited_student.id, amount=50000)

        result = credit_service.pay_with_credit(
            credited_student.id, invoice.invoice_id, 20000, test_actor_id
        )

        assert result.success
        assert result.new_balance == 50000
        assert result.receipt_number.startswith("RCP-")
        txn = session.get(LedgerTransactionModel, result.transaction_id)
        assert (txn.transaction_type, txn.payment_reference) == ("CREDIT_PAYMENT", "CREDIT_BALANCE")
        row = session.get(InvoiceModel, invoice.invoice_id)
        assert (row.amount_paid, row.status) == (20000, "PARTIAL")

    def test_more_than_balance_rejected(
        self, credit_service, credited_student, create_invoice, test_actor_id
    ):
        invoice = create_invoice(credited_student.id, amount=90000)

        result = credit_service.pay_with_credit(
            credited_student.id, invoice.invoice_id, 80000, test_actor_id
        )

        assert result.error_code == "INSUFFICIENT_CREDIT"

    def test_more_than_outstanding_rejected(
        self, credit_service, credited_student, create_invoice, test_actor_id
    ):
        invoice = create_invoice(credited_student.id, amount=10000)

        result = credit_service.pay_with_credit(
            credited_student.id, invoice.invoice_id, 15000, test_actor_id
        )

        assert result.error_code == "OVERPAYMENT"
        assert credit_service.balance(credited_student.id) == 70000

    def test_duplicate_request_replayed(
        self, session, credit_service, credited_student, create_invoice, clock, test_actor_id
    ):
        invoice = create_invoice(credited_student.id, amount=50000)
        first = credit_service.pay_with_credit(
            credited_student.id, invoice.invoice_id, 10000, test_actor_id
        )
        clock.advance(5)

        second = credit_service.pay_with_credit(
            credited_student.id, invoice.invoice_id, 10000, test_actor_id
        )

        assert second.replayed
        assert second.transaction_id == first.transaction_id
        assert credit_service.balance(credited_student.id) == 60000

    def test_voiding_credit_payment_restores_balance(
        self, session, credit_service, payment_service, credited_student, create_invoice,
        test_actor_id,
    ):
        invoice = create_invoice(credited_student.id, amount=50000)
        paid = credit_service.pay_with_credit(
            credited_student.id, invoice.invoice_id, 30000, test_actor_id
        )

        result = payment_service.void_payment(paid.transaction_id, "Parent paid cash", test_actor_id)

        assert result.success
        assert result.credit_adjustment == 30000
        assert credit_service.balance(credited_student.id) == 70000
        row = session.get(InvoiceModel, invoice.invoice_id)
        assert (row.amount_paid, row.status) == (0, "PENDING")
