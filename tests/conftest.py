"""
Pytest fixtures for the school ledger test suite.

Provides:
- A fresh in-memory SQLite database per test (tables created, chart of
  accounts seeded from the packaged default configuration)
- A deterministic clock pinned to 2026-01-15 09:00 UTC
- Service factories wired to the same session and clock
- Student and invoice factories
- Captured structured logs
"""

import json
import logging
from datetime import date, timedelta
from io import StringIO

import pytest

from ledger_config import get_active_config
from ledger_config.bridges import (
    build_approval_policy,
    build_system_accounts,
    seed_chart_of_accounts,
)
from ledger_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.student import Student
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.approval_service import ApprovalService
from ledger_kernel.services.journal_service import JournalService
from ledger_modules.credit.service import CreditService
from ledger_modules.receivables.invoice_service import InvoiceService
from ledger_modules.receivables.models import InvoiceItem
from ledger_modules.receivables.payment_service import PaymentService
from ledger_modules.reporting.service import ReportingService

# Actor id for all test operations
TEST_ACTOR_ID = 1


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, payment_service):
            payment_service.record_payment(...)
            logs = captured_logs()
            assert any(r["message"] == "payment_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """In-memory database with every kernel and module table created."""
    eng = init_engine_from_url("sqlite://")
    create_tables()
    yield eng
    reset_engine()


@pytest.fixture
def ledger_config():
    return get_active_config()


@pytest.fixture
def bare_session(engine):
    """Session on an empty schema (no accounts)."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def session(bare_session, ledger_config):
    """Session with the default chart of accounts seeded and committed."""
    seed_chart_of_accounts(bare_session, ledger_config, actor_id=TEST_ACTOR_ID)
    bare_session.commit()
    return bare_session


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def system_accounts(ledger_config):
    return build_system_accounts(ledger_config)


@pytest.fixture
def approval_policy(ledger_config):
    return build_approval_policy(ledger_config)


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def journal_service(session, clock, system_accounts):
    """Posting engine without an approval policy."""
    return JournalService(session, clock=clock, system_accounts=system_accounts)


@pytest.fixture
def gated_journal_service(session, clock, system_accounts, approval_policy):
    """Posting engine with the configured approval rules."""
    return JournalService(
        session,
        clock=clock,
        approval_policy=approval_policy,
        system_accounts=system_accounts,
    )


@pytest.fixture
def approval_service(session, clock):
    return ApprovalService(session, clock=clock)


@pytest.fixture
def account_service(session, clock):
    return AccountService(session, clock=clock)


@pytest.fixture
def invoice_service(session, clock, system_accounts):
    return InvoiceService(session, clock=clock, system_accounts=system_accounts)


@pytest.fixture
def payment_service(session, clock, system_accounts):
    return PaymentService(session, clock=clock, system_accounts=system_accounts)


@pytest.fixture
def credit_service(session, clock, system_accounts):
    return CreditService(session, clock=clock, system_accounts=system_accounts)


@pytest.fixture
def reporting_service(session, clock):
    return ReportingService(session, clock=clock)


@pytest.fixture
def ledger_selector(session):
    return LedgerSelector(session)


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def create_student(session):
    """Factory inserting a student and committing."""
    counter = {"n": 0}

    def _create(first_name: str = "Amina", last_name: str = "Otieno") -> Student:
        counter["n"] += 1
        student = Student(
            admission_number=f"ADM-{counter['n']:04d}",
            first_name=first_name,
            last_name=last_name,
            is_active=True,
            credit_balance=0,
        )
        session.add(student)
        session.commit()
        return student

    return _create


@pytest.fixture
def student(create_student):
    return create_student()


@pytest.fixture
def create_invoice(invoice_service, clock):
    """
    Factory raising an invoice through InvoiceService.

    Each call advances the clock past the replay window so two identical
    invoices are both created.
    """

    def _create(
        student_id: int,
        amount: int = 50000,
        due_date: date | None = None,
        invoice_date: date | None = None,
        items: list[InvoiceItem] | None = None,
        term_id: int | None = 1,
    ):
        invoice_date = invoice_date or clock.today()
        result = invoice_service.create_invoice(
            student_id=student_id,
            items=items or [InvoiceItem(fee_category_id=1, description="Tuition", amount=amount)],
            invoice_date=invoice_date,
            due_date=due_date or invoice_date + timedelta(days=30),
            created_by_id=TEST_ACTOR_ID,
            term_id=term_id,
        )
        assert result.success, result.message
        clock.advance(60)
        return result

    return _create
