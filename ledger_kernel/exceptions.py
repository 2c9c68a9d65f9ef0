"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (IPC handlers, batch jobs, tests) must be able to tell
a rejected payment from an unbalanced entry without parsing message text.
Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, copied onto result objects)
  3. Structured DATA attributes (amounts, ids, codes)

Inside the core these exceptions are raised freely.  At the public operation
boundary (service methods) they are converted into result objects with
``success=False``, ``error=str(exc)`` and ``error_code=exc.code``, so no
expected failure crosses into the caller as an exception.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- LedgerValidationError
    |   +-- EmptyEntryError
    |   +-- InvalidLineError
    |   +-- UnbalancedEntryError
    |   +-- NonPositiveAmountError
    |   +-- MissingFieldError
    |   +-- InvalidDateRangeError
    |
    +-- SubjectError
    |   +-- StudentNotFoundError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- AccountInactiveError
    |   +-- DuplicateAccountError
    |
    +-- JournalEntryError
    |   +-- EntryNotFoundError
    |   +-- EntryAlreadyVoidedError
    |   +-- CannotVoidReversalError
    |   +-- EntryPendingApprovalError
    |
    +-- ApprovalError
    |   +-- ApprovalRequestNotFoundError
    |   +-- ApprovalNotPendingError
    |   +-- RejectionNotesRequiredError
    |
    +-- InvoiceError
    |   +-- InvoiceNotFoundError
    |   +-- InvoiceOwnershipError
    |   +-- InvoiceNotAllocatableError
    |   +-- OverpaymentError
    |   +-- InvoiceHasPaymentsError
    |
    +-- PaymentError
    |   +-- TransactionNotFoundError
    |   +-- TransactionAlreadyVoidedError
    |   +-- ReceiptNotFoundError
    |
    +-- CreditError
        +-- NoCreditBalanceError
        +-- NoOutstandingInvoicesError
        +-- InsufficientCreditError
        +-- CreditTransactionNotFoundError
        +-- CreditNotReversibleError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | EMPTY_ENTRY                 | Journal entry has no lines
                | INVALID_LINE                | Line has both/neither debit and credit
                | UNBALANCED_ENTRY            | Debits != Credits
                | INVALID_AMOUNT              | Amount is zero or negative
                | MISSING_FIELD               | Required input missing or blank
                | INVALID_DATE_RANGE          | Due date before invoice date
----------------|-----------------------------|-----------------------------------------
Subject         | STUDENT_NOT_FOUND           | Student id doesn't exist
----------------|-----------------------------|-----------------------------------------
Account         | ACCOUNT_NOT_FOUND           | Account code doesn't exist
                | ACCOUNT_INACTIVE            | Account is deactivated
                | DUPLICATE_ACCOUNT           | Account code already exists
----------------|-----------------------------|-----------------------------------------
Journal         | ENTRY_NOT_FOUND             | Journal entry id doesn't exist
                | ENTRY_ALREADY_VOIDED        | Entry was already voided
                | CANNOT_VOID_REVERSAL        | Voiding a VOID_REVERSAL entry
                | ENTRY_PENDING_APPROVAL      | Entry has an open approval request
----------------|-----------------------------|-----------------------------------------
Approval        | APPROVAL_NOT_FOUND          | Approval request id doesn't exist
                | APPROVAL_NOT_PENDING        | Request already approved/rejected
                | REJECTION_NOTES_REQUIRED    | Rejection without a note
----------------|-----------------------------|-----------------------------------------
Invoice         | INVOICE_NOT_FOUND           | Invoice id doesn't exist
                | INVOICE_OWNERSHIP           | Invoice belongs to another student
                | INVOICE_NOT_ALLOCATABLE     | Invoice is PAID or CANCELLED
                | OVERPAYMENT                 | Amount exceeds invoice outstanding
                | INVOICE_HAS_PAYMENTS        | Cancelling an invoice with payments
----------------|-----------------------------|-----------------------------------------
Payment         | TRANSACTION_NOT_FOUND       | Ledger transaction id doesn't exist
                | TRANSACTION_ALREADY_VOIDED  | Payment was already voided
                | RECEIPT_NOT_FOUND           | Receipt id doesn't exist
----------------|-----------------------------|-----------------------------------------
Credit          | NO_CREDIT_BALANCE           | Nothing to allocate
                | NO_OUTSTANDING_INVOICES     | Nothing to allocate against
                | INSUFFICIENT_CREDIT         | Credit balance below requested amount
                | CREDIT_NOT_FOUND            | Credit transaction id doesn't exist
                | CREDIT_NOT_REVERSIBLE       | Only CREDIT_RECEIVED rows reverse
----------------|-----------------------------|-----------------------------------------

Storage faults are not represented here: they surface as
``sqlalchemy.exc.SQLAlchemyError`` and are reported with the
``STORAGE_ERROR`` code after a full rollback.
"""

from datetime import date

STORAGE_ERROR_CODE = "STORAGE_ERROR"


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation


class LedgerValidationError(LedgerError):
    """Malformed or out-of-range input, rejected before any write."""

    code: str = "VALIDATION_ERROR"


class EmptyEntryError(LedgerValidationError):
    """Journal entry submitted without lines."""

    code: str = "EMPTY_ENTRY"

    def __init__(self):
        super().__init__("Journal entry must have at least one line")


class InvalidLineError(LedgerValidationError):
    """A line must carry exactly one positive side."""

    code: str = "INVALID_LINE"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")


class UnbalancedEntryError(LedgerValidationError):
    """Sum of debits does not equal sum of credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, total_debits: int, total_credits: int):
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(
            f"Journal entry is not balanced: debits {total_debits} != credits {total_credits}"
        )


class NonPositiveAmountError(LedgerValidationError):
    """Monetary amount must be a positive integer of minor units."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: int, what: str = "Amount"):
        self.amount = amount
        self.what = what
        super().__init__(f"{what} must be positive")


class MissingFieldError(LedgerValidationError):
    """A required input field is missing or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class InvalidDateRangeError(LedgerValidationError):
    """An end date falls before its start date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: date, end: date, what: str = "Due date"):
        self.start = start
        self.end = end
        super().__init__(f"{what} {end} is before {start}")


# Subjects


class SubjectError(LedgerError):
    """Base exception for account-holder lookups."""

    code: str = "SUBJECT_ERROR"


class StudentNotFoundError(SubjectError):
    """Student with given id was not found."""

    code: str = "STUDENT_NOT_FOUND"

    def __init__(self, student_id: int):
        self.student_id = student_id
        super().__init__(f"Student with ID {student_id} not found")


# Accounts


class AccountError(LedgerError):
    """Base exception for chart-of-accounts errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account code does not exist."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Invalid GL account: {account_code}")


class AccountInactiveError(AccountError):
    """Account exists but has been deactivated."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"GL account {account_code} is inactive")


class DuplicateAccountError(AccountError):
    """Account code is already in the chart of accounts."""

    code: str = "DUPLICATE_ACCOUNT"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"GL account {account_code} already exists")


# Journal entries


class JournalEntryError(LedgerError):
    """Base exception for journal entry state errors."""

    code: str = "JOURNAL_ENTRY_ERROR"


class EntryNotFoundError(JournalEntryError):
    """Journal entry id does not exist."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class EntryAlreadyVoidedError(JournalEntryError):
    """Journal entry has already been voided."""

    code: str = "ENTRY_ALREADY_VOIDED"

    def __init__(self, entry_id: int, entry_ref: str):
        self.entry_id = entry_id
        self.entry_ref = entry_ref
        super().__init__(f"Journal entry {entry_ref} is already voided")


class CannotVoidReversalError(JournalEntryError):
    """Reversal entries are corrections and cannot themselves be voided."""

    code: str = "CANNOT_VOID_REVERSAL"

    def __init__(self, entry_id: int, entry_ref: str):
        self.entry_id = entry_id
        self.entry_ref = entry_ref
        super().__init__(f"Journal entry {entry_ref} is a reversal and cannot be voided")


class EntryPendingApprovalError(JournalEntryError):
    """Journal entry has an open approval request."""

    code: str = "ENTRY_PENDING_APPROVAL"

    def __init__(self, entry_id: int, entry_ref: str):
        self.entry_id = entry_id
        self.entry_ref = entry_ref
        super().__init__(f"Journal entry {entry_ref} is awaiting approval")


# Approvals


class ApprovalError(LedgerError):
    """Base exception for approval workflow errors."""

    code: str = "APPROVAL_ERROR"


class ApprovalRequestNotFoundError(ApprovalError):
    """Approval request id does not exist."""

    code: str = "APPROVAL_NOT_FOUND"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Approval request not found: {request_id}")


class ApprovalNotPendingError(ApprovalError):
    """Approval request was already decided."""

    code: str = "APPROVAL_NOT_PENDING"

    def __init__(self, request_id: int, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(f"Approval request {request_id} is already {status}")


class RejectionNotesRequiredError(ApprovalError):
    """Rejecting requires an explanatory note."""

    code: str = "REJECTION_NOTES_REQUIRED"

    def __init__(self):
        super().__init__("Review notes are required when rejecting")


# Invoices


class InvoiceError(LedgerError):
    """Base exception for invoice errors."""

    code: str = "INVOICE_ERROR"


class InvoiceNotFoundError(InvoiceError):
    """Invoice id does not exist."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: int):
        self.invoice_id = invoice_id
        super().__init__("Invoice not found.")


class InvoiceOwnershipError(InvoiceError):
    """Invoice is billed to a different student."""

    code: str = "INVOICE_OWNERSHIP"

    def __init__(self, invoice_id: int, student_id: int):
        self.invoice_id = invoice_id
        self.student_id = student_id
        super().__init__("Invoice does not belong to the selected student.")


class InvoiceNotAllocatableError(InvoiceError):
    """Invoice status does not accept further payments."""

    code: str = "INVOICE_NOT_ALLOCATABLE"

    def __init__(self, invoice_number: str, status: str):
        self.invoice_number = invoice_number
        self.status = status
        super().__init__(f"Invoice {invoice_number} is {status} and cannot accept payments")


class OverpaymentError(InvoiceError):
    """Amount exceeds the invoice's outstanding balance."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_number: str, amount: int, outstanding: int):
        self.invoice_number = invoice_number
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Amount {amount} exceeds outstanding balance {outstanding} "
            f"on invoice {invoice_number}"
        )


class InvoiceHasPaymentsError(InvoiceError):
    """Invoices with payments applied cannot be cancelled."""

    code: str = "INVOICE_HAS_PAYMENTS"

    def __init__(self, invoice_number: str, amount_paid: int):
        self.invoice_number = invoice_number
        self.amount_paid = amount_paid
        super().__init__(
            f"Invoice {invoice_number} has {amount_paid} applied; void the payments first"
        )


# Payments


class PaymentError(LedgerError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class TransactionNotFoundError(PaymentError):
    """Ledger transaction id does not exist."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__("Transaction not found or already voided")


class TransactionAlreadyVoidedError(PaymentError):
    """Ledger transaction has already been voided."""

    code: str = "TRANSACTION_ALREADY_VOIDED"

    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__("Transaction not found or already voided")


class ReceiptNotFoundError(PaymentError):
    """Receipt id does not exist."""

    code: str = "RECEIPT_NOT_FOUND"

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt not found: {receipt_id}")


# Credit


class CreditError(LedgerError):
    """Base exception for student credit ledger errors."""

    code: str = "CREDIT_ERROR"


class NoCreditBalanceError(CreditError):
    """Student has no positive credit balance."""

    code: str = "NO_CREDIT_BALANCE"

    def __init__(self, student_id: int, balance: int):
        self.student_id = student_id
        self.balance = balance
        super().__init__("No credit balance available for allocation")


class NoOutstandingInvoicesError(CreditError):
    """Student has no invoices with an outstanding balance."""

    code: str = "NO_OUTSTANDING_INVOICES"

    def __init__(self, student_id: int):
        self.student_id = student_id
        super().__init__("No outstanding invoices to apply credit to")


class InsufficientCreditError(CreditError):
    """Credit balance is below the requested amount."""

    code: str = "INSUFFICIENT_CREDIT"

    def __init__(self, student_id: int, balance: int, requested: int):
        self.student_id = student_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient credit balance: available {balance}, requested {requested}"
        )


class CreditTransactionNotFoundError(CreditError):
    """Credit transaction id does not exist."""

    code: str = "CREDIT_NOT_FOUND"

    def __init__(self, credit_id: int):
        self.credit_id = credit_id
        super().__init__(f"Credit transaction not found: {credit_id}")


class CreditNotReversibleError(CreditError):
    """Only CREDIT_RECEIVED rows can be reversed."""

    code: str = "CREDIT_NOT_REVERSIBLE"

    def __init__(self, credit_id: int, transaction_type: str):
        self.credit_id = credit_id
        self.transaction_type = transaction_type
        super().__init__("Only received credits can be reversed")
