"""
School finance modules built on the ledger kernel.

- receivables: invoices, payments, receipts, payment allocation, replay guard
- credit: student credit ledger and auto-application
- reporting: balance sheet, trial balance, net income
"""
