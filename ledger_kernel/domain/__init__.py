"""Pure domain types for the ledger kernel: clock, approval rules, line specs."""
