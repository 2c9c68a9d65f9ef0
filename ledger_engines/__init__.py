"""
Ledger engines: pure calculations with no I/O.

- allocation: invoice priority strategies and greedy allocation plans
- approval: rule-based approval policy
- credit: credit ledger sign convention and balance fold
"""
