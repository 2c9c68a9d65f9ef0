"""
Ledger Kernel - double-entry core for school finance.

Provides:
- Balanced journal posting with reversal-only corrections
- An approval gate for posts and voids
- Atomic, single-writer transactions over an embedded store
- Structured JSON logging and typed errors
"""

__version__ = "0.1.0"
