"""Kernel utilities: idempotency key handling and reference numbers."""
