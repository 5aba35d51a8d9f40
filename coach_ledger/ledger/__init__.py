"""Fingerprinting and idempotent ledger synchronization."""
