"""Neighbourly-help karma ledger."""
