"""Synchronicity scoring, deduplication and periodic scanning."""
