"""Synchro backend: proximity-driven activity synchronicity service."""
