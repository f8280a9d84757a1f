"""Nutrition logging pipeline: capture, ledger, statistics."""
