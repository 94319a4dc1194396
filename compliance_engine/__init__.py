"""Compliance document lifecycle and expiry engine."""
