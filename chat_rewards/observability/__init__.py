"""Metrics and log correlation."""
