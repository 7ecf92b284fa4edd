"""Shared helpers used across the collector."""
