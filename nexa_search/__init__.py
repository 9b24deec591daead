"""Nexa Search: multi-table search service."""
