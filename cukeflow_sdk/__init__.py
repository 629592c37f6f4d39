"""Shared helpers for the cukeflow execution engine."""
