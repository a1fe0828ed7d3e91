"""Shared helpers that do not touch the browser."""
