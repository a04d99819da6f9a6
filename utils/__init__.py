"""Shared helpers: retry with backoff and keyed locks."""
