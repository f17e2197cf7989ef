"""Catalog helpers: form validation/sanitization and CLI output formatting."""
