"""Logging-side helpers: error log file and redaction."""
