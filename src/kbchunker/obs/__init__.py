"""Run observability: NDJSON event log."""
