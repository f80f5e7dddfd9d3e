"""GitHub REST transport adapters."""
