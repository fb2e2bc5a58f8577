"""Chat channel adapters."""
