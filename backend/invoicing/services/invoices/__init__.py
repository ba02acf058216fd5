"""Invoice domain services."""
