"""Invoice background tasks."""
