"""Schema contracts and reason codes."""
