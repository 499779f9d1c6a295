"""HTTP API for the benefits engine."""
