"""HTTP API for Nexa Search."""
