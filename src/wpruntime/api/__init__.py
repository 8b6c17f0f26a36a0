"""HTTP API for the WordPress runtime."""
