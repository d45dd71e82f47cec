"""HTTP API for the host application."""
