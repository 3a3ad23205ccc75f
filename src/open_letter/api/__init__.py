"""HTTP API for the open letter service."""
