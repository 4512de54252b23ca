"""HTTP API for round generation sessions."""
