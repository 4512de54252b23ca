"""Shared helpers: logging setup and random generators."""
