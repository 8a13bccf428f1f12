"""Adapters for the health-check endpoint and the local host."""
