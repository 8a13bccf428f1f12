"""Command-line interface for essready."""
