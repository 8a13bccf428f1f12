"""Validation orchestration and reporting."""
