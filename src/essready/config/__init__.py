"""Configuration loading for essready."""
