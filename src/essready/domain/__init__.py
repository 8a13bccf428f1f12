"""Domain types and pure classification rules."""
