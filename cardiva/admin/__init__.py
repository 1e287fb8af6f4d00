"""Administrator operations."""
