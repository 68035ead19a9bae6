"""Chain-family specific mechanisms."""
