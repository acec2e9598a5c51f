"""Adapters connecting the board to external systems."""
