"""Command surfaces."""
