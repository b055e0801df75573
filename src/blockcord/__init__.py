"""Run Discord slash commands authored in a visual block builder."""

__version__ = "0.1.0"
