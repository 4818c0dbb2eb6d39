"""Dimension-aware taxonomy maintenance: prune, populate, import, export."""

__version__ = "0.3.0"
