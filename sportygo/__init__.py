"""Sharded vote counting and invite lifecycle for SportyGo groups."""

__version__ = "0.1.0"
