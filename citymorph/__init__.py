"""Procedural urban blocks and building massing."""

__version__ = "0.1.0"
