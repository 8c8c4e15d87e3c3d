"""Trakt watch-history import and synchronization engine."""

__version__ = "0.3.0"
