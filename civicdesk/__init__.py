"""Civic issue intake and lifecycle backend."""

__version__ = "0.1.0"
