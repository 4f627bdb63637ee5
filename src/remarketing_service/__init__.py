"""Abandoned checkout remarketing service."""

__version__ = "1.0.0"
