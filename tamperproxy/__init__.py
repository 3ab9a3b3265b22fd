"""Conditions, handlers and filters for building a programmable HTTP proxy."""

__version__ = "0.1.0"