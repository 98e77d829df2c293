"""Concurrent page checker: one URL per identifier, one CSV row per result."""

__version__ = "0.1.0"
