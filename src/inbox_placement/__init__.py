"""Inbox placement testing: find where a probe email landed at each provider."""

__version__ = "0.3.0"
