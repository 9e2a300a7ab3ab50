"""SUPS: asynchronous daily stand-ups for Slack."""

__version__ = "1.0.0"
