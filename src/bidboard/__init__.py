"""Bidboard - collections marketplace with owner-controlled bidding."""

__version__ = "0.1.0"
