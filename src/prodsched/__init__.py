"""Data pipeline and timeline model for a production-scheduling dashboard."""

__version__ = "0.1.0"
