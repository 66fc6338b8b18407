"""Read-only SQL gate for BI query generation."""

__version__ = "0.1.0"
