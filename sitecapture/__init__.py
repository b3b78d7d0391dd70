"""Breadth-first site crawler that captures every visited page as a screenshot or video."""

__version__ = "0.1.0"
