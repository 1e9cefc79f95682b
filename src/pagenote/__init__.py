"""Client for a hosted notebook of nested Markdown pages."""

__version__ = "0.1.0"
