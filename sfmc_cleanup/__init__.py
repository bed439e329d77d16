"""Safety-gated bulk deletion of Marketing Cloud folders and data extensions."""

__version__ = "1.0.0"
