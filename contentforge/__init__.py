"""ContentForge: multi-variant content generation and scheduled social publishing."""

__version__ = "1.0.0"
