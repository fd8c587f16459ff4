"""Password-protected text and file drops behind short links."""

__version__ = "1.0.0"
