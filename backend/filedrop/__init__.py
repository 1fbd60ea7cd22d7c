"""File drop service: upload a file, get a shareable link."""

__version__ = "1.0.0"
