"""Quill - natural-language editing assistant for Markdown vaults."""

__version__ = "0.1.0"
