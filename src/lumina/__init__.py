"""Lumina desktop shell: tool search, tool saver, and the window that hosts them."""

__version__ = "0.1.0"
