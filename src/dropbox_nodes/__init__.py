"""Dropbox file tree to graph node synchronization."""

__version__ = "0.1.0"
