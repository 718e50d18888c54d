"""Depot - a sandboxed remote view of one directory tree."""

__version__ = "0.1.0"
