"""Pluggable build-task launcher."""

__version__ = "0.3.0"
