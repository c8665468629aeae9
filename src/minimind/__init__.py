"""MiniMind: local-first personal task manager."""

__version__ = "0.1.0"
