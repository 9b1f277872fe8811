"""Integration gate for a fast-forward-only dmz -> main branch policy."""

__version__ = "0.1.0"
