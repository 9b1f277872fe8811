"""Utility functions."""

from .logging import setup_logging, get_logger
from .summary import (
    STATUS_MARKER,
    render_summary,
    render_tracking_issue,
    render_revert_notice,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "STATUS_MARKER",
    "render_summary",
    "render_tracking_issue",
    "render_revert_notice",
]
