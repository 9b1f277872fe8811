"""Logging utilities."""

import logging
import sys
from typing import Optional, TextIO

# Third-party loggers that are chatty at INFO/DEBUG
NOISY_LOGGERS = ("github", "urllib3")


def setup_logging(
    level: int = logging.INFO,
    format_str: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Setup logging for the integration gate.

    Args:
        level: Logging level (default: INFO)
        format_str: Custom format string
        stream: Output stream (default: stdout). The CLI passes stderr
            when stdout carries JSON output.

    Returns:
        Configured logger
    """
    if format_str is None:
        format_str = "[%(asctime)s] %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(stream or sys.stdout)
        ]
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger = logging.getLogger("integration_gate")
    logger.setLevel(level)

    return logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """
    Get the gate logger, or a child logger for one component.

    Args:
        component: Optional suffix, e.g. "revert" -> integration_gate.revert
    """
    name = "integration_gate" if not component else f"integration_gate.{component}"
    return logging.getLogger(name)
