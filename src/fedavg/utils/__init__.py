"""
Shared utilities module.
"""

from .logger import JSONFormatter, configure_logging, get_logger, log_event, setup_logger

__all__ = ["JSONFormatter", "configure_logging", "get_logger", "log_event", "setup_logger"]
