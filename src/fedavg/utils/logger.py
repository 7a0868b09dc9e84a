"""
Structured JSON Logging

One JSON object per line for every protocol role. Loggers live under the
``fedavg`` hierarchy, one per component:

    fedavg.coordinator, fedavg.client, fedavg.transport, fedavg.simulation

Protocol events carry their round and client ids as top-level keys so a
federation's logs can be filtered per round or per client.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional


ROOT_LOGGER_NAME = "fedavg"

COMPONENTS = ("coordinator", "client", "transport", "simulation")

# Record attributes copied to top-level JSON keys when set
STRUCTURED_FIELDS = ("event", "round_id", "client_id")


def _component_of(logger: logging.Logger) -> str:
    parts = logger.name.split(".")
    if len(parts) > 1 and parts[0] == ROOT_LOGGER_NAME:
        return parts[1]
    return "unknown"


class JSONFormatter(logging.Formatter):
    """Renders a log record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "component": getattr(record, "component", "unknown"),
            "module": record.module,
            "message": record.getMessage(),
        }

        for name in STRUCTURED_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)

        entry.update(getattr(record, "extra_fields", {}))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # numpy scalars and paths fall back to str
        return json.dumps(entry, sort_keys=True, default=str)


def setup_logger(
    component: str,
    log_dir: Optional[str] = None,
    log_level: str = "INFO"
) -> logging.Logger:
    """
    Set up the JSON logger of one component.

    Calling it again replaces the component's handlers, so a service can
    reconfigure logging after module-level loggers were created.

    Args:
        component: Component name, one of COMPONENTS
        log_dir: Directory for ``<component>.json.log`` (stdout only if None)
        log_level: Level name for the component logger

    Returns:
        The component logger
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = JSONFormatter()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(directory / f"{component}.json.log")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def configure_logging(
    log_dir: Optional[str] = None,
    log_level: str = "INFO",
    components: Iterable[str] = COMPONENTS
) -> None:
    """Set up every component logger with the same directory and level."""
    for component in components:
        setup_logger(component, log_dir, log_level)


def get_logger(component: str, module_name: str) -> logging.Logger:
    """
    Get the logger of a module inside a component.

    The component logger is set up with defaults on first use.

    Args:
        component: Component the module belongs to
        module_name: Usually ``__name__``

    Returns:
        Child logger of the component logger, named after the last part
        of the module name
    """
    parent = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
    if not parent.handlers:
        parent = setup_logger(component)
    return parent.getChild(module_name.rpartition(".")[2])


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "INFO",
    round_id: Optional[int] = None,
    client_id: Optional[int] = None,
    component: Optional[str] = None,
    **fields: Any
) -> None:
    """
    Log a protocol event.

    Args:
        logger: Logger obtained from get_logger
        event: Event name (e.g. "round_started", "stale_update")
        level: Level name
        round_id: Round the event belongs to
        client_id: Client the event concerns
        component: Emitting component (taken from the logger name if None)
        **fields: Additional top-level JSON keys
    """
    extra: Dict[str, Any] = {
        "component": component or _component_of(logger),
        "event": event,
    }
    if round_id is not None:
        extra["round_id"] = round_id
    if client_id is not None:
        extra["client_id"] = client_id
    if fields:
        extra["extra_fields"] = fields

    logger.log(getattr(logging, level.upper(), logging.INFO), f"Event: {event}", extra=extra)
