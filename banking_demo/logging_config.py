"""
Structured Logging Configuration Module

JSON log records for account, ledger and investment operations. Each record
carries the correlation id of the request that produced it, taken from the
current context unless one is passed explicitly.
"""

import contextvars
import logging
import json
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Structured attributes copied from a record into its JSON document
STRUCTURED_FIELDS = ("correlation_id", "account_id", "action", "resource", "extra")

_correlation_id = contextvars.ContextVar('correlation_id', default=None)


def get_correlation_id() -> Optional[str]:
    """Correlation id of the request being served, if any"""
    return _correlation_id.get()


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """Bind a correlation id to every record logged inside the block"""
    token = _correlation_id.set(correlation_id or uuid.uuid4().hex)
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


class JSONFormatter(logging.Formatter):
    """Renders a record as one JSON object per line"""

    def format(self, record):
        document: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if name == "correlation_id" and value is None:
                value = get_correlation_id()
            if value is not None:
                document[name] = value

        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)

        return json.dumps(document, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "banking_demo",
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach a JSON handler to the application logger.

    Args:
        level: Log level name
        logger_name: Root of the application logger hierarchy
        log_file: Append to this file instead of stderr

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False
    return logger


def get_logger(name: str = "banking_demo") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               account_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log a business event with structured fields.

    Args:
        logger: Logger to emit on
        level: Level name (info, warning, error, ...)
        message: Human readable message
        account_id: Account on whose behalf the action runs
        action: Operation name, e.g. "transfer_to_investment"
        resource: Id of the entity acted upon
        correlation_id: Overrides the id bound by correlation_context
        extra: Additional structured data
    """
    fields = {
        "account_id": account_id,
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id,
        "extra": extra,
    }
    logger.log(
        getattr(logging, level.upper()),
        message,
        extra={key: value for key, value in fields.items() if value}
    )
