"""JSON logging configuration for CI provisioning."""

import logging
import os

from pythonjsonlogger import jsonlogger

LOGGER_NAME = "ci_provisioning"

# Fields kept in every JSON line; "logger" identifies the emitting module
ALLOWED_FIELDS = frozenset({"timestamp", "level", "logger", "message", "exc_info", "funcName", "lineno"})


class ProvisioningJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter emitting only ALLOWED_FIELDS, with short key names."""

    def add_fields(self, log_record, record, message_dict):
        """Rename levelname/name and drop fields outside ALLOWED_FIELDS.

        Args:
            log_record: Dict to be logged as JSON
            record: LogRecord object from logging framework
            message_dict: Dict containing message and args
        """
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")
        if "name" in log_record:
            log_record["logger"] = log_record.pop("name")

        for key in [key for key in log_record if key not in ALLOWED_FIELDS]:
            log_record.pop(key)


def _setup_logger() -> logging.Logger:
    """Configure the package logger; library modules log through its children.

    Level comes from CI_PROVISIONING_LOG_LEVEL (default INFO).
    """
    logger = logging.getLogger(LOGGER_NAME)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        ProvisioningJsonFormatter(
            fmt="%(timestamp)s %(levelname)s %(name)s %(funcName)s %(lineno)d %(message)s",
            timestamp=True,
        )
    )

    logger.setLevel(os.environ.get("CI_PROVISIONING_LOG_LEVEL", "INFO").upper())
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def set_log_level(level: int | str) -> None:
    """Change the level of the package logger (e.g., for --verbose)."""
    LOGGER.setLevel(level)


# Singleton logger instance - import this in scripts
LOGGER = _setup_logger()
