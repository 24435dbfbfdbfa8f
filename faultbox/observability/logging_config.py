"""Structured logging configuration for the application."""

import logging
import os
import sys

from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps service and thread context on every record."""

    def add_fields(self, log_record, record, message_dict):
        """Add custom fields to log records."""
        super().add_fields(log_record, record, message_dict)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["timestamp"] = self.formatTime(record, self.datefmt)

        # Runner and deadlock threads are named; APM tooling keys on them.
        log_record["thread"] = record.threadName

        log_record["environment"] = os.getenv("FLASK_ENV", "production")
        log_record["service"] = "faultbox"


def setup_logging(app=None, log_level=None):
    """
    Configure structured JSON logging for the application.

    Args:
        app: Flask application instance (optional)
        log_level: Level name; defaults to the LOG_LEVEL env var

    Returns:
        Logger instance
    """
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logger = logging.getLogger()
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    formatter = CustomJsonFormatter(
        fmt="%(timestamp)s %(level)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

    if app:
        app.logger.handlers = logger.handlers
        app.logger.setLevel(log_level)
        app.logger.info(
            "Structured logging initialized",
            extra={"log_level": log_level, "format": "json"},
        )

    return logger

