"""
Logging Configuration
JSON logging for pipeline runs.

Provides:
- CustomJsonFormatter: one JSON object per log line
- setup_logging: YAML dictConfig with environment substitution
"""

import json
import logging
import logging.config
import os
import string
from datetime import datetime, timezone
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "logging.yml"

_STANDARD_ATTRS = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}


class CustomJsonFormatter(logging.Formatter):
    """
    JSON Formatter.

    Fields:
      - _time: ISO8601 timestamp (millisecond precision)
      - level: Log level
      - logger: Logger name (e.g. perf.runner.pipeline)
      - message: Log message
      - any ``extra`` fields passed to the logger call
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "_time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config_path: str = "logging.yml", level: str | None = None):
    """
    Load the YAML config, substitute environment variables, and initialize logging.

    A relative ``config_path`` that does not exist falls back to the bundled
    config; if neither exists, basicConfig is used.
    """
    path = Path(config_path)
    if not path.exists():
        path = DEFAULT_CONFIG_PATH
    if not path.exists():
        logging.basicConfig(level=level or logging.INFO)
        return

    with open(path, "r", encoding="utf-8") as f:
        # Supports ${LOG_LEVEL} format.
        template = string.Template(f.read())

        mapping = os.environ.copy()
        if level:
            mapping["LOG_LEVEL"] = level
        mapping.setdefault("LOG_LEVEL", "INFO")

        content = template.safe_substitute(mapping)
        config = yaml.safe_load(content)
        logging.config.dictConfig(config)
