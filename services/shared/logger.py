"""
Structured JSON Logging for the queue console
=============================================
One JSON object per line, so console and handler logs can be grepped with jq
or shipped to CloudWatch Logs Insights unchanged.

Usage:
  from shared.logger import get_logger
  logger = get_logger(__name__)
  logger.warning("failed to retrieve queue tags", extra={"queue_url": url})

Output:
  {"timestamp":"2024-01-01T00:00:00Z","level":"WARNING","logger":"queue_service.repository",
   "message":"failed to retrieve queue tags","queue_url":"http://..."}
"""
from __future__ import annotations

import json
import logging
import os
import time
from typing import Any

# LogRecord attributes that are plumbing, not payload
_RECORD_FIELDS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "taskName"}

# botocore logs every request at DEBUG; keep it out unless asked for
_NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")

_configured = False


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value) for key, value in record.__dict__.items() if key not in _RECORD_FIELDS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str | None = None) -> None:
    """Install the JSON formatter on the root logger. Safe to call repeatedly."""
    global _configured
    root = logging.getLogger()
    formatter = _JsonFormatter()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    for handler in root.handlers:
        handler.setFormatter(formatter)

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
