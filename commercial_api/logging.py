"""Structured JSON logging for the API process."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level and service name to every line."""

    def __init__(self, *args: Any, service_name: str = "commercial-analytics", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "commercial-analytics") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service_name=service_name))
    root.addHandler(handler)
