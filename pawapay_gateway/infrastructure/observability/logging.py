"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level and service name to every record"""

    def __init__(self, *args, service_name: str = "pawapay-gateway", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "pawapay-gateway") -> None:
    """Configure structured JSON logging on the root logger"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service_name=service_name)
    )
    logger.addHandler(handler)


def log_gateway_call(
    operation: str,
    outcome: str,
    duration_ms: float,
    transaction_id: Optional[str] = None,
    status_code: Optional[int] = None,
) -> None:
    """Log one PawaPay API call; never includes credentials or payload PII"""
    logging.getLogger("pawapay_gateway.gateway").info(
        "PawaPay call completed",
        extra={
            "operation": operation,
            "outcome": outcome,
            "duration_ms": round(duration_ms, 3),
            "transaction_id": transaction_id,
            "status_code": status_code,
        },
    )


def log_callback(provider: str, event_type: str, transaction_id: Optional[str], status: Optional[str]) -> None:
    """Log a verified inbound callback"""
    logging.getLogger("pawapay_gateway.webhooks").info(
        "Callback received",
        extra={
            "provider": provider,
            "event_type": event_type,
            "transaction_id": transaction_id,
            "status": status,
        },
    )
