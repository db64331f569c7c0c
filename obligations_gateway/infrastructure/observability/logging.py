"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from obligations_gateway.domain.models import ProcessingSummary


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "obligations-gateway"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_run(request_id: str, summary: ProcessingSummary, duration_ms: float) -> None:
    """Log structured processing outcome for analysis"""
    logging.info(
        "Recurring processing completed",
        extra={
            "request_id": request_id,
            "step": "recurring_run_complete",
            "run_date": summary.run_date.isoformat(),
            "processed": summary.processed,
            "subscriptions": summary.subscriptions,
            "emis": summary.emis,
            "templates": summary.templates,
            "failures": len(summary.failures),
            "users": len(summary.user_summary),
            "duration_ms": duration_ms,
        },
    )
