"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from settlement_gateway.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


# Client libraries that log every request at INFO; assistant polling would flood the stream
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "INFO") -> None:
    """Route every record through one JSON handler on stdout"""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_offer(
    request_id: str,
    session_id: Optional[str],
    category: str,
    minimum_offer: str,
    maximum_offer: str,
    duration_ms: float,
) -> None:
    """Log structured offer outcome for analysis (offers only, never discount inputs)"""
    logging.info(
        "Offer calculated",
        extra={
            "request_id": request_id,
            "session_id": session_id,
            "step": "offer_complete",
            "category": category,
            "minimum_offer": minimum_offer,
            "maximum_offer": maximum_offer,
            "duration_ms": duration_ms,
        },
    )


def log_turn(session_id: str, from_step: str, to_step: str, action: str) -> None:
    """Log one dialog turn"""
    logging.info(
        "Conversation turn processed",
        extra={
            "session_id": session_id,
            "from_step": from_step,
            "to_step": to_step,
            "action": action,
        },
    )
