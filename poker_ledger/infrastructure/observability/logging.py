"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from poker_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


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


def log_settlement(
    request_id: str,
    session_id: str,
    session_version: int,
    transfer_count: int,
    is_final: bool,
    duration_ms: float,
) -> None:
    """Log structured settlement outcome for analysis"""
    logging.info(
        "Settlement calculated",
        extra={
            "request_id": request_id,
            "session_id": session_id,
            "session_version": session_version,
            "step": "settlement_complete",
            "outcome": "final" if is_final else "provisional",
            "transfer_count": transfer_count,
            "duration_ms": duration_ms,
        },
    )


def log_command(
    request_id: str,
    session_id: str,
    command: str,
    outcome: str,
    session_version: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """Log a ledger mutation; rejected commands are logged at warning level"""
    extra = {
        "request_id": request_id,
        "session_id": session_id,
        "command": command,
        "outcome": outcome,
        "session_version": session_version,
    }
    if error is None:
        logging.info("Command applied", extra=extra)
    else:
        logging.warning(f"Command rejected: {error}", extra=extra)
