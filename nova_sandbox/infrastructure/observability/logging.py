"""Structured JSON logging for the sandbox service and simulation worker"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from nova_sandbox.domain.models import CycleSummary


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "nova-sandbox"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_cycle(summary: CycleSummary) -> None:
    """One structured record per simulation cycle"""
    logging.getLogger("nova_sandbox.simulation").info(
        "Simulation cycle completed",
        extra={
            "step": "cycle_complete",
            "seed": summary.seed,
            "accounts_processed": summary.accounts_processed,
            "transactions_generated": summary.transactions_generated,
            "transactions_rejected": summary.transactions_rejected,
            "flagged": summary.flagged,
            "posted": summary.pending.posted,
            "canceled": summary.pending.canceled,
            "random_events": summary.random_events,
            "daily_tasks_run": summary.daily_tasks_run,
            "unit_failures": summary.unit_failures,
            "duration_ms": summary.duration_ms,
        },
    )
