# 📄 File: app/shared/utils/logging.py

# 🧭 Purpose (Layman Explanation):
# This file sets up a smart logging system that records what happens in the app in a structured way,
# so billing problems (declined cards, failed renewals) can be traced request by request.

# 🧪 Purpose (Technical Summary):
# Structured logging with JSON formatting (python-json-logger), request-scoped context
# carried through contextvars, and helpers for request and billing event logging.

# 🔗 Dependencies:
# - python-json-logger: JSON log formatting
# - logging: Python standard logging
# - contextvars: Request context tracking

# 🔄 Connected Modules / Calls From:
# Used by: app.main (setup), request logging and error handling middleware,
# subscription services (billing events), Celery tasks

import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from app.shared.config.settings import get_settings

# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')

SERVICE_NAME = 'marketplace-subscriptions'

_logging_configured = False


class ContextFilter(logging.Filter):
    """
    Adds request ID, user ID, host and service name to every record.
    """

    def __init__(self):
        super().__init__()
        self.hostname = os.uname().nodename if hasattr(os, 'uname') else 'unknown'

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get('')
        record.user_id = user_id_var.get('')
        record.hostname = self.hostname
        record.service = SERVICE_NAME
        return True


class JSONFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for structured logging with a consistent field set.
    """

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        for key in ('request_id', 'user_id'):
            if not log_record.get(key):
                log_record.pop(key, None)


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None
) -> logging.Logger:
    """
    Setup application logging configuration.

    Args:
        log_level: Override for settings.LOG_LEVEL
        log_format: 'json' or 'text'; defaults to settings.LOG_FORMAT

    Returns:
        logging.Logger: Logger for startup messages
    """
    global _logging_configured

    if _logging_configured:
        return logging.getLogger("startup")

    settings = get_settings()
    log_level = log_level or settings.LOG_LEVEL
    log_format = log_format or settings.LOG_FORMAT

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format.lower() == 'json':
        formatter: logging.Formatter = JSONFormatter(
            '%(message)s %(module)s %(funcName)s %(lineno)d %(service)s %(hostname)s %(request_id)s %(user_id)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())
    root_logger.addHandler(console_handler)

    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(
        logging.INFO if settings.DB_ECHO else logging.WARNING
    )

    _logging_configured = True
    return logging.getLogger("startup")


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float
) -> None:
    """Log HTTP request performance."""
    level = logging.WARNING if status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"HTTP {method} {path} - {status_code} - {duration_ms:.2f}ms",
        extra={
            'event_type': 'http_request',
            'method': method,
            'path': path,
            'status_code': status_code,
            'duration_ms': round(duration_ms, 2),
        }
    )


def log_billing_event(
    logger: logging.Logger,
    event: str,
    subscription_id: Optional[str] = None,
    user_id: Optional[str] = None,
    **fields: Any
) -> None:
    """Log a subscription or payment state transition."""
    logger.info(
        f"Billing event {event} subscription={subscription_id} user={user_id}",
        extra={
            'event_type': 'billing',
            'billing_event': event,
            'subscription_id': subscription_id,
            'subject_user_id': user_id,
            **{key: str(value) for key, value in fields.items()},
        }
    )
