"""
Module: logger
Purpose: Logging setup for the operations portal

Every module asks for a ``PortalLogger`` through ``get_logger``. Keyword
arguments passed to the level methods travel with the record as
``extra_fields`` and show up in the structured (JSON) output.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

from portal.core.config import settings

Amount = Union[Decimal, float]


class PortalFormatter(logging.Formatter):
    """Plain text via ``settings.LOG_FORMAT``, or one JSON object per line."""

    def __init__(self, json_format: bool = False):
        self.json_format = json_format
        super().__init__(fmt=None if json_format else settings.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        if not self.json_format:
            return super().format(record)

        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def _rotating_handler(path: str, level: int, json_format: bool) -> Optional[logging.Handler]:
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename=path,
            maxBytes=settings.LOG_MAX_SIZE,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        print(f"Log file {path} unavailable: {e}", file=sys.stderr)
        return None

    handler.setLevel(level)
    handler.setFormatter(PortalFormatter(json_format=json_format))
    return handler


class PortalLogger:
    """
    Wrapper over a stdlib logger with portal event helpers.

    Handlers are attached once per logger name; later wrappers for the
    same name reuse them.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            self._configure()

    def _configure(self):
        level = getattr(logging, settings.LOG_LEVEL.upper())
        self.logger.setLevel(level)
        self.logger.propagate = False

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.setFormatter(PortalFormatter(json_format=settings.LOG_JSON_FORMAT))
        self.logger.addHandler(console)

        if not settings.LOG_FILE:
            return

        handlers = [_rotating_handler(settings.LOG_FILE, level, json_format=False)]
        if settings.is_production:
            structured = settings.LOG_FILE.replace(".log", "_structured.log")
            handlers.append(_rotating_handler(structured, logging.INFO, json_format=True))

        for handler in handlers:
            if handler is not None:
                self.logger.addHandler(handler)

    def _emit(self, level: int, message: str, fields: Dict[str, Any], exc_info: bool = False):
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(level, message, exc_info=exc_info, extra={"extra_fields": fields}, stacklevel=3)

    def debug(self, message: str, **fields):
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields):
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields):
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, exc_info: bool = False, **fields):
        self._emit(logging.ERROR, message, fields, exc_info=exc_info)

    # Portal events

    def log_transaction(
        self,
        transaction_id: str,
        branch: str,
        cash_in: Amount,
        cash_out: Amount,
        balance: Amount,
        staff_id: Optional[str],
        status: str,
        **fields
    ):
        """One line per cashbook movement (created, approved, rejected, edited, deleted)."""
        self.info(
            f"Cash transaction {status}: {transaction_id} ({branch})",
            transaction_id=transaction_id,
            branch=branch,
            cash_in=cash_in,
            cash_out=cash_out,
            balance=balance,
            staff_id=staff_id,
            status=status,
            **fields
        )

    def log_user_activity(self, user_id: str, action: str, **fields):
        self.info(f"User activity: {user_id} - {action}", user_id=user_id, action=action, **fields)

    def log_security_event(self, event_type: str, severity: str, description: str, **fields):
        """``low`` and ``medium`` go out as warnings, anything higher as errors."""
        emit = self.warning if severity in ("low", "medium") else self.error
        emit(
            f"Security event [{severity.upper()}]: {event_type} - {description}",
            event_type=event_type,
            severity=severity,
            **fields
        )

    def log_system_event(self, component: str, event: str, status: str, **fields):
        self.info(
            f"System event [{component}]: {event} - {status}",
            component=component,
            event=event,
            status=status,
            **fields
        )

    def log_api_request(self, method: str, endpoint: str, status_code: int, response_time: float, **fields):
        self.info(
            f"{method} {endpoint} -> {status_code} ({response_time:.3f}s)",
            method=method,
            endpoint=endpoint,
            status_code=status_code,
            response_time=response_time,
            **fields
        )


def get_logger(name: str) -> PortalLogger:
    return PortalLogger(name)


def setup_logging() -> PortalLogger:
    """Root ``portal`` logger used by the application entrypoint."""
    return get_logger("portal")
