"""
Tenant Migration - Structured Logging Configuration
"""
import logging
import sys
import json
from datetime import datetime
from typing import Optional
from fastapi import Request
import traceback


CONTEXT_FIELDS = ["job_id", "tenant_id", "category", "request_id", "action", "duration_ms", "status_code"]


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, default=str)


class ServiceLogger:
    """Logger wrapper that accepts structured context as keyword arguments"""

    def __init__(self, name: str = "tenant_migration"):
        self.logger = logging.getLogger(name)

    def _split(self, kwargs: dict) -> dict:
        extra = {}
        for key in CONTEXT_FIELDS:
            if key in kwargs:
                extra[key] = kwargs.pop(key)
        if kwargs:
            extra["extra_data"] = kwargs
        return extra

    def _log(self, level: int, message: str, **kwargs):
        self.logger.log(level, message, extra=self._split(kwargs))

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with traceback"""
        self.logger.exception(message, extra=self._split(kwargs))


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
):
    """
    Configure logging for the application

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for structured logging
        log_file: Optional file path to write logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers = []

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.upper()))
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Platform calls are logged by the provider; keep client libraries quiet
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str = "tenant_migration") -> ServiceLogger:
    """Get a service logger instance"""
    return ServiceLogger(name)


async def log_request(request: Request, response_status: int, duration_ms: float):
    """Log API request"""
    logger = get_logger("tenant_migration.api")
    logger.info(
        f"{request.method} {request.url.path}",
        status_code=response_status,
        duration_ms=round(duration_ms, 2),
        request_id=request.headers.get("X-Request-ID"),
        action=f"api_{request.method.lower()}",
        client_ip=request.client.host if request.client else None,
    )


def log_job_event(
    event: str,
    job_id: str,
    tenant_id: Optional[str] = None,
    description: Optional[str] = None,
    **extra
):
    """Log a migration job lifecycle event for the audit trail"""
    logger = get_logger("tenant_migration.jobs")
    log_func = logger.warning if event in ("failed", "cancelled") else logger.info
    log_func(
        description or f"Migration job {event}",
        job_id=job_id,
        tenant_id=tenant_id,
        action=f"job_{event}",
        **extra
    )
