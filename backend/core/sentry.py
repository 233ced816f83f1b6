"""
Sentry Integration for the Tenant Migration backend

Error tracking for the API and the background migration executor.
"""

import os
import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.httpx import HttpxIntegration

logger = logging.getLogger(__name__)

# Header names that carry platform API keys
SENSITIVE_HEADERS = ("Authorization", "authorization", "Cookie", "cookie")


def init_sentry(
    dsn: Optional[str] = None,
    environment: Optional[str] = None,
    release: Optional[str] = None,
) -> bool:
    """
    Initialize Sentry error tracking.

    Args:
        dsn: Sentry DSN. If not provided, uses SENTRY_DSN env var.
        environment: Environment name (development, staging, production).
        release: Release version string.

    Returns:
        True when the SDK was initialized.
    """
    sentry_dsn = dsn or os.getenv("SENTRY_DSN")

    if not sentry_dsn:
        logger.info("Sentry DSN not configured. Error tracking disabled.")
        return False

    env = environment or os.getenv("ENVIRONMENT", "development")
    rel = release or os.getenv("SENTRY_RELEASE", "development")

    enabled = env == "production" or os.getenv("SENTRY_ENABLED", "false").lower() == "true"
    if not enabled:
        logger.info(f"Sentry disabled for environment: {env}")
        return False

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=env,
        release=rel,
        traces_sample_rate=0.1 if env == "production" else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            AsyncioIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            HttpxIntegration(),
        ],
        # API keys travel in headers and request bodies
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
        before_send=before_send,
        before_send_transaction=before_send_transaction,
        ignore_errors=[KeyboardInterrupt, SystemExit],
    )

    logger.info(f"Sentry initialized for environment: {env}")
    return True


def before_send(event, hint):
    """
    Drop noise and scrub credentials before an event leaves the process.
    """
    exception = hint.get("exc_info")

    if exception:
        exc_type, exc_value, _ = exception

        if exc_type.__name__ in ("ConnectionResetError", "BrokenPipeError", "CancelledError"):
            return None

        error_message = str(exc_value).lower() if exc_value else ""
        for msg in ("connection reset by peer", "broken pipe"):
            if msg in error_message:
                return None

    request = event.get("request")
    if request:
        headers = request.get("headers", {})
        for name in SENSITIVE_HEADERS:
            if name in headers:
                headers[name] = "[Filtered]"
        # Migration request bodies contain apiKey fields
        if request.get("data"):
            request["data"] = "[Filtered]"

    return event


def before_send_transaction(event, hint):
    """
    Skip health checks and status polling, which fire every couple of seconds.
    """
    transaction_name = event.get("transaction", "")
    if transaction_name.endswith("/health") or "/migration/jobs/" in transaction_name:
        return None
    return event


def capture_exception(exception: Exception, **context) -> Optional[str]:
    """
    Capture an exception to Sentry with optional tags.

    Returns:
        The Sentry event ID if captured, None otherwise.
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            if value is not None:
                scope.set_tag(key, str(value))
        return sentry_sdk.capture_exception(exception)
