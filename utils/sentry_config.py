"""
utils/sentry_config.py
----------------------
Sentry configuration and filter logic.
"""

import os
import logging
from typing import Any, Optional
import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration, ignore_logger
from sentry_sdk.types import Event, Hint

NOISY_LOGGERS = {
    "uvicorn.access",
    "uvicorn.error",
    "httpx",
}
SENSITIVE_KEYS = {
    "token",
    "secret",
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "content",
    "markdown",
}
IGNORED_TRANSACTIONS = {
    "/health",
    "/favicon.ico",
}


def _filter_request_data(request_data: dict[str, Any]) -> None:
    # Chat text is user data; never ship it to Sentry.
    if isinstance((payload := request_data.get("data")), dict):
        for k in list(payload):
            if any(s in k.lower() for s in SENSITIVE_KEYS):
                payload[k] = "[FILTERED]"
    if isinstance((headers := request_data.get("headers")), dict):
        request_data["headers"] = {
            k: ("[FILTERED]" if any(s in k.lower() for s in SENSITIVE_KEYS) else v)
            for k, v in headers.items()
        }


def filter_sensitive_event(event: Event, hint: Optional[Hint] = None) -> Optional[Event]:
    if event.get("type") == "transaction":
        url = str(event.get("request", {}).get("url", ""))
        if any(p in url for p in IGNORED_TRANSACTIONS):
            return None
    if "request" in event:
        _filter_request_data(event["request"])  # type: ignore[arg-type]
    return event


def sentry_enabled() -> bool:
    return str(os.getenv("SENTRY_ENABLED", "")).lower() in {"1", "true", "yes"}


def configure_sentry(
    *,
    dsn: str,
    environment: str = "production",
    release: str | None = None,
    traces_sample_rate: float = 0.1,
    enabled: Optional[bool] = None,
) -> bool:
    """
    Initialise Sentry when enabled and a DSN is present.

    `enabled=None` falls back to the SENTRY_ENABLED environment flag.
    """
    if enabled is None:
        enabled = sentry_enabled()
    if not enabled:
        logging.info("Sentry disabled via env flag; skipping initialisation.")
        return False
    if not dsn:
        logging.warning("SENTRY_ENABLED is set but SENTRY_DSN is empty; skipping Sentry.")
        return False

    sentry_logging = LoggingIntegration(
        level=logging.WARNING,
        event_level=logging.ERROR,
    )

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            sentry_logging,
            FastApiIntegration(transaction_style="endpoint"),
            AsyncioIntegration(),
        ],
        default_integrations=False,
        before_send=filter_sensitive_event,
        send_default_pii=False,
    )

    for logger_name in NOISY_LOGGERS:
        ignore_logger(logger_name)
    logging.info("Sentry initialised (%s)", environment)
    return True
