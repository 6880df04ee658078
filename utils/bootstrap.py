"""
utils/bootstrap.py
─────────────────────────────────────────────────────────────────────────
Single source of truth for observability initialization.

Usage:
    from utils.bootstrap import init_telemetry
    init_telemetry()  # Call once at application startup, before any other logging
"""

import os
import logging
from typing import Optional


def init_telemetry(
    app_name: Optional[str] = None,
    app_version: Optional[str] = None,
    environment: Optional[str] = None,
    sentry_dsn: Optional[str] = None,
    log_level: Optional[str] = None,
    traces_sample_rate: float = 0.1,
    sentry_enabled: Optional[bool] = None,
) -> bool:
    """
    Initialize logging first, then Sentry. Returns True when Sentry is active.

    Args:
        app_name: Application name for Sentry release tag (defaults to env var)
        app_version: Application version for Sentry release (defaults to env var)
        environment: Environment name (defaults to env var, fallback to 'development')
        sentry_dsn: Sentry DSN (defaults to env var)
        log_level: Root log level name (defaults to LOG_LEVEL env var)
        traces_sample_rate: Sentry tracing sample rate
        sentry_enabled: Turn Sentry on or off (defaults to SENTRY_ENABLED env var)
    """
    from utils.logging_config import init_structured_logging
    init_structured_logging(log_level)

    logger = logging.getLogger(__name__)

    from utils.sentry_config import configure_sentry

    app_name = app_name or os.getenv("APP_NAME", "chat-widget")
    app_version = app_version or os.getenv("APP_VERSION", "unknown")
    environment = environment or os.getenv("ENV", "development")
    sentry_dsn = sentry_dsn or os.getenv("SENTRY_DSN", "")

    release = f"{app_name}@{app_version}" if app_version != "unknown" else app_name

    sentry_active = configure_sentry(
        dsn=sentry_dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        enabled=sentry_enabled,
    )

    logger.info("Telemetry initialization complete", extra={
        "app_name": app_name,
        "app_version": app_version,
        "environment": environment,
        "sentry_enabled": sentry_active,
    })
    return sentry_active
