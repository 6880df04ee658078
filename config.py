"""
Application Configuration Module (config.py)
--------------------------------------------

Centralized runtime configuration for the chat widget service, sourced from
environment variables and an optional `.env` file next to this module.

Highlights:
- `CHAT_BACKEND_URL` / `CHAT_REQUEST_TIMEOUT` drive the outbound chat client.
- `LOG_LEVEL` and the `SENTRY_*` settings drive telemetry; `LOG_FILE` is read
  directly by `utils.logging_config`.
- All settings are exposed via the `settings` object for the rest of the app.
"""

import os
from dotenv import load_dotenv
from pathlib import Path

env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings:
    """
    Environment-backed settings.

    Values are read when the class body executes, i.e. on first import of
    this module, so later environment changes have no effect. Code that needs
    different values at runtime patches attributes on the `settings` instance.
    """

    # Application Version
    APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
    APP_NAME = os.getenv("APP_NAME", "chat-widget")

    # Environment
    ENV = os.getenv("ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Backend chat endpoint the widget relays messages to
    CHAT_BACKEND_URL = os.getenv("CHAT_BACKEND_URL", "http://localhost:8000/api/chat")
    CHAT_REQUEST_TIMEOUT = float(os.getenv("CHAT_REQUEST_TIMEOUT", "60"))

    # Sentry Configuration (optional)
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_ENABLED = _env_flag("SENTRY_ENABLED")
    SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))


settings = Settings()
