import logging
import sys
import os
import json
import time
import re
from contextvars import ContextVar
from typing import Optional, Any, Dict

from colorama import init as _c_init, Fore, Style

_c_init()

# ContextVar for the per-request correlation id
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class ContextFilter(logging.Filter):
    """
    A logging filter to add request_id from contextvars to log records.
    """
    def filter(self, record: logging.LogRecord) -> bool:
        setattr(record, "request_id", request_id_var.get())
        return True


class SensitiveDataFilter(logging.Filter):
    """
    Redacts e-mail addresses, bearer tokens and API keys from log messages.
    User chat content is logged only by length, never verbatim.
    """
    SENSITIVE_PATTERNS = [
        (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL_REDACTED]"),
        (re.compile(r"\bBearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE), "Bearer [TOKEN_REDACTED]"),
        (re.compile(r'api[_-]?key["\s]*[:=]["\s]*[^"\s,}]+', re.IGNORECASE), 'api_key="[REDACTED]"'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            for pattern, repl in self.SENSITIVE_PATTERNS:
                record.msg = pattern.sub(repl, record.msg)

        if record.args and isinstance(record.args, tuple):
            cleaned = []
            for arg in record.args:
                if isinstance(arg, str):
                    for pattern, repl in self.SENSITIVE_PATTERNS:
                        arg = pattern.sub(repl, arg)
                cleaned.append(arg)
            record.args = tuple(cleaned)

        return True


_RESERVED_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "taskName",
    "timestamp", "level", "message", "request_id",
}


class CustomJsonFormatter(logging.Formatter):
    """
    A custom JSON formatter to structure log records.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
            "module": record.module,
            "funcName": record.funcName,
            "lineno": record.lineno,
        }

        req_id = getattr(record, "request_id", None)
        if req_id:
            log_record["request_id"] = req_id

        # Preserve any extra fields
        for key, val in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_record[key] = val

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


class ColoredTextFormatter(logging.Formatter):
    _LEVEL_COLOURS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW + Style.BRIGHT,
        logging.ERROR: Fore.RED + Style.BRIGHT,
        logging.CRITICAL: Fore.MAGENTA + Style.BRIGHT,
    }
    RESET = Style.RESET_ALL

    def format(self, record: logging.LogRecord) -> str:
        ts = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.created))
        colour = self._LEVEL_COLOURS.get(record.levelno, "")
        parts = [ts, f"{colour}{record.levelname}{self.RESET}", f"{record.name}:", record.getMessage()]
        rid = getattr(record, "request_id", "") or ""
        if rid:
            parts.append(f"req={rid}")
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def init_structured_logging(level_name: Optional[str] = None) -> None:
    """
    Initialize colored console logging (plus optional JSON file output)
    with request context and PII filters.
    """
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Remove existing handlers
    if root.hasHandlers():
        root.handlers.clear()

    ctx_filter = ContextFilter()
    pii_filter = SensitiveDataFilter()

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(ColoredTextFormatter())
    ch.addFilter(ctx_filter)
    ch.addFilter(pii_filter)
    root.addHandler(ch)

    # Optional file handler
    log_file = os.getenv("LOG_FILE")
    if log_file:
        from logging.handlers import RotatingFileHandler
        fh = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=3)
        fh.setFormatter(CustomJsonFormatter())
        fh.addFilter(ctx_filter)
        fh.addFilter(pii_filter)
        root.addHandler(fh)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.info("Structured logging initialized.")
