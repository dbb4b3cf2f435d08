"""Structured logging for the terminal core.

structlog routed through stdlib ``logging`` on stderr: coloured console
in dev, JSON lines elsewhere.  A scrubbing processor runs before
rendering so credential material never reaches a log sink even if a
call site passes it by mistake.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog

from config.settings import settings

# Event keys whose values are replaced before rendering.
SECRET_KEYS = frozenset({
    "secret",
    "api_secret",
    "passphrase",
    "api_passphrase",
    "private_key",
    "private_key_pem",
    "key_pem",
    "authorization",
})


def redact(value: str | None, keep: int = 6) -> str:
    """Return only the last ``keep`` characters of a secret for log output."""
    if not value:
        return ""
    return value[-keep:] if len(value) > keep else value


def scrub_secrets(
    _logger: Any, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """structlog processor: mask values stored under known secret keys."""
    for key in list(event_dict):
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = f"***{redact(str(event_dict[key]), keep=4)}"
    return event_dict


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Configure structlog and the root stdlib logger.  Safe to call twice.

    Parameters
    ----------
    level:
        Overrides ``settings.LOG_LEVEL``.
    json_logs:
        Force JSON (True) or console (False) rendering; defaults to
        console only when ``APP_ENV == "dev"``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        scrub_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    use_json = json_logs if json_logs is not None else settings.APP_ENV != "dev"
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # stdout is reserved for CLI output.
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())
