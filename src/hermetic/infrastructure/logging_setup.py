"""Central structlog bootstrap for sandbox diagnostics.

Sandbox modules log through `get_logger()`; nothing is emitted in a special
way before `configure_logging()` runs, structlog's defaults apply instead.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import structlog


_LOG_CONFIGURED = False


def _add_thread_name(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # Lock contention is easiest to read with the owning thread attached.
    event_dict.setdefault("thread", threading.current_thread().name)
    return event_dict


def _build_processors(json_logs: bool) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_thread_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    *,
    force: bool = False,
) -> None:
    """Configure stdlib logging and structlog once per process.

    Pass `force=True` to replace an earlier configuration (tests do this to
    switch renderers).
    """
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED and not force:
        return

    normalized = str(level or "INFO").upper()
    log_level = getattr(logging, normalized, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        force=force,
    )

    structlog.configure(
        processors=_build_processors(json_logs),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    _LOG_CONFIGURED = True


def is_logging_configured() -> bool:
    return _LOG_CONFIGURED


def get_logger(**initial_values: Any) -> Any:
    """Return a structlog logger bound to the `hermetic` component."""
    return structlog.get_logger(component="hermetic", **initial_values)
