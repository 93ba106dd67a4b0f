"""Structured logging for the proposal pipeline.

Every line is a run of key=value pairs. Records emitted from inside a run
carry proposal_id, stage and plugin in a fixed position, so one proposal can
be followed through the orchestrator, the plugin manager and its plugins by
grepping a single id.
"""

import logging
import sys
from enum import Enum
from typing import Any

PIPELINE_FIELDS: tuple[str, ...] = ("proposal_id", "stage", "plugin")


def _render(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    text = str(value)
    if text and not any(ch.isspace() or ch == '"' for ch in text):
        return text
    escaped = text.replace('"', '\\"')
    return f'"{escaped}"'


class StructuredFormatter(logging.Formatter):
    """key=value formatter; values with spaces or quotes are quoted."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
        }
        for key in PIPELINE_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                fields[key] = value
        fields["message"] = record.getMessage()
        fields.update(getattr(record, "fields", None) or {})

        line = " ".join(f"{key}={_render(value)}" for key, value in fields.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _configured_level() -> int:
    try:
        from proposal_engine.core.config import get_settings

        settings = get_settings()
    except Exception:
        # Settings may be unreadable while the environment is being set up
        return logging.INFO

    if settings.LOG_LEVEL:
        return getattr(logging, settings.LOG_LEVEL)
    return logging.DEBUG if settings.PROPOSAL_ENGINE_ENV == "dev" else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger that writes structured lines to stdout.

    LOG_LEVEL wins when set; otherwise DEBUG in dev and INFO elsewhere.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_configured_level())

    return logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    *,
    proposal_id: str | None = None,
    stage: Any = None,
    plugin: str | None = None,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    """
    Log a pipeline event.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        proposal_id: Id of the context being processed
        stage: ProposalStage (or its value) the event belongs to
        plugin: Plugin id, when a plugin is involved
        exc_info: Attach the current exception traceback
        **fields: Extra key=value pairs appended after the message
    """
    extra = {"proposal_id": proposal_id, "stage": stage, "plugin": plugin, "fields": fields}
    logger.log(level, msg, extra=extra, exc_info=exc_info)
