from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

ROOT_LOGGER = "tickerfeed"

_RUN_ID = os.getenv("TICKERFEED_RUN_ID") or uuid.uuid4().hex


class JsonFormatter(logging.Formatter):
    """One JSON object per line: event, component, run id and bound fields."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        component = record.name
        if component.startswith(f"{ROOT_LOGGER}."):
            component = component[len(ROOT_LOGGER) + 1 :]
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "event": record.getMessage(),
            "component": component,
            "run_id": _RUN_ID,
        }
        # logger context first, call-site fields win
        for attr in ("tf_context", "tf_fields"):
            fields = getattr(record, attr, None)
            if isinstance(fields, dict):
                payload.update({key: value for key, value in fields.items() if value is not None})

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class _ContextFilter(logging.Filter):
    def __init__(self, context: Dict[str, Any]) -> None:
        super().__init__()
        self.context = context

    def filter(self, record: logging.LogRecord) -> bool:
        record.tf_context = self.context
        return True


def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.setLevel(os.getenv("TICKERFEED_LOG_LEVEL", "INFO").upper())
        root.propagate = False
    return root


def setup_logger(component: str, **context: Any) -> logging.Logger:
    """Child logger of ``tickerfeed``; ``context`` is attached to every record."""

    _root()
    logger = logging.getLogger(f"{ROOT_LOGGER}.{component}")
    if context:
        for existing in logger.filters:
            if isinstance(existing, _ContextFilter):
                existing.context.update(context)
                break
        else:
            logger.addFilter(_ContextFilter(dict(context)))
    return logger


def log(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    logger.log(level, event, extra={"tf_fields": fields})
