from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries; anything else was passed through `extra`.
_RESERVED = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime", "extra"}


@dataclass(frozen=True)
class LogContext:
    request_id: str | None = None
    provider: str | None = None
    model: str | None = None
    capability: str | None = None


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            base.update({k: v for k, v in extra.items() if v is not None})
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                base[key] = value
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges per-call `extra` with the bound context."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        call_extra = kwargs.get("extra") or {}
        kwargs["extra"] = {"extra": {**(self.extra or {}), **call_extra}}
        return msg, kwargs


# Transport libraries log one INFO line per HTTP call, URLs included.
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def configure_logging(*, level: str) -> None:
    """Route every logger to one JSON stream on stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))


def with_context(logger: logging.Logger, ctx: LogContext) -> ContextAdapter:
    return ContextAdapter(logger, extra=asdict(ctx))
