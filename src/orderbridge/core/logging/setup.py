from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(correlation_id)s %(message)s"


class CorrelationIdFilter(logging.Filter):
    def __init__(self, correlation_id: str):
        super().__init__()
        self._correlation_id = correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = self._correlation_id
        return True


class ContextAdapter(logging.LoggerAdapter):
    """Adapter that merges its context into per-call ``extra`` instead of replacing it."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def configure_logging(
    log_dir: Path,
    correlation_id: str,
    level: int | str = logging.INFO,
    console: bool = True,
) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    utc_day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    text_path = log_dir / f"orderbridge-{utc_day}.log"
    json_path = log_dir / f"orderbridge-{utc_day}.jsonl"

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    correlation_filter = CorrelationIdFilter(correlation_id)
    text_formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    json_formatter = jsonlogger.JsonFormatter(fmt=JSON_FORMAT)

    handlers: list[logging.Handler] = [
        logging.FileHandler(text_path, encoding="utf-8"),
        logging.FileHandler(json_path, encoding="utf-8"),
    ]
    handlers[0].setFormatter(text_formatter)
    handlers[1].setFormatter(json_formatter)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(text_formatter)
        handlers.append(stream_handler)

    for handler in handlers:
        handler.addFilter(correlation_filter)
        root.addHandler(handler)


def get_logger(name: str, correlation_id: str, **context: Any) -> logging.LoggerAdapter:
    base_logger = logging.getLogger(name)
    return ContextAdapter(base_logger, extra={"correlation_id": correlation_id, **context})
