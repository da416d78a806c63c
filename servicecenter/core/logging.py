from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from core.config import LoggingConfig

WEBHOOK_LOGGER = "services.notifier"
LINE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        action = getattr(record, "action", None)
        if action:
            payload["action"] = action
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


class WebhookLineFormatter(logging.Formatter):
    """One line per outbound automation call, keyed by the webhook action."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s | %(levelname)s | %(action)s | %(message)s", datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "action"):
            record.action = "-"
        return super().format(record)


def _rotating(path: Path, config: LoggingConfig) -> RotatingFileHandler:
    return RotatingFileHandler(
        filename=path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )


def configure_logging(config: LoggingConfig) -> None:
    log_dir = Path(config.directory)
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    root_logger.handlers.clear()

    line_formatter = logging.Formatter(fmt=LINE_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(JsonFormatter() if config.json_console else line_formatter)
    root_logger.addHandler(console_handler)

    app_handler = _rotating(log_dir / config.file_name, config)
    app_handler.setFormatter(line_formatter)
    root_logger.addHandler(app_handler)

    # Delivery history stays greppable on its own; records still reach the root handlers.
    webhook_logger = logging.getLogger(WEBHOOK_LOGGER)
    for handler in list(webhook_logger.handlers):
        webhook_logger.removeHandler(handler)
        handler.close()
    if config.webhook_file_name:
        webhook_handler = _rotating(log_dir / config.webhook_file_name, config)
        webhook_handler.setFormatter(WebhookLineFormatter())
        webhook_logger.addHandler(webhook_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
