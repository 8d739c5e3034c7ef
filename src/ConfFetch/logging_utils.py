"""Structured logging helpers shared across fetcher components."""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

from .settings import FetchSettings, get_settings

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging"]

LOGGER_NAME = "ConfFetch"

_SENSITIVE_KEYS = {"authorization", "api_key", "apikey", "token", "secret", "password"}
_URL_USERINFO = re.compile(r"(?P<scheme>https?://)[^/@\s]+@")
_URL_SECRET_PARAM = re.compile(
    r"(?P<key>[?&](?:" + "|".join(sorted(_SENSITIVE_KEYS)) + r"))=[^&\s]+",
    re.IGNORECASE,
)
_STRUCTURED_FIELDS = ("stage", "endpoint", "resource", "path", "attempt", "sha256")


def _mask_text(value: str) -> str:
    """Strip credentials and secret query parameters out of URLs in ``value``."""

    masked = _URL_USERINFO.sub(r"\g<scheme>***@", value)
    return _URL_SECRET_PARAM.sub(r"\g<key>=***", masked)


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Return a copy of ``payload`` with secret fields and URL credentials masked."""

    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, str):
            masked[key] = _mask_text(value)
        else:
            masked[key] = value
    return masked


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a single-line JSON document."""

        now = datetime.now(timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def setup_logging(
    *,
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    settings: Optional[FetchSettings] = None,
    max_log_size_mb: int = 20,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``ConfFetch`` logger with console output and optional JSON files.

    Handlers installed by an earlier call are removed first, so the function
    is safe to call repeatedly.
    """

    settings = settings or get_settings()
    resolved_level = (level or settings.log_level).upper()
    resolved_dir = log_dir if log_dir is not None else settings.log_dir

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, resolved_level, logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_conffetch_managed", False):
            logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    stream_handler._conffetch_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if resolved_dir is not None:
        resolved_dir = Path(resolved_dir)
        resolved_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            resolved_dir / f"conffetch-{today}.jsonl",
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._conffetch_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
