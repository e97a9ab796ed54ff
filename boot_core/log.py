import json
import logging
import os
import sys
from typing import Optional

ENV_PREFIX = "BOOT_CORE_LOG_"

_CONFIGURED = False

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra`` fields are merged into the object."""

    def __init__(self, *, default_fields=None):
        super().__init__()
        self.default_fields = default_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        data = {
            **self.default_fields,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        for k, v in record.__dict__.items():
            if k not in _RECORD_ATTRS:
                data.setdefault(k, v)
        return json.dumps(data, ensure_ascii=False, default=str)


def _coerce_level(value) -> int:
    if value is None:
        return logging.INFO
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _plain_formatter(fmt: Optional[str], datefmt: Optional[str]) -> logging.Formatter:
    return logging.Formatter(
        fmt or "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt or "%Y-%m-%d %H:%M:%S",
    )


def configure_logging(
    *,
    level: Optional[str | int] = None,
    json_format: Optional[bool] = None,
    file: Optional[str] = None,
    fmt: Optional[str] = None,
    datefmt: Optional[str] = None,
    reset: bool = False,
) -> None:
    """Configure root logging once per process.

    Precedence: explicit args > env vars > defaults.

    Env vars:
    - BOOT_CORE_LOG_LEVEL: e.g. DEBUG, INFO, WARNING
    - BOOT_CORE_LOG_FORMAT: json|plain
    - BOOT_CORE_LOG_FILE: path to log file (optional)
    """
    global _CONFIGURED

    if reset:
        for h in logging.root.handlers[:]:
            logging.root.removeHandler(h)
            h.close()
        _CONFIGURED = False

    if _CONFIGURED:
        return

    level = _coerce_level(level if level is not None else os.getenv(ENV_PREFIX + "LEVEL"))
    if json_format is None:
        json_format = os.getenv(ENV_PREFIX + "FORMAT", "plain").strip().lower() == "json"
    file = file if file is not None else os.getenv(ENV_PREFIX + "FILE")

    formatter = JsonFormatter() if json_format else _plain_formatter(fmt, datefmt)
    handlers: list[logging.Handler] = [logging.StreamHandler(stream=sys.stderr)]
    if file:
        handlers.append(logging.FileHandler(file, encoding="utf-8"))
    for h in handlers:
        h.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    _CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger; configure with defaults if needed."""
    if not _CONFIGURED:
        configure_logging()
    return logging.getLogger(name)
