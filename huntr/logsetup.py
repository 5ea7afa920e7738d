"""JSON logging setup and service heartbeat files."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import IO, Any

_LEVELS = {
    "debug": logging.DEBUG,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _rfc3339(moment: datetime, timespec: str) -> str:
    text = moment.isoformat(timespec=timespec)
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _level_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "ERROR"
    if levelno >= logging.WARNING:
        return "WARN"
    if levelno >= logging.INFO:
        return "INFO"
    return "DEBUG"


class JsonFormatter(logging.Formatter):
    """Formats each record as one JSON object carrying the service name."""

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": _rfc3339(datetime.fromtimestamp(record.created).astimezone(), "milliseconds"),
            "level": _level_name(record.levelno),
            "msg": record.getMessage(),
        }
        if self.service is not None:
            entry["service"] = self.service
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _install(service: str, level: str | None, handlers: list[logging.Handler]) -> logging.Logger:
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root.removeHandler(existing)
    formatter = JsonFormatter(service)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(_LEVELS.get((level or "").lower(), logging.INFO))
    return root


def setup_logger(service: str, level: str | None = None, stream: IO[str] | None = None) -> logging.Logger:
    """Route all logging to JSON lines on ``stream`` (stdout by default)."""
    return _install(service, level, [logging.StreamHandler(stream if stream is not None else sys.stdout)])


def setup_logger_with_file(
    service: str, level: str | None, file_path: str | Path | None
) -> tuple[logging.Logger, logging.FileHandler | None]:
    """Log JSON lines to stdout and to ``file_path``.

    Returns the logger and the file handler, which the caller should close.
    Falls back to stdout only when no path is given or the file cannot be opened.
    """
    if not file_path:
        return setup_logger(service, level), None
    path = Path(file_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass
    try:
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as exc:
        logging.getLogger(__name__).error(
            "failed to open log file, using stdout only",
            extra={"path": str(path), "error": str(exc)},
        )
        return setup_logger(service, level), None
    logger = _install(service, level, [logging.StreamHandler(sys.stdout), file_handler])
    return logger, file_handler


def touch_heartbeat(service: str, state_dir: str | Path = "/data/state") -> Path:
    """Write the current time to the service's heartbeat file; failures are ignored."""
    path = Path(state_dir) / f"{service}_heartbeat"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_rfc3339(datetime.now().astimezone(), "seconds"), encoding="utf-8")
    except OSError:
        pass
    return path