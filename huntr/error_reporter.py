"""Line-delimited JSON log of scrape failures, shared with the web service."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

log = logging.getLogger(__name__)

DEFAULT_ERROR_LOG_PATH = "/data/logs/scraper_errors.json"


@dataclass
class ScrapeError:
    """One entry in the scraper error log."""

    timestamp: str
    service: str
    type: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "timestamp": self.timestamp,
            "service": self.service,
            "type": self.type,
            "message": self.message,
        }
        if self.details:
            out["details"] = dict(sorted(self.details.items()))
        return out


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ErrorReporter:
    """Appends scrape errors to a file, one JSON object per line.

    Failures to write are logged and otherwise ignored.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or DEFAULT_ERROR_LOG_PATH)
        self._lock = threading.Lock()

    def log_error(
        self,
        service: str,
        err_type: str,
        message: str,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        """Append one error entry to the log file."""
        entry = ScrapeError(
            timestamp=_utc_now(),
            service=service,
            type=err_type,
            message=message,
            details=dict(details or {}),
        )
        try:
            line = json.dumps(entry.to_dict(), separators=(",", ":"), ensure_ascii=False, default=str)
        except (TypeError, ValueError) as exc:
            log.error("failed to marshal error entry", extra={"err": str(exc)})
            return

        with self._lock:
            directory = self.path.parent
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                log.error(
                    "failed to create error log directory",
                    extra={"dir": str(directory), "err": str(exc)},
                )
                return
            try:
                with open(self.path, "a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
            except OSError as exc:
                log.error("failed to write error entry", extra={"path": str(self.path), "err": str(exc)})

    def log_fetch_error(self, source: str, fetch_url: str, err: BaseException | str) -> None:
        """Record that a page from ``source`` could not be fetched."""
        self.log_error(
            "scraper",
            "fetch_error",
            f"Failed to fetch {source}",
            {"source": source, "url": fetch_url, "error": str(err)},
        )

    def log_parse_error(self, source: str, err: BaseException | str) -> None:
        """Record that a page from ``source`` could not be parsed."""
        self.log_error(
            "scraper",
            "parse_error",
            f"Failed to parse {source}",
            {"source": source, "error": str(err)},
        )