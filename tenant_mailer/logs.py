from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class StructuredLogger:
    """JSON-lines logger; writes to ``path`` or to the ``tenant_mailer`` logger."""

    path: Path | None = None
    tenant: str | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._std = logging.getLogger("tenant_mailer")
        self._threshold = _LEVELS.get(self.log_level.lower(), logging.INFO)

    def log(
        self,
        *,
        level: str,
        event: str,
        stage: str,
        status: str = "ok",
        error_type: str | None = None,
        error_message: str | None = None,
        url: str | None = None,
        **extra: Any,
    ) -> None:
        numeric = _LEVELS.get(level.lower(), logging.INFO)
        if numeric < self._threshold:
            return
        payload: dict[str, Any] = {
            "timestamp": utc_now_iso(),
            "level": level.lower(),
            "event": event,
            "tenant": self.tenant,
            "stage": stage,
            "status": status,
            "error_type": error_type,
            "error_message": error_message,
            "url": url,
        }
        payload.update(extra)
        line = json.dumps(payload, ensure_ascii=True, default=str)
        if self.path is None:
            self._std.log(numeric, line)
            return
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")

    def debug(self, event: str, stage: str, **kwargs: Any) -> None:
        self.log(level="debug", event=event, stage=stage, **kwargs)

    def info(self, event: str, stage: str, **kwargs: Any) -> None:
        self.log(level="info", event=event, stage=stage, **kwargs)

    def warning(self, event: str, stage: str, **kwargs: Any) -> None:
        self.log(level="warning", event=event, stage=stage, **kwargs)

    def error(self, event: str, stage: str, **kwargs: Any) -> None:
        self.log(level="error", event=event, stage=stage, status="error", **kwargs)


def read_log(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
