from __future__ import annotations

from collections import deque
from collections.abc import Callable
import contextlib
from datetime import datetime, timezone
import json
import secrets
import time
from pathlib import Path
from typing import Any

EventHandler = Callable[[dict[str, Any]], Any]

RECENT_EVENTS_MAX = 50


def _history_event_id() -> str:
    return f"hist-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class EventBus:
    """Synchronous pub/sub for composer history events, logged to JSONL once a path is set.

    Events published before a log path is known are buffered and flushed
    once `set_log_path` is called.
    """

    def __init__(self) -> None:
        self._log_path: Path | None = None
        self._pending: list[dict[str, Any]] = []
        self._handlers: list[EventHandler] = []
        self._recent: deque[dict[str, Any]] = deque(maxlen=RECENT_EVENTS_MAX)
        self.events_written = 0

    def set_log_path(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=True)
        self._log_path = path
        pending, self._pending = self._pending, []
        for event in pending:
            self._append_to_disk(event)

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._handlers.remove(handler)

        return _unsubscribe

    def publish(
        self,
        event_type: str,
        message: str,
        *,
        severity: str = "info",
        source: str = "composer",
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        event = {
            "id": _history_event_id(),
            "ts": datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat(),
            "type": str(event_type or "history.event"),
            "severity": str(severity or "info").lower(),
            "source": str(source or "composer"),
            "message": " ".join(str(message or "").split()),
            "metadata": dict(metadata or {}),
        }
        self._recent.append(event)
        if self._log_path is None:
            self._pending.append(event)
        else:
            self._append_to_disk(event)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                continue
        return event

    def recent(self, limit: int = 10) -> list[dict[str, Any]]:
        if limit <= 0:
            return []
        return list(self._recent)[-limit:]

    def _append_to_disk(self, event: dict[str, Any]) -> None:
        if self._log_path is None:
            return
        with self._log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(event, sort_keys=True, ensure_ascii=True))
            handle.write("\n")
        self.events_written += 1
