from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Union

HISTORY_LIMIT = 200
DEFAULT_HISTORY_KEY = "default"


def resolve_history_key(key: str | None, *, default: str = DEFAULT_HISTORY_KEY) -> str:
    if key is None:
        return default
    return key


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Navigating:
    position: int

    def __post_init__(self) -> None:
        if self.position < 0:
            msg = "position must be >= 0"
            raise ValueError(msg)


NavigationState = Union[Idle, Navigating]
IDLE = Idle()


@dataclass
class PromptHistoryStore:
    """Submitted prompts, partitioned by an opaque caller key (one list per conversation)."""

    max_items: int = HISTORY_LIMIT
    default_key: str = DEFAULT_HISTORY_KEY
    _entries: dict[str, deque[str]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_items < 1:
            msg = "max_items must be >= 1"
            raise ValueError(msg)

    def record(self, value: str, key: str | None = None) -> bool:
        trimmed = value.strip()
        if not trimmed:
            return False
        partition = resolve_history_key(key, default=self.default_key)
        existing = self._entries.get(partition)
        if existing and existing[-1] == trimmed:
            return False
        if existing is None:
            existing = deque(maxlen=self.max_items)
            self._entries[partition] = existing
        existing.append(trimmed)
        return True

    def sequence(self, key: str | None = None) -> tuple[str, ...]:
        partition = resolve_history_key(key, default=self.default_key)
        return tuple(self._entries.get(partition, ()))

    def keys(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
