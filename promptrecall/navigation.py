from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .events import EventBus
from .input_history import IDLE, Navigating, NavigationState, PromptHistoryStore, resolve_history_key

RECALL_OLDER_KEY = "up"
RECALL_NEWER_KEY = "down"

# Textual spells the command key "super"; treat it as meta.
_MODIFIER_ALIASES = {
    "meta": "meta",
    "super": "meta",
    "ctrl": "ctrl",
    "alt": "alt",
    "shift": "shift",
}


class HistoryKeyEvent(Protocol):
    key: str
    meta: bool
    ctrl: bool
    alt: bool
    shift: bool

    def prevent_default(self) -> None:
        ...


class HistoryTarget(Protocol):
    def focus(self) -> Any:
        ...

    def set_selection_range(self, start: int, end: int) -> None:
        ...


@dataclass
class KeyPress:
    key: str
    meta: bool = False
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    default_prevented: bool = field(default=False, init=False)

    @classmethod
    def from_key_name(cls, name: str) -> "KeyPress":
        """Split a Textual key name such as ``ctrl+shift+up`` into key and modifier flags."""

        parts = [part for part in (name or "").split("+") if part]
        if not parts:
            return cls(key="")
        flags = {"meta": False, "ctrl": False, "alt": False, "shift": False}
        for part in parts[:-1]:
            alias = _MODIFIER_ALIASES.get(part.lower())
            if alias is not None:
                flags[alias] = True
        return cls(key=parts[-1], **flags)

    @property
    def has_modifier(self) -> bool:
        return self.meta or self.ctrl or self.alt or self.shift

    def prevent_default(self) -> None:
        self.default_prevented = True


def _run_now(callback: Callable[[], Any]) -> None:
    callback()


class HistoryNavigator:
    """Shell-style up/down recall of submitted prompts for one composer.

    The navigator never touches the widget text directly: it calls `set_text`
    and, after the widget has refreshed (via `schedule`), focuses whatever
    `get_target` returns and puts the caret at the end of the recalled value.
    """

    def __init__(
        self,
        *,
        get_text: Callable[[], str],
        set_text: Callable[[str], None],
        get_target: Callable[[], HistoryTarget | None],
        set_selection_start: Callable[[int | None], None] | None = None,
        schedule: Callable[[Callable[[], Any]], Any] | None = None,
        store: PromptHistoryStore | None = None,
        history_key: str | None = None,
        recall_older_key: str = RECALL_OLDER_KEY,
        recall_newer_key: str = RECALL_NEWER_KEY,
        events: EventBus | None = None,
    ) -> None:
        self.store = store if store is not None else PromptHistoryStore()
        self.disabled = False
        self.autocomplete_open = False
        self.has_attachments = False
        self.recall_older_key = recall_older_key
        self.recall_newer_key = recall_newer_key
        self.events = events
        self._get_text = get_text
        self._set_text = set_text
        self._get_target = get_target
        self._set_selection_start = set_selection_start
        self._schedule = schedule or _run_now
        self._history_key = history_key
        self._state: NavigationState = IDLE
        self._draft = ""

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def is_navigating(self) -> bool:
        return isinstance(self._state, Navigating)

    @property
    def preserved_draft(self) -> str | None:
        if not self.is_navigating:
            return None
        return self._draft

    @property
    def active_key(self) -> str:
        return resolve_history_key(self._history_key, default=self.store.default_key)

    @property
    def history_key(self) -> str | None:
        return self._history_key

    @history_key.setter
    def history_key(self, key: str | None) -> None:
        previous = self.active_key
        self._history_key = key
        if self.active_key == previous:
            return
        # Positions index the old partition's list; never carry them across.
        self._state = IDLE
        self._draft = ""
        self._publish("history.partition", f"history partition -> {self.active_key}", previous=previous)

    def history(self) -> tuple[str, ...]:
        return self.store.sequence(self.active_key)

    def record_history(self, value: str) -> bool:
        recorded = self.store.record(value, self.active_key)
        if recorded:
            self._publish("history.recorded", "recorded prompt", size=len(self.history()))
        return recorded

    def reset_history_navigation(self) -> None:
        was_navigating = self.is_navigating
        self._state = IDLE
        if was_navigating:
            self._publish("history.reset", "history navigation reset")

    def handle_history_text_change(self, next_text: str) -> None:
        if self.is_navigating:
            self._state = IDLE

    def handle_history_key_down(self, event: HistoryKeyEvent) -> None:
        if self.disabled or self.autocomplete_open:
            return
        if event.meta or event.ctrl or event.alt or event.shift:
            return
        if event.key not in {self.recall_older_key, self.recall_newer_key}:
            return
        history = self.history()
        if not history:
            return

        state = self._state
        if not isinstance(state, Navigating):
            text = self._get_text()
            if text or self.has_attachments:
                return
            if event.key != self.recall_older_key:
                return
            event.prevent_default()
            self._draft = text
            self._move_to(len(history) - 1, history)
            return

        event.prevent_default()
        if event.key == self.recall_older_key:
            position = max(0, state.position - 1)
            if position != state.position:
                self._move_to(position, history)
            return

        if state.position >= len(history) - 1:
            self._state = IDLE
            self._apply_history_value(self._draft)
            self._publish("history.restored", "restored draft")
            return
        self._move_to(state.position + 1, history)

    def _move_to(self, position: int, history: tuple[str, ...]) -> None:
        self._state = Navigating(position)
        self._apply_history_value(history[position])
        self._publish("history.recall", "recalled prompt", position=position, size=len(history))

    def _apply_history_value(self, value: str) -> None:
        self._set_text(value)

        def _place_caret() -> None:
            target = self._get_target()
            if target is None:
                return
            target.focus()
            target.set_selection_range(len(value), len(value))
            if self._set_selection_start is not None:
                self._set_selection_start(len(value))

        self._schedule(_place_caret)

    def _publish(self, event_type: str, message: str, **metadata: Any) -> None:
        if self.events is None:
            return
        metadata.setdefault("history_key", self.active_key)
        self.events.publish(event_type, message, metadata=metadata)
