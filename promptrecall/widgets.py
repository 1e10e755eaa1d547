from __future__ import annotations

from typing import Any

from textual import events
from textual.message import Message
from textual.widgets import TextArea
from textual.widgets.text_area import Selection

from .events import EventBus
from .input_history import PromptHistoryStore
from .navigation import RECALL_NEWER_KEY, RECALL_OLDER_KEY, HistoryNavigator, KeyPress

NEWLINE_KEY = "ctrl+j"


def offset_to_location(text: str, offset: int) -> tuple[int, int]:
    """Map a character offset into TextArea (row, column) coordinates."""

    offset = max(0, min(offset, len(text)))
    before = text[:offset]
    row = before.count("\n")
    column = offset - (before.rfind("\n") + 1)
    return row, column


class Composer(TextArea):
    """Chat composer with shell-style prompt recall on up/down."""

    class Submitted(Message):
        def __init__(self, composer: "Composer", value: str) -> None:
            super().__init__()
            self.composer = composer
            self.value = value

        @property
        def control(self) -> "Composer":
            return self.composer

    def __init__(
        self,
        text: str = "",
        *,
        store: PromptHistoryStore | None = None,
        history_key: str | None = None,
        history_events: EventBus | None = None,
        recall_older_key: str = RECALL_OLDER_KEY,
        recall_newer_key: str = RECALL_NEWER_KEY,
        submit_on_enter: bool = True,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("soft_wrap", True)
        kwargs.setdefault("show_line_numbers", False)
        super().__init__(text, **kwargs)
        self.submit_on_enter = submit_on_enter
        self.autocomplete_open = False
        self.recall_enabled = True
        self.attachments: list[str] = []
        self.caret_offset: int | None = None
        self._pending_recall_changes = 0
        self.prompt_history = HistoryNavigator(
            get_text=lambda: self.text,
            set_text=self._set_recalled_text,
            get_target=self._history_target,
            set_selection_start=self._set_selection_start,
            schedule=self.call_after_refresh,
            store=store,
            history_key=history_key,
            recall_older_key=recall_older_key,
            recall_newer_key=recall_newer_key,
            events=history_events,
        )

    @property
    def history_key(self) -> str | None:
        return self.prompt_history.history_key

    @history_key.setter
    def history_key(self, key: str | None) -> None:
        self.prompt_history.history_key = key

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)

    def set_selection_range(self, start: int, end: int) -> None:
        text = self.text
        self.selection = Selection(offset_to_location(text, start), offset_to_location(text, end))

    def submit_current(self) -> None:
        value = self.text
        if not value.strip() and not self.has_attachments:
            return
        self.prompt_history.record_history(value)
        self.prompt_history.reset_history_navigation()
        self.clear()
        self.post_message(self.Submitted(self, value.strip()))

    async def _on_key(self, event: events.Key) -> None:
        self._sync_history_flags()
        press = KeyPress.from_key_name(event.key)
        self.prompt_history.handle_history_key_down(press)
        if press.default_prevented:
            event.stop()
            event.prevent_default()
            return
        submit_key = "enter" if self.submit_on_enter else NEWLINE_KEY
        if event.key == submit_key:
            event.stop()
            event.prevent_default()
            self.submit_current()
            return
        if event.key == NEWLINE_KEY:
            event.stop()
            event.prevent_default()
            self.insert("\n")

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        if event.text_area is not self:
            return
        # Every recalled value posts exactly one Changed; those are not user edits.
        if self._pending_recall_changes:
            self._pending_recall_changes -= 1
            return
        self.prompt_history.handle_history_text_change(self.text)

    def _sync_history_flags(self) -> None:
        self.prompt_history.disabled = self.disabled or self.read_only or not self.recall_enabled
        self.prompt_history.autocomplete_open = self.autocomplete_open
        self.prompt_history.has_attachments = self.has_attachments

    def _set_recalled_text(self, value: str) -> None:
        self._pending_recall_changes += 1
        self.text = value

    def _set_selection_start(self, offset: int | None) -> None:
        self.caret_offset = offset

    def _history_target(self) -> "Composer | None":
        if not self.is_mounted:
            return None
        return self
