from __future__ import annotations

import contextlib
from pathlib import Path
import re
from typing import Any

from textual.app import App, ComposeResult
from textual.widgets import Footer, Static, TextArea

from .cli import RuntimeHooks, append_runtime_log
from .config import RecallConfig, find_config_path, load_recall_toml
from .events import EventBus
from .input_history import Navigating, PromptHistoryStore
from .paths import RuntimePaths, ensure_runtime_dirs, find_workspace_root, runtime_paths
from .widgets import Composer

SLASH_MENU_MAX_ITEMS = 8
HISTORY_PREVIEW_MAX = 10
TRANSCRIPT_LOG_MAX = 500

SLASH_COMMAND_SPECS: tuple[tuple[str, str], ...] = (
    ("/new", "start a conversation (optional name)"),
    ("/switch", "switch to a conversation by name"),
    ("/conversations", "list conversations"),
    ("/history", "show recent prompts for this conversation"),
    ("/attach", "attach a labelled item to the next message"),
    ("/detach", "drop pending attachments"),
    ("/recall", "turn up/down prompt recall on or off"),
    ("/help", "show commands"),
    ("/quit", "exit"),
)

ANSI_CSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


class RecallTerminalApp(App[None]):
    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        height: 1;
        padding: 0 1;
        background: $boost;
        color: $text;
    }

    #transcript {
        height: 1fr;
        border: solid $accent;
        padding: 0 1;
    }

    #attachments {
        height: auto;
        padding: 0 1;
        color: $text-muted;
    }

    #composer {
        height: 5;
        border: solid $border-blurred;
    }

    #composer:focus {
        border: solid $border;
    }

    #slash-menu {
        height: auto;
        max-height: 10;
        border: solid $secondary;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("ctrl+c", "request_quit", "Quit"),
        ("ctrl+n", "new_conversation", "New"),
        ("f3", "previous_conversation", "Prev"),
        ("f4", "next_conversation", "Next"),
    ]

    def __init__(
        self,
        *,
        config: RecallConfig | None = None,
        workspace: Path | None = None,
        conversation: str | None = None,
        write_logs: bool = True,
    ) -> None:
        super().__init__()
        self.workspace = find_workspace_root(workspace)
        self.config_warning = ""
        if config is None:
            config, self.config_warning = load_recall_toml(find_config_path(self.workspace))
        self.recall_config = config
        self.write_logs = write_logs
        self.paths: RuntimePaths | None = None
        self.hooks = RuntimeHooks(emit_console=False)

        self.history_events = EventBus()
        self.history_events.subscribe(self._on_history_event)
        self.history_store = PromptHistoryStore(
            max_items=config.history.limit,
            default_key=config.history.default_key,
        )
        self.conversation_order: list[str] = []
        self.transcripts: dict[str, list[str]] = {}
        self.active_conversation = self._ensure_conversation(conversation or config.history.default_key)
        self.last_event = "none"

        self.status_bar: Static
        self.transcript: TextArea
        self.attachments_bar: Static
        self.composer: Composer
        self.slash_menu: Static

    def compose(self) -> ComposeResult:
        yield Static("", id="status-bar")
        yield TextArea(
            "",
            id="transcript",
            read_only=True,
            show_cursor=False,
            highlight_cursor_line=False,
            show_line_numbers=False,
            language=None,
        )
        yield Static("", id="attachments")
        yield Static("", id="slash-menu")
        yield Composer(
            id="composer",
            store=self.history_store,
            history_key=self.active_conversation,
            history_events=self.history_events,
            recall_older_key=self.recall_config.keys.recall_older,
            recall_newer_key=self.recall_config.keys.recall_newer,
            submit_on_enter=self.recall_config.composer.submit_on_enter,
        )
        yield Footer()

    def on_mount(self) -> None:
        self.status_bar = self.query_one("#status-bar", Static)
        self.transcript = self.query_one("#transcript", TextArea)
        self.attachments_bar = self.query_one("#attachments", Static)
        self.slash_menu = self.query_one("#slash-menu", Static)
        self.composer = self.query_one("#composer", Composer)
        self.slash_menu.display = False
        if self.write_logs:
            self.paths = ensure_runtime_dirs(runtime_paths(self.workspace))
            self.hooks = RuntimeHooks(emit_console=False, log_file=self.paths.runtime_log)
            self.history_events.set_log_path(self.paths.events_log)
        self._log(f"composer started in {self.workspace}")
        if self.config_warning:
            self._log(self.config_warning, level="warn")
            self._write_system(self.config_warning)
        self._render_transcript()
        self._refresh_attachments()
        self._refresh_status()
        self.composer.focus()

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        if event.text_area is not getattr(self, "composer", None):
            return
        self._refresh_status()
        if self.composer.prompt_history.is_navigating:
            self._hide_slash_menu()
            return
        self._update_slash_menu(self.composer.text)

    def on_composer_submitted(self, event: Composer.Submitted) -> None:
        self._hide_slash_menu()
        text = _sanitize(event.value)
        cmd, rest = _parse_command(text)
        if text.startswith("/") and cmd:
            self._run_command(cmd, rest)
        else:
            self._send_message(text)
        self._refresh_status()

    def action_request_quit(self) -> None:
        self._log("composer exiting")
        self.exit()

    def action_new_conversation(self) -> None:
        self.switch_conversation(self._next_conversation_name())

    def action_previous_conversation(self) -> None:
        self._cycle_conversation(-1)

    def action_next_conversation(self) -> None:
        self._cycle_conversation(1)

    def switch_conversation(self, name: str) -> None:
        key = self._ensure_conversation(name)
        if key == self.active_conversation:
            return
        self.active_conversation = key
        self.composer.history_key = key
        self.composer.attachments.clear()
        self._log(f"switched to conversation {key}")
        self._render_transcript()
        self._refresh_attachments()
        self._refresh_status()

    def _send_message(self, text: str) -> None:
        attachments = list(self.composer.attachments)
        self.composer.attachments.clear()
        line = f"You: {text}" if text else "You:"
        if attachments:
            line += f" [attachments: {', '.join(attachments)}]"
        self._append_transcript_line(line)
        self._refresh_attachments()

    def _run_command(self, cmd: str, rest: str) -> None:
        arg = " ".join(rest.split())
        if cmd == "new":
            self.switch_conversation(arg or self._next_conversation_name())
            return
        if cmd == "switch":
            if not arg:
                self._write_system("usage: /switch <name>")
                return
            if arg not in self.transcripts:
                self._write_system(f"unknown conversation: {arg} (use /new {arg})")
                return
            self.switch_conversation(arg)
            return
        if cmd == "conversations":
            names = [f"* {name}" if name == self.active_conversation else f"  {name}" for name in self.conversation_order]
            self._write_system("conversations:\n" + "\n".join(names))
            return
        if cmd == "history":
            entries = self.composer.prompt_history.history()[-HISTORY_PREVIEW_MAX:]
            if not entries:
                self._write_system("no prompts recorded for this conversation yet.")
                return
            self._write_system("recent prompts:\n" + "\n".join(f"- {entry}" for entry in entries))
            return
        if cmd == "attach":
            if not arg:
                self._write_system("usage: /attach <label>")
                return
            self.composer.attachments.append(arg)
            self._refresh_attachments()
            return
        if cmd == "detach":
            self.composer.attachments.clear()
            self._refresh_attachments()
            return
        if cmd == "recall":
            choice = arg.lower()
            if choice not in {"on", "off"}:
                self._write_system("usage: /recall on|off")
                return
            self.composer.recall_enabled = choice == "on"
            self._write_system(f"prompt recall {choice}.")
            return
        if cmd == "help":
            self._write_system("\n".join(f"{command}  {summary}" for command, summary in SLASH_COMMAND_SPECS))
            return
        if cmd == "quit":
            self.action_request_quit()
            return
        self._write_system(f"unknown command: /{cmd} (try /help)")

    def _ensure_conversation(self, name: str) -> str:
        key = " ".join(name.split())
        if key not in self.transcripts:
            self.transcripts[key] = []
            self.conversation_order.append(key)
        return key

    def _next_conversation_name(self) -> str:
        index = len(self.conversation_order) + 1
        while f"conv-{index}" in self.transcripts:
            index += 1
        return f"conv-{index}"

    def _cycle_conversation(self, step: int) -> None:
        if len(self.conversation_order) < 2:
            return
        index = self.conversation_order.index(self.active_conversation)
        self.switch_conversation(self.conversation_order[(index + step) % len(self.conversation_order)])

    def _update_slash_menu(self, raw_text: str) -> None:
        value = raw_text.strip()
        if not value.startswith("/") or " " in value[1:]:
            self._hide_slash_menu()
            return
        matches = _slash_command_matches(value[1:], limit=SLASH_MENU_MAX_ITEMS)
        if not matches:
            self._hide_slash_menu()
            return
        lines = ["Slash commands"]
        for command, summary in matches:
            lines.append(f"- {command}  {summary}")
        self.slash_menu.update("\n".join(lines))
        self.slash_menu.display = True
        self.composer.autocomplete_open = True

    def _hide_slash_menu(self) -> None:
        if not hasattr(self, "slash_menu"):
            return
        self.slash_menu.display = False
        self.slash_menu.update("")
        self.composer.autocomplete_open = False

    def _refresh_attachments(self) -> None:
        attachments = self.composer.attachments
        self.attachments_bar.update(f"attachments: {', '.join(attachments)}" if attachments else "")
        self.attachments_bar.display = bool(attachments)

    def _refresh_status(self) -> None:
        history = self.composer.prompt_history
        state = history.state
        if not self.composer.recall_enabled:
            recall = "off"
        elif isinstance(state, Navigating):
            recall = f"#{state.position}"
        else:
            recall = "idle"
        self.status_bar.update(
            f"conversation={self.active_conversation} | prompts={len(history.history())} | "
            f"recall={recall} | last={self.last_event}"
        )

    def _on_history_event(self, event: dict[str, Any]) -> None:
        self.last_event = str(event.get("type", "none"))
        if hasattr(self, "status_bar") and hasattr(self, "composer"):
            self._refresh_status()

    def _write_system(self, text: str) -> None:
        self._append_transcript_line(f"System: {_strip_terminal_controls(text)}")

    def _append_transcript_line(self, line: str) -> None:
        lines = self.transcripts[self.active_conversation]
        lines.append(line)
        del lines[:-TRANSCRIPT_LOG_MAX]
        self._render_transcript()

    def _render_transcript(self) -> None:
        self.transcript.load_text("\n".join(self.transcripts[self.active_conversation]))
        self.transcript.scroll_end(animate=False)

    def _log(self, message: str, *, level: str = "info") -> None:
        if self.hooks.log_file is None:
            return
        with contextlib.suppress(Exception):
            append_runtime_log(self.hooks.log_file, level=level, message=message)


def run_terminal_app(*, workspace: Path | None = None, conversation: str | None = None) -> int:
    app = RecallTerminalApp(workspace=workspace, conversation=conversation)
    app.run(mouse=False)
    return 0


def _parse_command(text: str) -> tuple[str, str]:
    value = text.strip()
    if value.startswith("/"):
        value = value[1:].lstrip()
    if not value:
        return "", ""
    parts = value.split(maxsplit=1)
    cmd = parts[0].lower()
    rest = parts[1] if len(parts) > 1 else ""
    return cmd, rest


def _slash_command_matches(query: str, *, limit: int = SLASH_MENU_MAX_ITEMS) -> list[tuple[str, str]]:
    needle = query.strip().lower()
    results: list[tuple[str, str]] = []
    for command, summary in SLASH_COMMAND_SPECS:
        key = command[1:].lower()
        if needle and not key.startswith(needle):
            continue
        results.append((command, summary))
    return results[: max(1, int(limit))]


def _strip_terminal_controls(value: str) -> str:
    cleaned = ANSI_CSI_RE.sub("", value)
    cleaned = cleaned.replace("\r", "")
    return CONTROL_CHARS_RE.sub("", cleaned)


def _sanitize(value: str) -> str:
    return _strip_terminal_controls(value).strip()
