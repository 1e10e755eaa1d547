from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import tomllib

from .input_history import DEFAULT_HISTORY_KEY, HISTORY_LIMIT
from .navigation import RECALL_NEWER_KEY, RECALL_OLDER_KEY

CONFIG_FILENAME = "promptrecall.toml"


def _as_int(value, *, default: int) -> int:
    try:
        return int(value)
    except Exception:  # noqa: BLE001
        return int(default)


def _as_bool(value, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "y", "on"}:
            return True
        if lowered in {"0", "false", "no", "n", "off"}:
            return False
    return bool(default)


def _as_key_name(value, *, default: str) -> str:
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned:
            return cleaned
    return default


@dataclass(frozen=True)
class HistoryConfig:
    limit: int = HISTORY_LIMIT
    default_key: str = DEFAULT_HISTORY_KEY


@dataclass(frozen=True)
class KeysConfig:
    recall_older: str = RECALL_OLDER_KEY
    recall_newer: str = RECALL_NEWER_KEY


@dataclass(frozen=True)
class ComposerConfig:
    submit_on_enter: bool = True


@dataclass(frozen=True)
class RecallConfig:
    history: HistoryConfig = field(default_factory=HistoryConfig)
    keys: KeysConfig = field(default_factory=KeysConfig)
    composer: ComposerConfig = field(default_factory=ComposerConfig)


def find_config_path(start: Path | None = None) -> Path:
    """Nearest `promptrecall.toml` walking up from `start`; falls back to `start/promptrecall.toml`."""

    probe = (start or Path.cwd()).resolve()
    for candidate in [probe, *probe.parents]:
        path = candidate / CONFIG_FILENAME
        if path.exists():
            return path
    return probe / CONFIG_FILENAME


def load_recall_toml(path: Path) -> tuple[RecallConfig, str]:
    """Load composer config from promptrecall.toml.

    Returns (config, warning). Warning is empty on success.
    """

    if not path.exists():
        return RecallConfig(), ""

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        return RecallConfig(), f"{CONFIG_FILENAME} parse failed: {exc}"

    history = data.get("history") if isinstance(data.get("history"), dict) else {}
    keys = data.get("keys") if isinstance(data.get("keys"), dict) else {}
    composer = data.get("composer") if isinstance(data.get("composer"), dict) else {}

    default_key = history.get("default_key")
    if not isinstance(default_key, str) or not default_key.strip():
        default_key = HistoryConfig.default_key

    older = _as_key_name(keys.get("recall_older"), default=KeysConfig.recall_older)
    newer = _as_key_name(keys.get("recall_newer"), default=KeysConfig.recall_newer)
    warning = ""
    # Recall keys fire only without modifiers, so a chord could never trigger.
    chords = [name for name in (older, newer) if "+" in name]
    if chords:
        warning = f"{CONFIG_FILENAME}: recall keys cannot include modifiers ({', '.join(chords)}); using defaults"
        older, newer = KeysConfig.recall_older, KeysConfig.recall_newer
    elif older == newer:
        warning = f"{CONFIG_FILENAME}: keys.recall_older and keys.recall_newer are both {older!r}; using defaults"
        older, newer = KeysConfig.recall_older, KeysConfig.recall_newer

    cfg = RecallConfig(
        history=HistoryConfig(
            limit=max(1, _as_int(history.get("limit"), default=HistoryConfig.limit)),
            default_key=default_key.strip(),
        ),
        keys=KeysConfig(recall_older=older, recall_newer=newer),
        composer=ComposerConfig(
            submit_on_enter=_as_bool(composer.get("submit_on_enter"), default=ComposerConfig.submit_on_enter),
        ),
    )
    return cfg, warning


def explain_recall_toml(config: RecallConfig, *, path: Path | None = None) -> str:
    location = str(path) if path is not None else CONFIG_FILENAME
    lines = [
        f"{CONFIG_FILENAME} guide ({location})",
        "",
        "[history]",
        f"- limit: prompts kept per conversation, oldest dropped first (current: {config.history.limit})",
        f"- default_key: partition used when no conversation is active (current: {config.history.default_key})",
        "",
        "[keys]",
        f"- recall_older: key that recalls the previous prompt (current: {config.keys.recall_older})",
        f"- recall_newer: key that steps forward / restores the draft (current: {config.keys.recall_newer})",
        "",
        "[composer]",
        "- submit_on_enter: true = enter submits and ctrl+j inserts a newline; false = enter inserts a newline and ctrl+j submits",
        f"  (current: {str(config.composer.submit_on_enter).lower()})",
    ]
    return "\n".join(lines)
