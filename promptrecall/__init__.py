from __future__ import annotations

__version__ = "0.1.0"

from .input_history import DEFAULT_HISTORY_KEY, HISTORY_LIMIT, Idle, Navigating, PromptHistoryStore
from .navigation import HistoryNavigator, KeyPress

__all__ = [
    "DEFAULT_HISTORY_KEY",
    "HISTORY_LIMIT",
    "HistoryNavigator",
    "Idle",
    "KeyPress",
    "Navigating",
    "PromptHistoryStore",
    "__version__",
]
