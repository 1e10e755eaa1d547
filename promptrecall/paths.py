from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import CONFIG_FILENAME

RUNTIME_DIRNAME = ".promptrecall"


def find_workspace_root(start: Path | None = None) -> Path:
    """Best-effort workspace root discovery.

    The directory holding `promptrecall.toml` wins; otherwise the start
    directory is used so the app still runs ad-hoc.
    """

    probe = (start or Path.cwd()).resolve()
    for candidate in [probe, *probe.parents]:
        if (candidate / CONFIG_FILENAME).exists():
            return candidate
    return probe


@dataclass(frozen=True)
class RuntimePaths:
    root: Path
    logs_dir: Path
    runtime_log: Path
    events_log: Path


def runtime_paths(workspace: Path | None = None) -> RuntimePaths:
    root = (workspace or find_workspace_root()) / RUNTIME_DIRNAME
    logs_dir = root / "logs"
    return RuntimePaths(
        root=root,
        logs_dir=logs_dir,
        runtime_log=logs_dir / "runtime.log",
        events_log=logs_dir / "events.jsonl",
    )


def ensure_runtime_dirs(paths: RuntimePaths | None = None) -> RuntimePaths:
    paths = paths or runtime_paths()
    paths.root.mkdir(parents=True, exist_ok=True)
    paths.logs_dir.mkdir(parents=True, exist_ok=True)
    return paths
