from __future__ import annotations

import argparse
import contextlib
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
import sys

from . import __version__
from .config import explain_recall_toml, find_config_path, load_recall_toml
from .paths import find_workspace_root, runtime_paths


@dataclass(frozen=True)
class RuntimeHooks:
    emit_console: bool = True
    log_file: Path | None = None


def emit_runtime_log(
    message: str,
    *,
    level: str = "info",
    stderr: bool = False,
    hooks: RuntimeHooks | None = None,
) -> None:
    if hooks and hooks.log_file is not None:
        append_runtime_log(hooks.log_file, level=level, message=message)
    if hooks is None or hooks.emit_console:
        print(message, file=sys.stderr if stderr else sys.stdout)


def append_runtime_log(log_file: Path, *, level: str, message: str) -> None:
    normalized_message = " ".join(message.split())
    stamp = datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()
    line = f"{stamp} [{level.lower()}] {normalized_message}\n"
    with contextlib.suppress(Exception):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with log_file.open("a", encoding="utf-8") as handle:
            handle.write(line)


def hooks_with_log_file(hooks: RuntimeHooks | None, log_file: Path) -> RuntimeHooks:
    if hooks is None:
        return RuntimeHooks(log_file=log_file)
    if hooks.log_file is not None:
        return hooks
    return replace(hooks, log_file=log_file)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promptrecall",
        description="promptrecall: a chat composer with per-conversation shell-style prompt history",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--workspace", type=Path, default=None, help="Directory holding promptrecall.toml")

    sub = parser.add_subparsers(dest="cmd", required=False)

    app = sub.add_parser("app", help="Start the interactive composer (default).")
    app.add_argument("--conversation", default=None, help="Conversation to open first")

    sub.add_parser("config", help="Explain the resolved promptrecall.toml.")

    return parser


def cmd_app(args: argparse.Namespace) -> int:
    try:
        from .app import run_terminal_app
    except ModuleNotFoundError as exc:
        if exc.name == "textual":
            print("Interactive app requires `textual`. Install it (pip install textual), then retry.", file=sys.stderr)
            return 1
        raise

    return run_terminal_app(workspace=args.workspace, conversation=getattr(args, "conversation", None))


def cmd_config(args: argparse.Namespace) -> int:
    workspace = find_workspace_root(args.workspace)
    path = find_config_path(workspace)
    config, warning = load_recall_toml(path)
    hooks = hooks_with_log_file(None, runtime_paths(workspace).runtime_log)
    if warning:
        emit_runtime_log(warning, level="warn", stderr=True, hooks=hooks)
    print(explain_recall_toml(config, path=path))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.cmd == "config":
        return cmd_config(args)
    return cmd_app(args)


if __name__ == "__main__":
    raise SystemExit(main())
