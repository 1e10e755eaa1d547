from __future__ import annotations

from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from promptrecall.config import (
    CONFIG_FILENAME,
    RecallConfig,
    explain_recall_toml,
    find_config_path,
    load_recall_toml,
)
from promptrecall.paths import ensure_runtime_dirs, find_workspace_root, runtime_paths


class TestRecallConfig(unittest.TestCase):
    def test_missing_file_uses_defaults(self) -> None:
        with TemporaryDirectory() as tmp:
            cfg, warn = load_recall_toml(Path(tmp) / CONFIG_FILENAME)
            self.assertEqual("", warn)
            self.assertEqual(RecallConfig(), cfg)
            self.assertEqual(200, cfg.history.limit)
            self.assertEqual("default", cfg.history.default_key)
            self.assertEqual("up", cfg.keys.recall_older)

    def test_values_parse_from_toml(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / CONFIG_FILENAME
            path.write_text(
                "\n".join(
                    [
                        "[history]",
                        "limit = 50",
                        'default_key = "scratch"',
                        "",
                        "[keys]",
                        'recall_older = "PageUp"',
                        'recall_newer = "pagedown"',
                        "",
                        "[composer]",
                        'submit_on_enter = "no"',
                    ]
                )
                + "\n",
                encoding="utf-8",
            )
            cfg, warn = load_recall_toml(path)
            self.assertEqual("", warn)
            self.assertEqual(50, cfg.history.limit)
            self.assertEqual("scratch", cfg.history.default_key)
            self.assertEqual("pageup", cfg.keys.recall_older)
            self.assertEqual("pagedown", cfg.keys.recall_newer)
            self.assertFalse(cfg.composer.submit_on_enter)

    def test_bad_values_fall_back(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / CONFIG_FILENAME
            path.write_text(
                '[history]\nlimit = -3\ndefault_key = "  "\n[keys]\nrecall_older = "down"\nrecall_newer = "down"\n',
                encoding="utf-8",
            )
            cfg, warn = load_recall_toml(path)
            self.assertEqual(1, cfg.history.limit)
            self.assertEqual("default", cfg.history.default_key)
            self.assertEqual(("up", "down"), (cfg.keys.recall_older, cfg.keys.recall_newer))
            self.assertIn("recall_older", warn)

    def test_modifier_chords_are_rejected(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / CONFIG_FILENAME
            path.write_text('[keys]\nrecall_older = "ctrl+p"\nrecall_newer = "pagedown"\n', encoding="utf-8")
            cfg, warn = load_recall_toml(path)
            self.assertEqual(("up", "down"), (cfg.keys.recall_older, cfg.keys.recall_newer))
            self.assertIn("ctrl+p", warn)
            self.assertIn("modifiers", warn)

    def test_parse_failure_returns_warning(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / CONFIG_FILENAME
            path.write_text("[history\nlimit = ", encoding="utf-8")
            cfg, warn = load_recall_toml(path)
            self.assertEqual(RecallConfig(), cfg)
            self.assertIn("parse failed", warn)

    def test_explain_mentions_every_section(self) -> None:
        text = explain_recall_toml(RecallConfig())
        for section in ("[history]", "[keys]", "[composer]"):
            self.assertIn(section, text)
        self.assertIn("current: 200", text)
        self.assertIn("ctrl+j submits", text)


class TestWorkspacePaths(unittest.TestCase):
    def test_config_discovery_walks_up(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / CONFIG_FILENAME).write_text("[history]\nlimit = 5\n", encoding="utf-8")
            nested = root / "a" / "b"
            nested.mkdir(parents=True)

            self.assertEqual(root / CONFIG_FILENAME, find_config_path(nested))
            self.assertEqual(root, find_workspace_root(nested))

    def test_runtime_dirs_are_created(self) -> None:
        with TemporaryDirectory() as tmp:
            paths = ensure_runtime_dirs(runtime_paths(Path(tmp)))
            self.assertTrue(paths.logs_dir.is_dir())
            self.assertEqual("runtime.log", paths.runtime_log.name)
            self.assertEqual(paths.logs_dir, paths.events_log.parent)


if __name__ == "__main__":
    unittest.main()
