"""Tests for engine config persistence and input sanitization.

Ensures malformed config data is safely normalized on load and that saving
keeps keys other tools wrote to the same file.
"""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from foldview import config
from foldview.styles import DiagnosticSeverity


class ConfigBehaviorTests(unittest.TestCase):
    def test_missing_file_loads_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "missing" / "config.json"
            with mock.patch("foldview.config.CONFIG_PATH", config_path):
                self.assertEqual(config.load_config(), {})
                self.assertEqual(config.load_engine_config(), config.EngineConfig())

    def test_malformed_json_is_logged_and_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text("{not json", encoding="utf-8")
            with mock.patch("foldview.config.CONFIG_PATH", config_path):
                with self.assertLogs("foldview.config", level="WARNING"):
                    self.assertEqual(config.load_config(), {})

    def test_non_object_json_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text("[1, 2]\n", encoding="utf-8")
            with mock.patch("foldview.config.CONFIG_PATH", config_path):
                self.assertEqual(config.load_config(), {})

    def test_values_are_sanitized(self) -> None:
        loaded = config.config_from_dict(
            {
                "line_height": -4,
                "char_width": 9,
                "tab_stop": True,
                "enable_inlay_hints": "yes",
                "enable_error_lens": False,
                "inlay_hint_fg": "#ABCDEF",
                "phantom_fg": "red",
                "inlay_hint_bg": None,
                "style": "   ",
                "unrelated": 1,
            }
        )
        defaults = config.EngineConfig()
        self.assertEqual(loaded.line_height, defaults.line_height)
        self.assertEqual(loaded.char_width, 9.0)
        self.assertEqual(loaded.tab_stop, defaults.tab_stop)
        self.assertTrue(loaded.enable_inlay_hints)
        self.assertFalse(loaded.enable_error_lens)
        self.assertEqual(loaded.inlay_hint_fg, "#abcdef")
        self.assertEqual(loaded.phantom_fg, defaults.phantom_fg)
        self.assertIsNone(loaded.inlay_hint_bg)
        self.assertEqual(loaded.style, defaults.style)

    def test_disabled_colors_drop_out_of_diagnostic_colors(self) -> None:
        colors = config.config_from_dict({"warning_color": None}).diagnostic_colors()
        self.assertEqual(set(colors), {DiagnosticSeverity.ERROR, DiagnosticSeverity.INFORMATION})

    def test_save_keeps_unrelated_keys(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "nested" / "config.json"
            config_path.parent.mkdir()
            config_path.write_text('{"theme_note": "keep me", "tab_stop": 2}\n', encoding="utf-8")
            with mock.patch("foldview.config.CONFIG_PATH", config_path):
                config.save_engine_config(config.EngineConfig(tab_stop=4, style="default"))
                saved = json.loads(config_path.read_text(encoding="utf-8"))
                loaded = config.load_engine_config()
            self.assertEqual(saved["theme_note"], "keep me")
            self.assertEqual(saved["tab_stop"], 4)
            self.assertEqual(loaded.tab_stop, 4)
            self.assertEqual(loaded.style, "default")


if __name__ == "__main__":
    unittest.main()
