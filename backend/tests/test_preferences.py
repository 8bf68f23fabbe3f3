import json
import tempfile
import unittest
from pathlib import Path

from core.preferences import (
    PreferenceStore,
    merge_preferences,
    parse_server_flag,
    resolve_preferences,
)
from models import ReaderPreferences, ReaderTheme


class ResolvePreferencesTest(unittest.TestCase):
    def test_defaults_when_nothing_is_stored(self):
        prefs = resolve_preferences()
        self.assertEqual(prefs.font_size, 18)
        self.assertEqual(prefs.font_family, "serif")
        self.assertEqual(prefs.line_height, 1.8)
        self.assertIs(prefs.theme, ReaderTheme.LIGHT)
        self.assertEqual(prefs.max_width, 800)
        self.assertEqual(prefs.paragraph_spacing, 1.5)
        self.assertTrue(prefs.justify_text)
        self.assertTrue(prefs.show_progress)
        self.assertFalse(prefs.auto_advance)

    def test_server_auto_advance_string_is_parsed(self):
        prefs = resolve_preferences({}, {"reader_auto_advance": "true"})
        self.assertTrue(prefs.auto_advance)
        prefs = resolve_preferences({}, {"reader_auto_advance": "FALSE"})
        self.assertFalse(prefs.auto_advance)

    def test_saved_value_beats_server_default(self):
        prefs = resolve_preferences({"auto_advance": False}, {"reader_auto_advance": True})
        self.assertFalse(prefs.auto_advance)

    def test_invalid_field_falls_back_alone(self):
        stored = {"font_size": 3, "theme": "neon", "font_family": "sans-serif"}
        prefs = resolve_preferences(stored)
        self.assertEqual(prefs.font_size, 18)
        self.assertIs(prefs.theme, ReaderTheme.LIGHT)
        self.assertEqual(prefs.font_family, "sans-serif")

    def test_legacy_camel_case_keys_are_accepted(self):
        prefs = resolve_preferences({"fontSize": 22, "justifyText": False, "theme": "sepia"})
        self.assertEqual(prefs.font_size, 22)
        self.assertFalse(prefs.justify_text)
        self.assertIs(prefs.theme, ReaderTheme.SEPIA)

    def test_unknown_keys_are_ignored(self):
        base = ReaderPreferences()
        self.assertEqual(merge_preferences(base, {"volume": 11}), base)


class ParseServerFlagTest(unittest.TestCase):
    def test_values(self):
        self.assertIsNone(parse_server_flag(None))
        self.assertTrue(parse_server_flag(True))
        self.assertTrue(parse_server_flag(" True "))
        self.assertFalse(parse_server_flag("yes"))
        self.assertFalse(parse_server_flag(0))


class PreferenceStoreTest(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "prefs" / "reader.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_gives_defaults(self):
        self.assertEqual(PreferenceStore(self.path).load(), ReaderPreferences())

    def test_save_then_load(self):
        store = PreferenceStore(self.path)
        store.save(ReaderPreferences(font_size=24, theme=ReaderTheme.DARK))
        loaded = store.load()
        self.assertEqual(loaded.font_size, 24)
        self.assertIs(loaded.theme, ReaderTheme.DARK)
        self.assertEqual(json.loads(self.path.read_text(encoding="utf-8"))["theme"], "dark")

    def test_corrupt_file_falls_back_to_defaults(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("novelforge.preferences", level="WARNING"):
            prefs = PreferenceStore(self.path).load({"reader_auto_advance": "true"})
        self.assertEqual(prefs.font_size, 18)
        self.assertTrue(prefs.auto_advance)

    def test_non_object_file_is_ignored(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("[1, 2]", encoding="utf-8")
        self.assertEqual(PreferenceStore(self.path).read_raw(), {})


if __name__ == "__main__":
    unittest.main()
