import tempfile
import unittest
from pathlib import Path

from img_index import preferences
from img_index.config import IndexConfig
from img_index.languages import normalize_language
from img_index.preferences import PreferenceStore


class PreferenceStoreTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.session: dict[str, str] = {}
        self.store = PreferenceStore(Path(self._tmp.name) / "prefs.db", session=self.session)

    def tearDown(self):
        self._tmp.cleanup()

    def test_default_when_unset(self):
        self.assertEqual(self.store.get("Color", "blue"), "blue")
        self.assertIsNone(self.store.get("Color"))

    def test_persistent_set_also_fills_session(self):
        self.store.set("Color", "red")
        self.assertEqual(self.session["Color"], "red")
        fresh = PreferenceStore(self.store.path, session={})
        self.assertEqual(fresh.get("Color"), "red")

    def test_session_only_does_not_persist(self):
        self.store.set("Color", "green", session_only=True)
        self.assertEqual(self.store.get("Color"), "green")
        self.assertEqual(self.store.get("Color", "none", skip_session=True), "none")

    def test_session_wins_over_persistent_unless_skipped(self):
        self.store.set("Color", "red")
        self.store.set("Color", "green", session_only=True)
        self.assertEqual(self.store.get("Color"), "green")
        self.assertEqual(self.store.get("Color", skip_session=True), "red")
        self.assertIsNone(self.store.get("Missing", session_only=True))

    def test_skip_session_write_leaves_session_alone(self):
        self.store.set("Color", "green", session_only=True)
        self.store.set("Color", "red", skip_session=True)
        self.assertEqual(self.store.get("Color"), "green")
        self.assertEqual(self.store.get("Color", skip_session=True), "red")

    def test_clear_session(self):
        self.store.set("Color", "red")
        self.store.set("Color", "green", session_only=True)
        self.store.set("Color", None, clear_session=True)
        self.assertNotIn("Color", self.session)
        self.assertEqual(self.store.get("Color"), "red")

    def test_none_value_rejected(self):
        with self.assertRaises(ValueError):
            self.store.set("Color", None)

    def test_remove(self):
        self.store.set("Color", "red")
        self.store.remove("Color")
        self.assertIsNone(self.store.get("Color"))


class NamedPreferenceTests(unittest.TestCase):
    def setUp(self):
        preferences._SESSION.clear()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.cfg = IndexConfig(
            data_root=self.root,
            index_path=self.root / "default.db",
            preferences_path=self.root / "prefs.db",
            faces_root=self.root / "Pictures",
            default_language="English",
        )

    def tearDown(self):
        preferences._SESSION.clear()
        self._tmp.cleanup()

    def test_index_path_default_and_override(self):
        self.assertEqual(preferences.get_image_index_path(self.cfg), self.root / "default.db")
        target = self.root / "nested" / "dir" / "images.db"
        self.assertEqual(preferences.set_image_index_path(str(target), self.cfg), target)
        self.assertTrue(target.parent.is_dir())
        self.assertEqual(preferences.get_image_index_path(self.cfg), target)
        explicit = self.root / "explicit.db"
        self.assertEqual(preferences.get_image_index_path(self.cfg, database_path=str(explicit)), explicit)

    def test_index_path_requires_value(self):
        with self.assertRaises(ValueError):
            preferences.set_image_index_path("  ", self.cfg)
        self.assertIsNone(preferences.set_image_index_path(None, self.cfg, clear_session=True))

    def test_add_directories_dedupes(self):
        a = self.root / "a"
        b = self.root / "b"
        preferences.add_image_directories([a], self.cfg)
        dirs = preferences.add_image_directories([a, b, str(b) + "/"], self.cfg)
        self.assertEqual(dirs, [a, b])
        self.assertEqual(preferences.get_image_directories(self.cfg, skip_session=True), [a, b])

    def test_session_only_directories(self):
        preferences.add_image_directories([self.root / "persisted"], self.cfg)
        preferences.add_image_directories([self.root / "temp"], self.cfg, session_only=True)
        self.assertEqual(len(preferences.get_image_directories(self.cfg)), 2)
        self.assertEqual(preferences.get_image_directories(self.cfg, skip_session=True), [self.root / "persisted"])

    def test_meta_language(self):
        self.assertEqual(preferences.get_meta_language(self.cfg), "English")
        self.assertEqual(preferences.set_meta_language("dutch", self.cfg), "Dutch")
        self.assertEqual(preferences.get_meta_language(self.cfg), "Dutch")
        self.assertEqual(preferences.get_meta_language(self.cfg, language="french"), "French")
        self.assertEqual(preferences.set_meta_language("", self.cfg), "English")
        with self.assertRaises(ValueError):
            preferences.set_meta_language("Klingon", self.cfg)

    def test_known_faces_root(self):
        self.assertEqual(preferences.get_known_faces_root(self.cfg), self.root / "Pictures")
        faces = self.root / "faces"
        preferences.set_known_faces_root(str(faces), self.cfg, session_only=True)
        self.assertEqual(preferences.get_known_faces_root(self.cfg), faces)
        self.assertEqual(preferences.get_known_faces_root(self.cfg, skip_session=True), self.root / "Pictures")
        with self.assertRaises(ValueError):
            preferences.set_known_faces_root("", self.cfg)

    def test_describe_preferences(self):
        out = preferences.describe_preferences(self.cfg)
        self.assertEqual(out["meta_language"], "English")
        self.assertEqual(out["image_directories"], [])


class LanguageTests(unittest.TestCase):
    def test_normalize(self):
        self.assertEqual(normalize_language(" german "), "German")
        self.assertEqual(normalize_language("chinese (simplified)"), "Chinese (Simplified)")
        with self.assertRaises(ValueError):
            normalize_language("Elvish")


if __name__ == "__main__":
    unittest.main()
