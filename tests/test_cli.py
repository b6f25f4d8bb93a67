import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from PIL import Image

import img_cli
from img_index import preferences
from img_index.config import IndexConfig


class CliTests(unittest.TestCase):
    def setUp(self):
        preferences._SESSION.clear()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.cfg = IndexConfig(
            data_root=self.root,
            index_path=self.root / "images.db",
            preferences_path=self.root / "prefs.db",
        )
        patcher = mock.patch.object(img_cli, "IndexConfig", return_value=self.cfg)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        preferences._SESSION.clear()
        self._tmp.cleanup()

    def _run(self, *argv: str):
        buf = io.StringIO()
        with redirect_stdout(buf):
            img_cli.main(list(argv))
        return json.loads(buf.getvalue())

    def test_find_arguments_map_to_query(self):
        args = img_cli.parse_args(
            ["find", "beach", "--keyword", "sun*", "--keyword", "sea", "--no-nudity", "--geo", "52.1", "4.3", "-n", "5"]
        )
        query = img_cli._query_from_args(args)
        self.assertEqual(query.any_terms, ["beach"])
        self.assertEqual(query.keywords, ["sun*", "sea"])
        self.assertTrue(query.no_nudity)
        self.assertEqual(query.geo_location, (52.1, 4.3))
        self.assertEqual(query.limit, 5)

    def test_language_round_trip(self):
        self.assertEqual(self._run("set-language", "spanish"), {"language": "Spanish", "cleared": False})
        self.assertEqual(self._run("get-language"), {"language": "Spanish"})

    def test_add_dirs_export_and_find(self):
        photos = self.root / "photos"
        photos.mkdir()
        Image.new("RGB", (10, 10)).save(photos / "one.jpg")
        self._run("add-dirs", str(photos))

        exported = self._run("export-index")
        self.assertEqual(exported["indexed"], 1)
        found = self._run("find", "--path", "*one.jpg")
        self.assertEqual(found["count"], 1)
        self.assertTrue(found["results"][0]["path"].endswith("one.jpg"))

    def test_check_image_errors_exit(self):
        with self.assertRaises(SystemExit) as ctx:
            img_cli.main(["check-image", str(self.root / "missing.jpg")])
        self.assertIn("Image file not found", str(ctx.exception.code))

    def test_list_and_delete_registered_faces(self):
        with mock.patch("img_index.api.DetectionClient") as client_cls:
            client = client_cls.return_value.__enter__.return_value
            client.list_faces.return_value = ["Alice", "Bob"]
            self.assertEqual(self._run("list-faces"), {"count": 2, "faces": ["Alice", "Bob"]})
            self.assertEqual(self._run("delete-face", "Bob"), {"name": "Bob", "deleted": True})

        client.delete_face.assert_called_once_with("Bob")
        client_cls.assert_called_with(self.cfg)
        self.assertEqual(client_cls.return_value.__exit__.call_count, 2)

    def test_delete_face_needs_a_name(self):
        with mock.patch("img_index.api.DetectionClient") as client_cls:
            client_cls.return_value.__enter__.return_value.delete_face.side_effect = ValueError("A person name is required")
            with self.assertRaises(SystemExit):
                img_cli.main(["delete-face", " "])

    def test_contradictory_find_flags_exit(self):
        with self.assertRaises(SystemExit):
            img_cli.main(["find", "--has-nudity", "--no-nudity"])


if __name__ == "__main__":
    unittest.main()
