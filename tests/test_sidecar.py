import json
import tempfile
import unittest
from pathlib import Path

from img_index.sidecar import (
    has_sidecar,
    is_sidecar_file,
    read_sidecar,
    remove_sidecar,
    sidecar_path,
    write_sidecar,
)


class SidecarTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.image = Path(self._tmp.name) / "holiday.jpg"
        self.image.write_bytes(b"jpeg")

    def tearDown(self):
        self._tmp.cleanup()

    def test_path_naming(self):
        self.assertEqual(sidecar_path(self.image, "people").name, "holiday.jpg:people.json")
        self.assertEqual(sidecar_path(self.image, "description").parent, self.image.parent)

    def test_unknown_stream_rejected(self):
        with self.assertRaises(ValueError):
            sidecar_path(self.image, "captions")

    def test_write_then_read(self):
        payload = {"faces": ["Zoë"], "count": 1}
        path = write_sidecar(self.image, "people", payload)
        self.assertTrue(path.is_file())
        self.assertTrue(has_sidecar(self.image, "people"))
        self.assertFalse(has_sidecar(self.image, "objects"))
        self.assertEqual(read_sidecar(self.image, "people"), payload)
        self.assertIn("Zoë", path.read_text(encoding="utf-8"))
        leftovers = [p.name for p in self.image.parent.iterdir() if p.name.endswith(".tmp")]
        self.assertEqual(leftovers, [])

    def test_overwrite_replaces_content(self):
        write_sidecar(self.image, "scenes", {"scene": "beach"})
        write_sidecar(self.image, "scenes", {"scene": "forest"})
        self.assertEqual(read_sidecar(self.image, "scenes"), {"scene": "forest"})

    def test_missing_or_invalid_sidecar_reads_as_none(self):
        self.assertIsNone(read_sidecar(self.image, "objects"))
        sidecar_path(self.image, "objects").write_text("{not json", encoding="utf-8")
        self.assertIsNone(read_sidecar(self.image, "objects"))
        sidecar_path(self.image, "objects").write_text(json.dumps(["a", "b"]), encoding="utf-8")
        self.assertIsNone(read_sidecar(self.image, "objects"))

    def test_is_sidecar_file(self):
        self.assertTrue(is_sidecar_file(sidecar_path(self.image, "description")))
        self.assertFalse(is_sidecar_file(self.image))
        self.assertFalse(is_sidecar_file(Path("notes.json")))

    def test_remove(self):
        write_sidecar(self.image, "objects", {"objects": []})
        self.assertTrue(remove_sidecar(self.image, "objects"))
        self.assertFalse(remove_sidecar(self.image, "objects"))


if __name__ == "__main__":
    unittest.main()
