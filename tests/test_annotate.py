import tempfile
import unittest
from pathlib import Path
from unittest import mock

from PIL import Image

from img_index import preferences
from img_index.annotate import (
    faces_payload,
    objects_payload,
    register_known_faces,
    update_descriptions,
    update_faces,
    update_objects,
    update_scenes,
)
from img_index.config import IndexConfig
from img_index.detection import DetectionServiceError
from img_index.models import ImageDescription, Prediction
from img_index.sidecar import read_sidecar, write_sidecar


class FakeDescriber:
    def __init__(self, fail_on: str = ""):
        self.fail_on = fail_on
        self.calls: list[tuple[str, str]] = []

    def describe(self, prepared, language):
        self.calls.append((prepared.source_path.name, language))
        if prepared.source_path.name == self.fail_on:
            raise RuntimeError("model crashed")
        return ImageDescription(
            short_description=f"Picture {prepared.source_path.stem}",
            long_description="Long text.",
            keywords=["test"],
            language=language,
            raw_output="{...}",
        )


class AnnotateTests(unittest.TestCase):
    def setUp(self):
        preferences._SESSION.clear()
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.cfg = IndexConfig(data_root=root, preferences_path=root / "prefs.db", default_language="English")
        self.photos = root / "photos"
        self.photos.mkdir()
        self.a = self.photos / "a.jpg"
        self.b = self.photos / "b.png"
        Image.new("RGB", (16, 16), (255, 0, 0)).save(self.a)
        Image.new("RGB", (16, 16), (0, 255, 0)).save(self.b)

    def tearDown(self):
        preferences._SESSION.clear()
        self._tmp.cleanup()

    def test_descriptions_written_and_existing_skipped(self):
        write_sidecar(self.b, "description", {"short_description": "already done"})
        describer = FakeDescriber()
        out = update_descriptions([self.photos], self.cfg, language="dutch", describer=describer)

        self.assertEqual(out["stream"], "description")
        self.assertEqual((out["processed"], out["skipped"], out["failed"]), (1, 1, []))
        self.assertEqual(describer.calls, [("a.jpg", "Dutch")])
        sidecar = read_sidecar(self.a, "description")
        self.assertEqual(sidecar["short_description"], "Picture a")
        self.assertEqual(sidecar["language"], "Dutch")
        self.assertIn("updated_at", sidecar)
        self.assertNotIn("raw_output", sidecar)
        self.assertEqual(read_sidecar(self.b, "description"), {"short_description": "already done"})

    def test_force_redoes_everything(self):
        write_sidecar(self.b, "description", {"short_description": "already done"})
        out = update_descriptions([self.photos], self.cfg, force=True, describer=FakeDescriber())
        self.assertEqual(out["processed"], 2)
        self.assertEqual(read_sidecar(self.b, "description")["language"], "English")

    def test_one_failure_does_not_stop_the_walk(self):
        out = update_descriptions([self.photos], self.cfg, describer=FakeDescriber(fail_on="a.jpg"))
        self.assertEqual(out["processed"], 1)
        self.assertEqual(len(out["failed"]), 1)
        self.assertIn("model crashed", out["failed"][0])
        self.assertIsNone(read_sidecar(self.a, "description"))

    def test_configured_directories_are_used(self):
        with self.assertRaises(ValueError):
            update_descriptions(None, self.cfg, describer=FakeDescriber())
        preferences.add_image_directories([self.photos], self.cfg)
        out = update_descriptions(None, self.cfg, describer=FakeDescriber())
        self.assertEqual(out["processed"], 2)

    def test_faces_objects_and_scenes(self):
        client = mock.Mock()
        client.recognize_faces.return_value = [
            Prediction("Alice", 0.9),
            Prediction("unknown", 0.7),
            Prediction("Alice", 0.6),
        ]
        client.detect_objects.return_value = [Prediction("cup", 0.8), Prediction("cup", 0.7), Prediction("laptop", 0.9)]
        client.classify_scene.return_value = {"scene": "office", "confidence": 0.66}

        self.assertEqual(update_faces([self.photos], self.cfg, client=client)["processed"], 2)
        self.assertEqual(update_objects([self.photos], self.cfg, client=client)["processed"], 2)
        self.assertEqual(update_scenes([self.photos], self.cfg, client=client)["processed"], 2)

        people = read_sidecar(self.a, "people")
        self.assertEqual(people["faces"], ["Alice"])
        self.assertEqual(people["count"], 3)
        objects = read_sidecar(self.a, "objects")
        self.assertEqual(objects["object_counts"], {"cup": 2, "laptop": 1})
        self.assertEqual(read_sidecar(self.b, "scenes")["scene"], "office")

    def test_service_error_is_recorded(self):
        client = mock.Mock()
        client.classify_scene.side_effect = DetectionServiceError("server down")
        out = update_scenes([self.photos], self.cfg, client=client)
        self.assertEqual(out["processed"], 0)
        self.assertEqual(len(out["failed"]), 2)

    def test_payload_helpers(self):
        self.assertEqual(faces_payload([])["faces"], [])
        out = objects_payload([Prediction("dog", 0.9)])
        self.assertEqual(out["count"], 1)
        self.assertEqual(out["objects"], ["dog"])
        self.assertEqual(out["predictions"][0]["label"], "dog")


class RegisterFacesTests(unittest.TestCase):
    def setUp(self):
        preferences._SESSION.clear()
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.faces = root / "faces"
        self.cfg = IndexConfig(data_root=root, preferences_path=root / "prefs.db", faces_root=self.faces)

    def tearDown(self):
        preferences._SESSION.clear()
        self._tmp.cleanup()

    def test_each_person_folder_is_registered(self):
        for person, count in (("Alice", 2), ("Bob", 1)):
            folder = self.faces / person
            folder.mkdir(parents=True)
            for i in range(count):
                Image.new("RGB", (8, 8)).save(folder / f"{i}.jpg")
        (self.faces / "Empty").mkdir()

        client = mock.Mock()
        client.register_face.side_effect = lambda name, images: {"name": name, "images": len(images)}
        out = register_known_faces(self.cfg, client=client)

        self.assertEqual(out["faces_root"], str(self.faces))
        self.assertEqual(out["registered"], [{"name": "Alice", "images": 2}, {"name": "Bob", "images": 1}])
        self.assertEqual(out["failed"], [])

    def test_failure_per_person_is_recorded(self):
        (self.faces / "Alice").mkdir(parents=True)
        Image.new("RGB", (8, 8)).save(self.faces / "Alice" / "1.jpg")
        client = mock.Mock()
        client.register_face.side_effect = DetectionServiceError("rejected")
        out = register_known_faces(self.cfg, client=client)
        self.assertEqual(out["registered"], [])
        self.assertIn("Alice", out["failed"][0])

    def test_missing_root(self):
        with self.assertRaises(FileNotFoundError):
            register_known_faces(self.cfg, client=mock.Mock())


if __name__ == "__main__":
    unittest.main()
