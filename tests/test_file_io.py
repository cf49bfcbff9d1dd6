"""
Tests for reading annotation files and image manifests from disk.
"""

import json
import os
import sys
import tempfile
import unittest

# Add project root directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from annotation_core.exceptions import AnnotationValidationError  # noqa: E402
from annotation_core.file_io import (  # noqa: E402
    load_image_manifest,
    read_raw_file,
    read_raw_files,
)


class _TempDirTestCase(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.tmpdir = self._tmpdir.name

    def tearDown(self):
        self._tmpdir.cleanup()

    def _write(self, name, data):
        path = os.path.join(self.tmpdir, name)
        mode = "wb" if isinstance(data, bytes) else "w"
        encoding = None if isinstance(data, bytes) else "utf-8"
        with open(path, mode, encoding=encoding) as f:
            f.write(data)
        return path


class TestReadRawFiles(_TempDirTestCase):
    def test_read_keeps_base_name_and_bytes(self):
        path = self._write("frame_001.txt", b"0 0.5 0.5 0.1 0.1\n")
        raw = read_raw_file(path)
        self.assertEqual(raw.name, "frame_001.txt")
        self.assertEqual(raw.content, b"0 0.5 0.5 0.1 0.1\n")

    def test_order_is_preserved(self):
        paths = [self._write(f"f{i:02d}.txt", f"{i}".encode()) for i in range(12)]
        files = read_raw_files(list(reversed(paths)), max_workers=4)
        self.assertEqual([f.name for f in files], [f"f{i:02d}.txt" for i in reversed(range(12))])
        self.assertEqual(files[0].content, b"11")

    def test_empty_list(self):
        self.assertEqual(read_raw_files([]), [])

    def test_missing_file_raises(self):
        with self.assertRaises(AnnotationValidationError) as ctx:
            read_raw_files([os.path.join(self.tmpdir, "missing.txt")])
        self.assertIsInstance(ctx.exception.original_error, OSError)


class TestLoadImageManifest(_TempDirTestCase):
    def test_json_list(self):
        path = self._write(
            "images.json",
            json.dumps(
                [
                    {"filename": "a.jpg", "width": 640, "height": 480, "id": 7},
                    {"file_name": "b.jpg", "width": "320", "height": "240"},
                ]
            ),
        )
        images = load_image_manifest(path)
        self.assertEqual([i.filename for i in images], ["a.jpg", "b.jpg"])
        self.assertEqual(images[0].id, "7")
        self.assertEqual((images[1].width, images[1].height), (320, 240))
        self.assertTrue(images[1].id)

    def test_yaml_mapping_with_images(self):
        path = self._write(
            "images.yaml",
            "images:\n  - {filename: a.jpg, width: 10, height: 20}\n",
        )
        images = load_image_manifest(path)
        self.assertEqual(images[0].height, 20)

    def test_csv_manifest(self):
        path = self._write("images.csv", "filename,width,height\na.jpg,100,50\nb.png,8,8\n")
        images = load_image_manifest(path)
        self.assertEqual(len(images), 2)
        self.assertEqual(images[0].width, 100)
        self.assertEqual(images[1].filename, "b.png")

    def test_invalid_dimensions(self):
        path = self._write("images.json", json.dumps([{"filename": "a.jpg", "width": 0, "height": 5}]))
        with self.assertRaises(AnnotationValidationError):
            load_image_manifest(path)
        path = self._write("bad.json", json.dumps([{"filename": "a.jpg", "width": "wide", "height": 5}]))
        with self.assertRaises(AnnotationValidationError) as ctx:
            load_image_manifest(path)
        self.assertEqual(ctx.exception.parameter_name, "images[0].width")

    def test_missing_filename(self):
        path = self._write("images.json", json.dumps([{"width": 1, "height": 1}]))
        with self.assertRaises(AnnotationValidationError):
            load_image_manifest(path)

    def test_wrong_root(self):
        path = self._write("images.json", json.dumps({"pictures": []}))
        with self.assertRaises(AnnotationValidationError):
            load_image_manifest(path)

    def test_unsupported_extension(self):
        path = self._write("images.txt", "a.jpg")
        with self.assertRaises(AnnotationValidationError):
            load_image_manifest(path)

    def test_invalid_json(self):
        path = self._write("images.json", "[")
        with self.assertRaises(AnnotationValidationError):
            load_image_manifest(path)


if __name__ == "__main__":
    unittest.main()
