"""
Tests for the COCO decoder and its ingestion behavior.
"""

import json
import os
import sys
import unittest

# Add project root directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from annotation_core.class_registry import ClassRegistry  # noqa: E402
from annotation_core.decoders import CocoDecoder, DecodeContext  # noqa: E402
from annotation_core.exceptions import StructuralError  # noqa: E402
from annotation_core.ingest import ingest  # noqa: E402
from annotation_core.schema import ImageRecord, RawFile, Severity  # noqa: E402


def _coco_file(document, name="instances.json"):
    return RawFile(name=name, content=json.dumps(document).encode("utf-8"))


SAMPLE = {
    "categories": [{"id": 1, "name": "cat"}, {"id": 2, "name": "dog"}],
    "images": [
        {"id": 10, "file_name": "img1.jpg"},
        {"id": 11, "file_name": "train/img2.jpg"},
    ],
    "annotations": [
        {"id": 100, "image_id": 10, "category_id": 1, "bbox": [10, 20, 30, 40]},
        {"id": 101, "image_id": 11, "category_id": 2, "bbox": [0, 0, 5, 5], "score": 0.5},
        {"id": 102, "image_id": 10, "category_id": 7, "bbox": [1, 1, 2, 2]},
    ],
}


class TestCocoDecode(unittest.TestCase):
    def setUp(self):
        self.images = [
            ImageRecord(filename="img1.jpg", width=640, height=480, id="a"),
            ImageRecord(filename="img2.jpg", width=640, height=480, id="b"),
        ]
        self.context = DecodeContext.for_images(self.images)

    def test_decodes_records_in_order(self):
        output = CocoDecoder().decode([_coco_file(SAMPLE)], self.context)
        self.assertEqual(len(output.records), 3)
        first = output.records[0]
        self.assertEqual(first.source_filename, "img1.jpg")
        self.assertEqual(first.label, "cat")
        self.assertEqual(first.bbox.as_tuple(), (10, 20, 30, 40))
        self.assertEqual(first.confidence, 1.0)
        self.assertEqual(first.annotation_id, "100")
        self.assertEqual(output.records[1].confidence, 0.5)

    def test_unknown_category_gets_synthetic_label(self):
        output = CocoDecoder().decode([_coco_file(SAMPLE)], self.context)
        self.assertEqual(output.records[2].label, "class_7")

    def test_declared_categories_are_reported_in_order(self):
        output = CocoDecoder().decode([_coco_file(SAMPLE)], self.context)
        self.assertEqual(output.declared_labels, ["cat", "dog"])

    def test_declared_categories_can_be_disabled(self):
        decoder = CocoDecoder(CocoDecoder.ConfigType(register_categories=False))
        output = decoder.decode([_coco_file(SAMPLE)], self.context)
        self.assertEqual(output.declared_labels, [])

    def test_invalid_json_is_structural(self):
        raw = RawFile(name="broken.json", content=b"{not json")
        with self.assertRaises(StructuralError) as ctx:
            CocoDecoder().decode([raw], self.context)
        self.assertEqual(ctx.exception.filepath, "broken.json")

    def test_non_object_root_is_structural(self):
        with self.assertRaises(StructuralError):
            CocoDecoder().decode([_coco_file([1, 2, 3])], self.context)

    def test_missing_arrays_are_empty(self):
        output = CocoDecoder().decode([_coco_file({})], self.context)
        self.assertEqual(output.records, [])
        self.assertEqual(output.diagnostics, [])

    def test_bad_annotations_are_skipped_with_codes(self):
        document = {
            "images": [{"id": 1, "file_name": "img1.jpg"}],
            "annotations": [
                "not-an-object",
                {"image_id": 99, "category_id": 1, "bbox": [0, 0, 1, 1]},
                {"image_id": 1, "category_id": 1, "bbox": [0, 0, 1]},
                {"image_id": 1, "category_id": 1, "bbox": ["0", 0, 1, 1]},
                {"image_id": 1, "category_id": 1, "bbox": [0, 0, 1, 1]},
            ],
        }
        with self.assertLogs("annotation_core.decoders.base", level="WARNING"):
            output = CocoDecoder().decode([_coco_file(document)], self.context)
        self.assertEqual(len(output.records), 1)
        self.assertEqual(output.records[0].annotation_id, "coco_4")
        self.assertEqual(
            [d.code for d in output.diagnostics],
            ["invalid_record", "unknown_image_id", "malformed_bbox", "malformed_bbox"],
        )
        self.assertEqual(output.diagnostics[1].context["record"], 1)
        self.assertEqual(output.diagnostics[1].context["file"], "instances.json")


class TestCocoIngest(unittest.TestCase):
    def _images(self):
        return [
            ImageRecord(filename="img1.jpg", width=640, height=480, id="a"),
            ImageRecord(filename="img2.jpg", width=640, height=480, id="b"),
        ]

    def test_ingest_attaches_and_registers(self):
        images = self._images()
        registry = ClassRegistry()
        result = ingest("coco", [_coco_file(SAMPLE)], images, registry)
        self.assertEqual(result.accepted_count, 3)
        self.assertEqual(len(images[0].annotations), 2)
        self.assertEqual(len(images[1].annotations), 1)
        self.assertEqual(registry.names(), ["cat", "dog", "class_7"])
        self.assertEqual(result.accepted_by_label, {"cat": 1, "dog": 1, "class_7": 1})
        for image in images:
            for annotation in image.annotations:
                self.assertGreater(annotation.bbox.width, 0)
                self.assertGreater(annotation.bbox.height, 0)

    def test_category_with_unhashable_id_is_skipped(self):
        document = {
            "categories": [{"id": [1], "name": "bad"}, {"id": 2, "name": "cat"}],
            "images": [{"id": 1, "file_name": "img1.jpg"}],
            "annotations": [{"id": 1, "image_id": 1, "category_id": 2, "bbox": [1, 1, 5, 5]}],
        }
        images = self._images()
        registry = ClassRegistry()
        with self.assertLogs("annotation_core.decoders.base", level="WARNING"):
            result = ingest("coco", [_coco_file(document)], images, registry)
        self.assertEqual(result.accepted_count, 1)
        self.assertEqual(registry.names(), ["cat"])
        self.assertEqual([d.code for d in result.warnings], ["invalid_record"])
        self.assertEqual(result.warnings[0].context["section"], "categories")
        self.assertEqual(result.warnings[0].context["record"], 0)

    def test_image_with_unhashable_id_is_skipped(self):
        document = {
            "images": [
                {"id": {"x": 1}, "file_name": "img2.jpg"},
                {"id": 1, "file_name": "img1.jpg"},
            ],
            "annotations": [{"id": 1, "image_id": 1, "category_id": 2, "bbox": [1, 1, 5, 5]}],
        }
        images = self._images()
        with self.assertLogs("annotation_core.decoders.base", level="WARNING"):
            result = ingest("coco", [_coco_file(document)], images, ClassRegistry())
        self.assertEqual(result.accepted_count, 1)
        self.assertEqual(len(images[0].annotations), 1)
        self.assertEqual(result.warnings[0].code, "invalid_record")
        self.assertEqual(result.warnings[0].context["section"], "images")
        self.assertEqual(result.warnings[0].context["file"], "instances.json")

    def test_repeated_ingestion_doubles_annotations(self):
        images = self._images()
        registry = ClassRegistry()
        ingest("coco", [_coco_file(SAMPLE)], images, registry)
        result = ingest("coco", [_coco_file(SAMPLE)], images, registry)
        self.assertEqual(result.accepted_count, 3)
        self.assertEqual(sum(len(i.annotations) for i in images), 6)
        ids = [a.id for a in images[0].annotations]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertIn("100#1", ids)
        self.assertEqual(len(registry), 3)

    def test_zero_accepted_is_a_warning_not_an_error(self):
        images = [ImageRecord(filename="unrelated.jpg", width=10, height=10)]
        result = ingest("coco", [_coco_file(SAMPLE)], images, ClassRegistry())
        self.assertEqual(result.accepted_count, 0)
        self.assertTrue(result.ok)
        self.assertIn("empty_result", result.codes())
        self.assertEqual(result.codes().count("unmatched_image"), 3)
        self.assertTrue(all(d.severity == Severity.WARNING for d in result.diagnostics))

    def test_invalid_json_becomes_error_diagnostic(self):
        images = self._images()
        raw = RawFile(name="broken.json", content=b"[")
        result = ingest("coco", [raw], images, ClassRegistry())
        self.assertFalse(result.ok)
        self.assertEqual(result.errors[0].code, "structural")
        self.assertEqual(result.errors[0].context["file"], "broken.json")


if __name__ == "__main__":
    unittest.main()
