"""
Tests for the YOLO decoder: denormalization, class files and line errors.
"""

import os
import sys
import unittest

import numpy as np

# Add project root directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from annotation_core.class_registry import ClassRegistry  # noqa: E402
from annotation_core.decoders import DecodeContext, YoloDecoder  # noqa: E402
from annotation_core.decoders.yolo import (  # noqa: E402
    YoloDecoderConfig,
    denormalize,
    read_class_names,
)
from annotation_core.exceptions import EmptyResultError  # noqa: E402
from annotation_core.ingest import ingest  # noqa: E402
from annotation_core.schema import (  # noqa: E402
    ImageRecord,
    IngestionConfig,
    RawFile,
    Severity,
)


class TestDenormalize(unittest.TestCase):
    def test_center_box_to_pixels(self):
        pixels = denormalize(np.array([[0.5, 0.5, 0.25, 0.5]]), 640, 480)
        np.testing.assert_allclose(pixels, [[240.0, 120.0, 160.0, 240.0]])

    def test_negative_origin_is_clamped(self):
        pixels = denormalize([[0.05, 0.05, 0.2, 0.2]], 100, 100)
        self.assertEqual(pixels[0, 0], 0.0)
        self.assertEqual(pixels[0, 1], 0.0)
        self.assertAlmostEqual(pixels[0, 2], 20.0)
        self.assertAlmostEqual(pixels[0, 3], 20.0)

    def test_round_trip_within_one_pixel(self):
        width, height = 1920, 1080
        x, y, w, h = 100.0, 200.0, 300.0, 150.0
        normalized = [
            round((x + w / 2) / width, 6),
            round((y + h / 2) / height, 6),
            round(w / width, 6),
            round(h / height, 6),
        ]
        pixels = denormalize([normalized], width, height)[0]
        for got, want in zip(pixels, (x, y, w, h)):
            self.assertLessEqual(abs(got - want), 1.0)


class TestReadClassNames(unittest.TestCase):
    def test_blank_lines_are_dropped(self):
        raw = RawFile(name="classes.txt", content="cat\n\ndog\n  \nbird\n")
        self.assertEqual(read_class_names(raw), ["cat", "dog", "bird"])


class TestYoloDecode(unittest.TestCase):
    def setUp(self):
        self.images = [
            ImageRecord(filename="frame_001.jpg", width=640, height=480, id="f1"),
            ImageRecord(filename="frame_002.png", width=100, height=100, id="f2"),
        ]
        self.context = DecodeContext.for_images(self.images)

    def test_decodes_with_class_file(self):
        files = [
            RawFile(name="classes.txt", content="cat\ndog\n"),
            RawFile(name="frame_001.txt", content="1 0.5 0.5 0.25 0.5\n0 0.5 0.5 0.1 0.1 0.8\n"),
        ]
        output = YoloDecoder().decode(files, self.context)
        self.assertEqual(output.annotation_files, 1)
        self.assertEqual(len(output.records), 2)
        first, second = output.records
        self.assertEqual(first.label, "dog")
        self.assertEqual(first.source_filename, "frame_001")
        self.assertTrue(first.match_on_stem)
        self.assertEqual(first.annotation_id, "frame_001_0")
        np.testing.assert_allclose(first.bbox.as_tuple(), (240.0, 120.0, 160.0, 240.0))
        self.assertEqual(first.confidence, 1.0)
        self.assertEqual(second.label, "cat")
        self.assertAlmostEqual(second.confidence, 0.8)

    def test_class_file_name_is_case_insensitive(self):
        files = [
            RawFile(name="Classes.TXT", content="person\n"),
            RawFile(name="frame_001.txt", content="0 0.5 0.5 0.2 0.2\n"),
        ]
        output = YoloDecoder().decode(files, self.context)
        self.assertEqual(output.records[0].label, "person")

    def test_custom_class_file_names(self):
        decoder = YoloDecoder(YoloDecoderConfig(class_file_names=["Labels.txt"]))
        files = [
            RawFile(name="labels.txt", content="car\n"),
            RawFile(name="frame_001.txt", content="0 0.5 0.5 0.2 0.2\n"),
        ]
        output = decoder.decode(files, self.context)
        self.assertEqual(output.records[0].label, "car")

    def test_missing_class_name_uses_synthetic_label(self):
        files = [RawFile(name="frame_001.txt", content="3 0.5 0.5 0.2 0.2\n")]
        output = YoloDecoder().decode(files, self.context)
        self.assertEqual(output.records[0].label, "class_3")

    def test_malformed_and_out_of_range_lines_are_skipped(self):
        content = "\n".join(
            [
                "0 0.5 0.5 0.2",
                "x 0.5 0.5 0.2 0.2",
                "-1 0.5 0.5 0.2 0.2",
                "0 0.5 abc 0.2 0.2",
                "0 1.5 0.5 0.2 0.2",
                "",
                "0 0.5 0.5 0.2 0.2",
            ]
        )
        files = [RawFile(name="frame_002.txt", content=content)]
        output = YoloDecoder().decode(files, self.context)
        self.assertEqual(len(output.records), 1)
        self.assertEqual(output.records[0].record_index, 7)
        self.assertEqual(output.records[0].annotation_id, "frame_002_5")
        self.assertEqual(
            [d.code for d in output.diagnostics],
            ["malformed_line"] * 4 + ["out_of_range"],
        )
        self.assertEqual(output.diagnostics[0].context["line"], 1)
        self.assertEqual(output.diagnostics[4].context["line"], 5)

    def test_unmatched_file_warns_once(self):
        files = [
            RawFile(name="other.txt", content="0 0.5 0.5 0.2 0.2\n0 0.5 0.5 0.1 0.1\n")
        ]
        output = YoloDecoder().decode(files, self.context)
        self.assertEqual(output.records, [])
        self.assertEqual([d.code for d in output.diagnostics], ["unmatched_image"])
        self.assertEqual(output.diagnostics[0].context["file"], "other.txt")

    def test_non_txt_files_are_ignored_with_warning(self):
        files = [
            RawFile(name="frame_001.txt", content="0 0.5 0.5 0.2 0.2\n"),
            RawFile(name="notes.md", content="hello"),
        ]
        output = YoloDecoder().decode(files, self.context)
        self.assertEqual(len(output.records), 1)
        self.assertEqual([d.code for d in output.diagnostics], ["ignored_file"])

    def test_empty_file_produces_nothing(self):
        files = [RawFile(name="frame_001.txt", content="\n\n")]
        output = YoloDecoder().decode(files, self.context)
        self.assertEqual(output.records, [])
        self.assertEqual(output.diagnostics, [])
        self.assertEqual(output.annotation_files, 1)

    def test_undecodable_file_warns(self):
        files = [RawFile(name="frame_001.txt", content=b"\xff\xfe\x00bad")]
        output = YoloDecoder().decode(files, self.context)
        self.assertEqual([d.code for d in output.diagnostics], ["unreadable_file"])


class TestYoloIngest(unittest.TestCase):
    def _images(self):
        return [ImageRecord(filename="frame_001.jpg", width=640, height=480, id="f1")]

    def test_ingest_attaches_pixel_boxes(self):
        images = self._images()
        registry = ClassRegistry()
        files = [
            RawFile(name="classes.txt", content="cat\n"),
            RawFile(name="frame_001.txt", content="0 0.5 0.5 0.25 0.5\n"),
        ]
        result = ingest("yolo", files, images, registry)
        self.assertEqual(result.accepted_count, 1)
        annotation = images[0].annotations[0]
        self.assertEqual(annotation.label, "cat")
        self.assertEqual(annotation.id, "frame_001_0")
        np.testing.assert_allclose(annotation.bbox.as_tuple(), (240.0, 120.0, 160.0, 240.0))
        self.assertIn("cat", registry)

    def test_only_class_file_reports_no_annotation_files(self):
        files = [RawFile(name="classes.txt", content="cat\n")]
        result = ingest("yolo", files, self._images(), ClassRegistry())
        self.assertFalse(result.ok)
        error = result.errors[0]
        self.assertEqual(error.code, "empty_result")
        self.assertEqual(error.context["reason"], EmptyResultError.NO_ANNOTATION_FILES)

    def test_nothing_parsed_raises_in_strict_mode(self):
        files = [RawFile(name="unknown.txt", content="0 0.5 0.5 0.2 0.2\n")]
        with self.assertRaises(EmptyResultError) as ctx:
            ingest(
                "yolo",
                files,
                self._images(),
                ClassRegistry(),
                IngestionConfig(strict=True),
            )
        self.assertEqual(ctx.exception.reason, EmptyResultError.NOTHING_PARSED)

    def test_preflight_requires_txt(self):
        files = [RawFile(name="boxes.csv", content="a,b\n")]
        images = self._images()
        result = ingest("yolo", files, images, ClassRegistry())
        self.assertEqual(result.codes(), ["structural"])
        self.assertEqual(result.errors[0].severity, Severity.ERROR)
        self.assertEqual(images[0].annotations, [])


if __name__ == "__main__":
    unittest.main()
