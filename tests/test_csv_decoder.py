"""
Tests for the CSV decoder and header resolution.
"""

import os
import sys
import unittest

# Add project root directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from annotation_core.class_registry import ClassRegistry  # noqa: E402
from annotation_core.decoders import CsvDecoder, DecodeContext  # noqa: E402
from annotation_core.decoders.csv_table import (  # noqa: E402
    CsvDecoderConfig,
    resolve_columns,
)
from annotation_core.exceptions import StructuralError  # noqa: E402
from annotation_core.ingest import ingest  # noqa: E402
from annotation_core.schema import ImageRecord, IngestionConfig, RawFile  # noqa: E402


class TestResolveColumns(unittest.TestCase):
    def test_standard_header(self):
        columns = resolve_columns(["filename", "class", "x", "y", "width", "height"])
        self.assertEqual(
            columns,
            {"filename": 0, "class": 1, "x": 2, "y": 3, "width": 4, "height": 5},
        )

    def test_alternative_names_case_insensitive(self):
        columns = resolve_columns(["Label", "IMAGE_PATH", "Left", "Top", "W", "H"])
        self.assertEqual(columns["filename"], 1)
        self.assertEqual(columns["class"], 0)
        self.assertEqual(columns["x"], 2)
        self.assertEqual(columns["y"], 3)
        self.assertEqual(columns["width"], 4)
        self.assertEqual(columns["height"], 5)

    def test_first_matching_column_wins(self):
        columns = resolve_columns(["file", "image", "category", "x1", "y1", "w", "h"])
        self.assertEqual(columns["filename"], 0)
        self.assertEqual(columns["x"], 3)

    def test_x_requires_exact_name(self):
        columns = resolve_columns(["filename", "class", "xmin", "y", "width", "height"])
        self.assertIsNone(columns["x"])


class TestCsvDecode(unittest.TestCase):
    def setUp(self):
        self.context = DecodeContext.for_images(
            [ImageRecord(filename="img1.jpg", width=640, height=480, id="i1")]
        )

    def test_basic_row(self):
        raw = RawFile(
            name="boxes.csv",
            content="filename,class,x,y,width,height\nimg1.jpg,cat,10,20,30,40\n",
        )
        output = CsvDecoder().decode([raw], self.context)
        self.assertEqual(len(output.records), 1)
        record = output.records[0]
        self.assertEqual(record.source_filename, "img1.jpg")
        self.assertEqual(record.label, "cat")
        self.assertEqual(record.bbox.as_tuple(), (10.0, 20.0, 30.0, 40.0))
        self.assertEqual(record.confidence, 1.0)
        self.assertEqual(record.annotation_id, "csv_1")

    def test_cells_are_trimmed_and_blank_lines_ignored(self):
        raw = RawFile(
            name="boxes.csv",
            content="\n filename , class , x , y , width , height \n\n img1.jpg , dog , 1 , 2 , 3 , 4 \n",
        )
        output = CsvDecoder().decode([raw], self.context)
        self.assertEqual(output.records[0].label, "dog")
        self.assertEqual(output.records[0].bbox.as_tuple(), (1.0, 2.0, 3.0, 4.0))

    def test_bom_is_ignored(self):
        raw = RawFile(
            name="boxes.csv",
            content=b"\xef\xbb\xbffilename,class,x,y,width,height\nimg1.jpg,cat,1,2,3,4\n",
        )
        output = CsvDecoder().decode([raw], self.context)
        self.assertEqual(len(output.records), 1)

    def test_missing_column_is_structural(self):
        raw = RawFile(name="boxes.csv", content="filename,x,y,width,height\nimg1.jpg,1,2,3,4\n")
        with self.assertRaises(StructuralError) as ctx:
            CsvDecoder().decode([raw], self.context)
        self.assertIn("class", ctx.exception.message)
        self.assertEqual(ctx.exception.context["header"], "filename,x,y,width,height")

    def test_header_only_is_structural(self):
        raw = RawFile(name="boxes.csv", content="filename,class,x,y,width,height\n\n")
        with self.assertRaises(StructuralError):
            CsvDecoder().decode([raw], self.context)

    def test_bad_rows_are_skipped(self):
        content = "\n".join(
            [
                "filename,class,x,y,width,height",
                "img1.jpg,cat,1,2,3",
                ",cat,1,2,3,4",
                "img1.jpg,cat,a,2,3,4",
                "img1.jpg,cat,1,2,3,4",
            ]
        )
        output = CsvDecoder().decode([RawFile(name="b.csv", content=content)], self.context)
        self.assertEqual(len(output.records), 1)
        self.assertEqual(output.records[0].annotation_id, "csv_4")
        self.assertEqual(
            [d.code for d in output.diagnostics],
            ["malformed_line", "missing_field", "malformed_line"],
        )
        self.assertEqual(output.diagnostics[0].context["line"], 2)

    def test_skipped_rows_report_source_line_numbers(self):
        content = "\n".join(
            [
                "filename,class,x,y,width,height",
                "",
                "img1.jpg,cat,1,2,3,4",
                "",
                "",
                "img1.jpg,cat,a,2,3,4",
            ]
        )
        output = CsvDecoder().decode([RawFile(name="b.csv", content=content)], self.context)
        self.assertEqual(len(output.records), 1)
        self.assertEqual(output.records[0].annotation_id, "csv_1")
        self.assertEqual(output.diagnostics[0].code, "malformed_line")
        self.assertEqual(output.diagnostics[0].context["line"], 6)

    def test_semicolon_delimiter(self):
        decoder = CsvDecoder(CsvDecoderConfig(delimiter=";"))
        raw = RawFile(
            name="boxes.csv",
            content="filename;class;x;y;width;height\nimg1.jpg;cat;1;2;3;4\n",
        )
        output = decoder.decode([raw], self.context)
        self.assertEqual(output.records[0].bbox.as_tuple(), (1.0, 2.0, 3.0, 4.0))

    def test_delimiter_must_be_single_character(self):
        with self.assertRaises(ValueError):
            CsvDecoderConfig(delimiter=";;")


class TestCsvIngest(unittest.TestCase):
    def test_ingest_skips_degenerate_and_unmatched(self):
        images = [ImageRecord(filename="img1.jpg", width=640, height=480, id="i1")]
        content = "\n".join(
            [
                "image,label,x,y,w,h",
                "img1.jpg,cat,10,20,30,40",
                "img1.jpg,cat,10,20,0,40",
                "missing.jpg,dog,1,1,1,1",
                "data/img1.jpg,dog,-5,-5,10,10",
            ]
        )
        registry = ClassRegistry()
        result = ingest("csv", [RawFile(name="boxes.csv", content=content)], images, registry)
        self.assertEqual(result.accepted_count, 2)
        self.assertEqual(result.codes(), ["degenerate_box", "unmatched_image"])
        self.assertEqual(result.diagnostics[1].context["source_filename"], "missing.jpg")
        clamped = images[0].annotations[1].bbox
        self.assertEqual((clamped.x, clamped.y), (0.0, 0.0))
        self.assertEqual(registry.names(), ["cat", "dog"])

    def test_two_files_fail_preflight(self):
        images = [ImageRecord(filename="img1.jpg", width=640, height=480, id="i1")]
        files = [RawFile(name="a.csv", content=""), RawFile(name="b.csv", content="")]
        with self.assertRaises(StructuralError):
            ingest("csv", files, images, ClassRegistry(), IngestionConfig(strict=True))


if __name__ == "__main__":
    unittest.main()
