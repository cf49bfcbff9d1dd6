#!/usr/bin/env python
#
# Annotation Ingest - CSV Decoder
# © 2025 Shinichi Morita (shin3tky)
#

"""
Decoder for flat CSV annotation tables.

The first non-blank line is the header. Columns are located by name,
case-insensitively, and the first column satisfying a rule wins:

==========  ==================================================
filename    name contains ``filename``, ``file`` or ``image``
class       name contains ``class``, ``label`` or ``category``
x           name is ``x``, ``x1`` or ``left``
y           name is ``y``, ``y1`` or ``top``
width       name contains ``width`` or is ``w``
height      name contains ``height`` or is ``h``
==========  ==================================================

Coordinates are absolute pixels with a top-left origin.
"""

import csv
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..exceptions import RecordSkipped, StructuralError
from ..i18n import get_message
from ..schema import AnnotationFormat, BBox, RawAnnotation, RawFile
from ..validation import parse_number
from .base import BaseDecoder, DecodeContext, DecodeOutput

logger = logging.getLogger(__name__)

HeaderRule = Callable[[str], bool]


def _contains(*needles: str) -> HeaderRule:
    return lambda header: any(needle in header for needle in needles)


def _equals(*names: str) -> HeaderRule:
    return lambda header: header in names


def _contains_or_equals(needle: str, name: str) -> HeaderRule:
    return lambda header: needle in header or header == name


COLUMN_RULES: Tuple[Tuple[str, HeaderRule], ...] = (
    ("filename", _contains("filename", "file", "image")),
    ("class", _contains("class", "label", "category")),
    ("x", _equals("x", "x1", "left")),
    ("y", _equals("y", "y1", "top")),
    ("width", _contains_or_equals("width", "w")),
    ("height", _contains_or_equals("height", "h")),
)


def resolve_columns(headers: Sequence[str]) -> Dict[str, Optional[int]]:
    """Map each logical column to the index of the first matching header."""
    normalized = [h.strip().lower() for h in headers]
    columns: Dict[str, Optional[int]] = {}
    for column, rule in COLUMN_RULES:
        columns[column] = next(
            (idx for idx, header in enumerate(normalized) if rule(header)), None
        )
    return columns


@dataclass
class CsvDecoderConfig:
    """Configuration for :class:`CsvDecoder`."""

    delimiter: str = ","

    def __post_init__(self) -> None:
        if not isinstance(self.delimiter, str) or len(self.delimiter) != 1:
            raise ValueError("delimiter must be a single character")


class CsvDecoder(BaseDecoder[CsvDecoderConfig]):
    """Decode one CSV table with a header row."""

    plugin_name = AnnotationFormat.CSV.value
    name = "CSV"
    version = "1.0.0"
    format = AnnotationFormat.CSV
    requires_results = True
    ConfigType = CsvDecoderConfig

    def decode(self, files: Sequence[RawFile], context: DecodeContext) -> DecodeOutput:
        output = DecodeOutput()
        for raw in files:
            if raw.extension != AnnotationFormat.CSV.extension:
                continue
            output.annotation_files += 1
            self._decode_table(raw, output, context.locale)
        return output

    def _read_rows(self, raw: RawFile, locale: str) -> List[Tuple[int, List[str]]]:
        """Return ``(source line number, cells)`` for every non-blank line."""
        try:
            text = raw.text()
        except UnicodeDecodeError as exc:
            raise StructuralError(
                get_message("structural.csv.encoding", locale=locale),
                filepath=raw.name,
                original_error=exc,
            ) from exc
        lines = [
            (number, line)
            for number, line in enumerate(text.splitlines(), start=1)
            if line.strip()
        ]
        if len(lines) < 2:
            raise StructuralError(
                get_message("structural.csv.too_short", locale=locale),
                filepath=raw.name,
                context={"non_blank_lines": len(lines)},
            )
        rows = []
        for number, line in lines:
            cells = next(csv.reader([line], delimiter=self.config.delimiter))
            rows.append((number, [cell.strip() for cell in cells]))
        return rows

    def _decode_table(self, raw: RawFile, output: DecodeOutput, locale: str) -> None:
        rows = self._read_rows(raw, locale)
        header = rows[0][1]
        columns = resolve_columns(header)
        for column, index in columns.items():
            if index is None:
                raise StructuralError(
                    get_message(f"structural.csv.missing_{column}", locale=locale),
                    filepath=raw.name,
                    context={"header": ",".join(header)},
                )
        logger.debug(
            "CSV column mapping for %s: %s",
            raw.name,
            {column: header[index] for column, index in columns.items()},
        )

        needed = max(columns.values()) + 1
        for line_index, (line_number, row) in enumerate(rows[1:], start=1):
            try:
                output.records.append(
                    self._decode_row(row, line_index, needed, columns, raw, locale)
                )
            except RecordSkipped as exc:
                output.skip(exc, file=raw.name, line=line_number)

    def _decode_row(
        self,
        row: List[str],
        line_index: int,
        needed: int,
        columns: Dict[str, int],
        raw: RawFile,
        locale: str,
    ) -> RawAnnotation:
        if len(row) < needed:
            raise RecordSkipped(
                get_message(
                    "diagnostic.malformed_line.columns",
                    locale=locale,
                    count=len(row),
                    minimum=needed,
                ),
                code="malformed_line",
                raw_value=",".join(row),
            )

        filename = row[columns["filename"]]
        label = row[columns["class"]]
        if not filename or not label:
            raise RecordSkipped(
                get_message("diagnostic.missing_field.filename_or_class", locale=locale),
                code="missing_field",
                raw_value=",".join(row),
            )

        values = [
            parse_number(row[columns[name]]) for name in ("x", "y", "width", "height")
        ]
        if any(v is None for v in values):
            raise RecordSkipped(
                get_message("diagnostic.malformed_line.numbers", locale=locale),
                code="malformed_line",
                raw_value=",".join(row),
            )

        return RawAnnotation(
            source_filename=filename,
            label=label,
            bbox=BBox(*values),
            annotation_id=f"csv_{line_index}",
            source_file=raw.name,
            record_index=line_index,
        )


__all__ = ["COLUMN_RULES", "CsvDecoder", "CsvDecoderConfig", "resolve_columns"]
