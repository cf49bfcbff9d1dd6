#!/usr/bin/env python
#
# Annotation Ingest - YOLO Decoder
# © 2025 Shinichi Morita (shin3tky)
#

"""
Decoder for YOLO per-image text annotations.

Each ``<stem>.txt`` file holds one box per line::

    class_id center_x center_y width height [confidence]

with coordinates normalized to [0, 1]. An optional class-name file (one name
per line, line index = class id) supplies labels. Because coordinates are
relative, the decoder looks up the matching image to denormalize them, and
the whole file is skipped when no loaded image has the same stem.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import RecordSkipped
from ..i18n import get_message
from ..schema import (
    DEFAULT_CONFIDENCE,
    YOLO_CLASS_FILE_NAMES,
    AnnotationFormat,
    BBox,
    ImageRecord,
    RawAnnotation,
    RawFile,
    synthetic_label,
)
from ..validation import parse_number
from .base import BaseDecoder, DecodeContext, DecodeOutput

logger = logging.getLogger(__name__)

_MIN_FIELDS = 5


@dataclass
class YoloDecoderConfig:
    """Configuration for :class:`YoloDecoder`.

    Attributes:
        class_file_names: Reserved file names (case-insensitive) holding the
            class-name list instead of annotations.
    """

    class_file_names: List[str] = field(
        default_factory=lambda: list(YOLO_CLASS_FILE_NAMES)
    )

    def __post_init__(self) -> None:
        if isinstance(self.class_file_names, str):
            self.class_file_names = [self.class_file_names]
        self.class_file_names = [str(n).lower() for n in self.class_file_names]


@dataclass
class _ParsedLine:
    index: int
    line_number: int
    class_id: int
    normalized: Tuple[float, float, float, float]
    confidence: float


def read_class_names(raw: RawFile) -> List[str]:
    """Class names from a class file; blank lines are dropped."""
    return [line.strip() for line in raw.text().splitlines() if line.strip()]


def denormalize(normalized: np.ndarray, width: int, height: int) -> np.ndarray:
    """Convert ``(cx, cy, w, h)`` rows in [0, 1] to pixel ``(x, y, w, h)``.

    Negative x/y (boxes hanging off the top/left edge) are clamped to 0.
    """
    normalized = np.asarray(normalized, dtype=np.float64).reshape(-1, 4)
    scale = np.array([width, height, width, height], dtype=np.float64)
    half = normalized[:, 2:4] / 2.0
    corners = np.column_stack((normalized[:, 0:2] - half, normalized[:, 2:4]))
    pixels = corners * scale
    pixels[:, 0:2] = np.maximum(pixels[:, 0:2], 0.0)
    return pixels


class YoloDecoder(BaseDecoder[YoloDecoderConfig]):
    """Decode YOLO text files against the loaded images."""

    plugin_name = AnnotationFormat.YOLO.value
    name = "YOLO"
    version = "1.0.0"
    format = AnnotationFormat.YOLO
    requires_results = True
    ConfigType = YoloDecoderConfig

    def is_class_file(self, raw: RawFile) -> bool:
        return raw.basename.lower() in self.config.class_file_names

    def decode(self, files: Sequence[RawFile], context: DecodeContext) -> DecodeOutput:
        output = DecodeOutput()
        locale = context.locale
        class_names = self._load_class_names(files, output, locale)

        for raw in files:
            if self.is_class_file(raw):
                continue
            if raw.extension != AnnotationFormat.YOLO.extension:
                output.warn(
                    "ignored_file",
                    get_message("diagnostic.ignored_file", locale=locale, file=raw.name),
                    file=raw.name,
                )
                continue

            output.annotation_files += 1
            try:
                text = raw.text()
            except UnicodeDecodeError as exc:
                output.warn(
                    "unreadable_file",
                    get_message(
                        "diagnostic.unreadable_file", locale=locale, file=raw.name
                    ),
                    file=raw.name,
                    cause=str(exc),
                )
                continue
            if not text.strip():
                logger.info("Skipping empty YOLO file: %s", raw.name)
                continue

            image = self._find_image(raw, context)
            if image is None:
                output.warn(
                    "unmatched_image",
                    get_message(
                        "diagnostic.unmatched_image.file", locale=locale, file=raw.name
                    ),
                    file=raw.name,
                    source_filename=raw.stem,
                )
                continue

            logger.debug("Decoding %s against image %s", raw.name, image.filename)
            self._decode_file(raw, text, image, class_names, output, locale)

        return output

    def _load_class_names(
        self, files: Sequence[RawFile], output: DecodeOutput, locale: str
    ) -> Dict[int, str]:
        for raw in files:
            if not self.is_class_file(raw):
                continue
            try:
                names = read_class_names(raw)
            except UnicodeDecodeError as exc:
                output.warn(
                    "unreadable_file",
                    get_message(
                        "diagnostic.unreadable_file", locale=locale, file=raw.name
                    ),
                    file=raw.name,
                    cause=str(exc),
                )
                continue
            logger.info("Found class file %s with %d classes", raw.name, len(names))
            return dict(enumerate(names))
        return {}

    def _find_image(self, raw: RawFile, context: DecodeContext) -> Optional[ImageRecord]:
        if context.matcher is None:
            return None
        return context.matcher.match(raw.stem, compare_stems=True)

    def _parse_line(
        self, line: str, index: int, line_number: int, locale: str
    ) -> _ParsedLine:
        parts = line.split()
        if len(parts) < _MIN_FIELDS:
            raise RecordSkipped(
                get_message(
                    "diagnostic.malformed_line.fields",
                    locale=locale,
                    count=len(parts),
                    minimum=_MIN_FIELDS,
                ),
                code="malformed_line",
                raw_value=line,
            )

        class_value = parse_number(parts[0])
        if class_value is None or class_value < 0 or not class_value.is_integer():
            raise RecordSkipped(
                get_message("diagnostic.malformed_line.class_id", locale=locale),
                code="malformed_line",
                raw_value=line,
            )

        coords = [parse_number(p) for p in parts[1:5]]
        if any(v is None for v in coords):
            raise RecordSkipped(
                get_message("diagnostic.malformed_line.numbers", locale=locale),
                code="malformed_line",
                raw_value=line,
            )

        confidence = DEFAULT_CONFIDENCE
        if len(parts) > _MIN_FIELDS:
            parsed = parse_number(parts[5])
            if parsed is None:
                raise RecordSkipped(
                    get_message("diagnostic.malformed_line.numbers", locale=locale),
                    code="malformed_line",
                    raw_value=line,
                )
            confidence = parsed

        return _ParsedLine(
            index=index,
            line_number=line_number,
            class_id=int(class_value),
            normalized=tuple(coords),
            confidence=confidence,
        )

    def _decode_file(
        self,
        raw: RawFile,
        text: str,
        image: ImageRecord,
        class_names: Dict[int, str],
        output: DecodeOutput,
        locale: str,
    ) -> None:
        parsed: List[_ParsedLine] = []
        index = 0
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                parsed.append(self._parse_line(line, index, line_number, locale))
            except RecordSkipped as exc:
                output.skip(exc, file=raw.name, line=line_number)
            index += 1

        if not parsed:
            return

        normalized = np.array([p.normalized for p in parsed], dtype=np.float64)
        in_range = np.all((normalized >= 0.0) & (normalized <= 1.0), axis=1)
        pixels = denormalize(normalized, image.width, image.height)

        for entry, ok, box in zip(parsed, in_range, pixels):
            if not ok:
                output.skip(
                    RecordSkipped(
                        get_message("diagnostic.out_of_range.normalized", locale=locale),
                        code="out_of_range",
                        raw_value=list(entry.normalized),
                    ),
                    file=raw.name,
                    line=entry.line_number,
                )
                continue
            output.records.append(
                RawAnnotation(
                    source_filename=raw.stem,
                    label=class_names.get(entry.class_id, synthetic_label(entry.class_id)),
                    bbox=BBox(*(float(v) for v in box)),
                    confidence=entry.confidence,
                    annotation_id=f"{raw.stem}_{entry.index}",
                    source_file=raw.name,
                    record_index=entry.line_number,
                    match_on_stem=True,
                )
            )


__all__ = ["YoloDecoder", "YoloDecoderConfig", "denormalize", "read_class_names"]
