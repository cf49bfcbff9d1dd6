#!/usr/bin/env python
#
# Annotation Ingest - Pascal VOC Decoder
# © 2025 Shinichi Morita (shin3tky)
#

"""Decoder for Pascal VOC XML files (one image per document)."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..exceptions import RecordSkipped
from ..i18n import get_message
from ..schema import AnnotationFormat, BBox, RawAnnotation, RawFile
from ..validation import parse_number
from .base import BaseDecoder, DecodeContext, DecodeOutput

logger = logging.getLogger(__name__)

_CORNERS = ("xmin", "ymin", "xmax", "ymax")


def _text_of(element: ET.Element, tag: str) -> Optional[str]:
    """Text of the direct child ``tag``, falling back to any descendant."""
    node = element.find(tag)
    if node is None:
        node = element.find(f".//{tag}")
    if node is None or node.text is None:
        return None
    text = node.text.strip()
    return text or None


@dataclass
class PascalVocDecoderConfig:
    """Configuration for :class:`PascalVocDecoder`.

    Attributes:
        skip_difficult: Drop objects flagged ``<difficult>1</difficult>``.
    """

    skip_difficult: bool = False


class PascalVocDecoder(BaseDecoder[PascalVocDecoderConfig]):
    """Decode ``<annotation>`` documents with ``<object>/<bndbox>`` boxes.

    A document that does not parse, or names no ``filename``, is skipped with
    a warning; the rest of the batch continues.
    """

    plugin_name = AnnotationFormat.PASCAL.value
    name = "Pascal VOC"
    version = "1.0.0"
    format = AnnotationFormat.PASCAL
    requires_results = True
    ConfigType = PascalVocDecoderConfig

    def decode(self, files: Sequence[RawFile], context: DecodeContext) -> DecodeOutput:
        output = DecodeOutput()
        locale = context.locale
        for raw in files:
            if raw.extension != AnnotationFormat.PASCAL.extension:
                continue
            output.annotation_files += 1

            root = self._parse(raw, output, locale)
            if root is None:
                continue

            filename = _text_of(root, "filename")
            if filename is None:
                output.warn(
                    "missing_filename",
                    get_message("diagnostic.missing_filename", locale=locale, file=raw.name),
                    file=raw.name,
                )
                continue

            objects = list(root.iter("object"))
            logger.debug("Pascal VOC %s: %d object(s) for %s", raw.name, len(objects), filename)
            for index, obj in enumerate(objects):
                try:
                    record = self._decode_object(obj, index, filename, raw, locale)
                except RecordSkipped as exc:
                    output.skip(exc, file=raw.name, record=index)
                    continue
                if record is not None:
                    output.records.append(record)
        return output

    def _parse(
        self, raw: RawFile, output: DecodeOutput, locale: str
    ) -> Optional[ET.Element]:
        try:
            payload = raw.content if isinstance(raw.content, bytes) else raw.text()
            return ET.fromstring(payload)
        except ET.ParseError as exc:
            output.warn(
                "parse_error",
                get_message("diagnostic.parse_error.xml", locale=locale, file=raw.name),
                file=raw.name,
                cause=str(exc),
            )
            logger.warning("XML parsing error in %s: %s", raw.name, exc)
            return None

    def _decode_object(
        self,
        obj: ET.Element,
        index: int,
        filename: str,
        raw: RawFile,
        locale: str,
    ) -> Optional[RawAnnotation]:
        label = _text_of(obj, "name")
        bndbox = obj.find("bndbox")
        if bndbox is None:
            bndbox = obj.find(".//bndbox")
        if label is None or bndbox is None:
            raise RecordSkipped(
                get_message("diagnostic.missing_field.name_or_bndbox", locale=locale),
                code="missing_field",
            )

        if self.config.skip_difficult and _text_of(obj, "difficult") == "1":
            logger.debug("Skipping difficult object %d in %s", index, raw.name)
            return None

        raw_corners = [_text_of(bndbox, tag) for tag in _CORNERS]
        corners: List[Optional[float]] = [parse_number(v) for v in raw_corners]
        if any(v is None for v in corners):
            raise RecordSkipped(
                get_message("diagnostic.malformed_bbox", locale=locale),
                code="malformed_bbox",
                raw_value=dict(zip(_CORNERS, raw_corners)),
            )

        xmin, ymin, xmax, ymax = corners
        if xmin >= xmax or ymin >= ymax:
            raise RecordSkipped(
                get_message(
                    "diagnostic.degenerate_box.corners",
                    locale=locale,
                    xmin=xmin,
                    ymin=ymin,
                    xmax=xmax,
                    ymax=ymax,
                ),
                code="degenerate_box",
                raw_value=[xmin, ymin, xmax, ymax],
            )

        return RawAnnotation(
            source_filename=filename,
            label=label,
            bbox=BBox.from_corners(xmin, ymin, xmax, ymax),
            annotation_id=f"pascal_{raw.basename}_{index}",
            source_file=raw.name,
            record_index=index,
        )


__all__ = ["PascalVocDecoder", "PascalVocDecoderConfig"]
