#!/usr/bin/env python
#
# Annotation Ingest - COCO Decoder
# © 2025 Shinichi Morita (shin3tky)
#

"""Decoder for COCO detection JSON (one document per upload)."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import RecordSkipped, StructuralError
from ..i18n import get_message
from ..schema import (
    DEFAULT_CONFIDENCE,
    AnnotationFormat,
    BBox,
    RawAnnotation,
    RawFile,
    synthetic_label,
)
from ..validation import parse_number
from .base import BaseDecoder, DecodeContext, DecodeOutput

logger = logging.getLogger(__name__)


@dataclass
class CocoDecoderConfig:
    """Configuration for :class:`CocoDecoder`.

    Attributes:
        register_categories: Report every declared category name, in
            declaration order, so class colors follow the category list even
            for categories without annotations.
    """

    register_categories: bool = True


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


class CocoDecoder(BaseDecoder[CocoDecoderConfig]):
    """Decode ``categories``/``images``/``annotations`` from a COCO document.

    Missing top-level arrays are treated as empty, so a document without
    ``categories`` still decodes with ``class_<id>`` labels. Zero decoded
    annotations is reported as a warning rather than a batch failure.
    """

    plugin_name = AnnotationFormat.COCO.value
    name = "COCO"
    version = "1.0.0"
    format = AnnotationFormat.COCO
    requires_results = False
    ConfigType = CocoDecoderConfig

    def decode(self, files: Sequence[RawFile], context: DecodeContext) -> DecodeOutput:
        output = DecodeOutput()
        locale = context.locale
        for raw in files:
            if raw.extension != AnnotationFormat.COCO.extension:
                continue
            output.annotation_files += 1
            self._decode_document(raw, output, locale)
        return output

    def _load(self, raw: RawFile, locale: str) -> Dict[str, Any]:
        try:
            document = json.loads(raw.text())
        except (UnicodeDecodeError, ValueError) as exc:
            raise StructuralError(
                get_message("structural.coco.invalid_json", locale=locale),
                filepath=raw.name,
                original_error=exc,
            ) from exc
        if not isinstance(document, dict):
            raise StructuralError(
                get_message("structural.coco.root", locale=locale),
                filepath=raw.name,
                context={"root_type": type(document).__name__},
            )
        return document

    def _decode_document(self, raw: RawFile, output: DecodeOutput, locale: str) -> None:
        document = self._load(raw, locale)

        categories: Dict[Any, str] = {}
        for index, category in enumerate(_as_list(document.get("categories"))):
            if isinstance(category, dict) and "id" in category and category.get("name"):
                if self._check_id(
                    category["id"], "categories", index, raw, output, locale
                ):
                    categories[category["id"]] = str(category["name"])
        if self.config.register_categories:
            for label in categories.values():
                if label not in output.declared_labels:
                    output.declared_labels.append(label)

        image_names: Dict[Any, str] = {}
        for index, image in enumerate(_as_list(document.get("images"))):
            if isinstance(image, dict) and "id" in image and image.get("file_name"):
                if self._check_id(image["id"], "images", index, raw, output, locale):
                    image_names[image["id"]] = str(image["file_name"])

        annotations = _as_list(document.get("annotations"))
        logger.debug(
            "COCO %s: %d categories, %d images, %d annotations",
            raw.name,
            len(categories),
            len(image_names),
            len(annotations),
        )

        for index, ann in enumerate(annotations):
            try:
                output.records.append(
                    self._decode_annotation(ann, index, categories, image_names, raw, locale)
                )
            except RecordSkipped as exc:
                output.skip(exc, file=raw.name, record=index)

    @staticmethod
    def _check_id(
        value: Any,
        section: str,
        index: int,
        raw: RawFile,
        output: DecodeOutput,
        locale: str,
    ) -> bool:
        if _hashable(value):
            return True
        exc = RecordSkipped(
            get_message("diagnostic.invalid_record.id", locale=locale, section=section),
            code="invalid_record",
            raw_value=repr(value),
        )
        output.skip(exc, file=raw.name, section=section, record=index)
        return False

    def _decode_annotation(
        self,
        ann: Any,
        index: int,
        categories: Dict[Any, str],
        image_names: Dict[Any, str],
        raw: RawFile,
        locale: str,
    ) -> RawAnnotation:
        if not isinstance(ann, dict):
            raise RecordSkipped(
                get_message("diagnostic.invalid_record.not_object", locale=locale),
                code="invalid_record",
                raw_value=repr(ann),
            )

        image_id = ann.get("image_id")
        image_name = image_names.get(image_id) if _hashable(image_id) else None
        if image_name is None:
            raise RecordSkipped(
                get_message(
                    "diagnostic.unknown_image_id", locale=locale, image_id=image_id
                ),
                code="unknown_image_id",
                raw_value=image_id,
            )

        bbox = ann.get("bbox")
        values = _bbox_values(bbox)
        if values is None:
            raise RecordSkipped(
                get_message("diagnostic.malformed_bbox", locale=locale),
                code="malformed_bbox",
                raw_value=bbox,
            )

        category_id = ann.get("category_id")
        label = categories.get(category_id) if _hashable(category_id) else None
        if label is None:
            label = synthetic_label(category_id)

        confidence = ann.get("score")
        if confidence is None:
            confidence = DEFAULT_CONFIDENCE

        annotation_id = ann.get("id")
        return RawAnnotation(
            source_filename=image_name,
            label=label,
            bbox=BBox(*values),
            confidence=confidence,
            annotation_id=(
                str(annotation_id) if annotation_id is not None else f"coco_{index}"
            ),
            source_file=raw.name,
            record_index=index,
        )


def _bbox_values(bbox: Any) -> Optional[List[float]]:
    """Four finite JSON numbers, or None."""
    if not isinstance(bbox, list) or len(bbox) != 4:
        return None
    if any(isinstance(v, (bool, str)) for v in bbox):
        return None
    values = [parse_number(v) for v in bbox]
    if any(v is None for v in values):
        return None
    return values


def _hashable(value: Any) -> bool:
    try:
        hash(value)
    except TypeError:
        return False
    return True


__all__ = ["CocoDecoder", "CocoDecoderConfig"]
