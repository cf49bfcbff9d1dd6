#!/usr/bin/env python
#
# Annotation Ingest - Validation
# © 2025 Shinichi Morita (shin3tky)
#

"""
Pre-flight file checks and per-record validation.

Pre-flight runs before any decoding and rejects uploads whose file count or
extensions cannot possibly satisfy the declared format. Per-record checks run
after matching and raise :class:`RecordSkipped`, which the orchestrator turns
into a warning diagnostic.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from .exceptions import RecordSkipped
from .i18n import get_message
from .schema import DEFAULT_LOCALE, AnnotationFormat, BBox, RawFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreflightResult:
    valid: bool
    message: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


_EXACTLY_ONE = {AnnotationFormat.COCO, AnnotationFormat.CSV}


def validate_files(
    fmt: Union[str, AnnotationFormat],
    files: Sequence[RawFile],
    *,
    locale: str = DEFAULT_LOCALE,
) -> PreflightResult:
    """Check that ``files`` can carry annotations in ``fmt``.

    COCO and CSV take exactly one file with the format's extension; YOLO and
    Pascal VOC need at least one. Extensions are compared case-insensitively.
    """
    fmt = AnnotationFormat.parse(fmt)
    if not files:
        return PreflightResult(False, get_message("preflight.no_files", locale=locale))

    matching = [f for f in files if f.extension == fmt.extension]
    if fmt in _EXACTLY_ONE:
        valid = len(files) == 1 and len(matching) == 1
    else:
        valid = len(matching) > 0

    if valid:
        return PreflightResult(True)

    message = get_message(f"preflight.{fmt.value}", locale=locale)
    logger.debug(
        "Pre-flight rejected %d file(s) for %s: %s", len(files), fmt.value, message
    )
    return PreflightResult(False, message)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_bbox(bbox: BBox, *, locale: str = DEFAULT_LOCALE) -> BBox:
    """Return ``bbox`` with negative x/y clamped to zero.

    Raises:
        RecordSkipped: ``degenerate_box`` when any value is non-numeric or
            non-finite, or when width/height is not positive.
    """
    values = bbox.as_tuple()
    if not all(_is_number(v) for v in values) or not bbox.is_finite():
        raise RecordSkipped(
            get_message("diagnostic.degenerate_box.non_finite", locale=locale),
            code="degenerate_box",
            raw_value=list(values),
        )
    if bbox.width <= 0 or bbox.height <= 0:
        raise RecordSkipped(
            get_message(
                "diagnostic.degenerate_box.size",
                locale=locale,
                width=bbox.width,
                height=bbox.height,
            ),
            code="degenerate_box",
            raw_value=list(values),
        )
    if bbox.x < 0 or bbox.y < 0:
        return BBox(max(0.0, bbox.x), max(0.0, bbox.y), bbox.width, bbox.height)
    return bbox


def validate_confidence(value: Any, *, locale: str = DEFAULT_LOCALE) -> float:
    """Return ``value`` as a float in [0, 1].

    Raises:
        RecordSkipped: ``out_of_range`` for non-numeric, non-finite or
            out-of-range values.
    """
    if not _is_number(value) or not math.isfinite(value) or not 0.0 <= value <= 1.0:
        raise RecordSkipped(
            get_message("diagnostic.out_of_range.confidence", locale=locale, value=value),
            code="out_of_range",
            raw_value=value,
        )
    return float(value)


def parse_number(text: Any) -> Optional[float]:
    """Parse a finite float from text or a JSON number; None if impossible."""
    if isinstance(text, bool):
        return None
    if _is_number(text):
        value = float(text)
    else:
        try:
            value = float(str(text).strip())
        except (TypeError, ValueError):
            return None
    if not math.isfinite(value):
        return None
    return value


__all__ = [
    "PreflightResult",
    "parse_number",
    "validate_bbox",
    "validate_confidence",
    "validate_files",
]
