#!/usr/bin/env python
#
# Annotation Ingest - Schema definitions
# © 2025 Shinichi Morita (shin3tky)
#

"""
Data structures, constants, and type definitions for annotation ingestion.
"""

import codecs
import colorsys
import math
import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

# ==========================================
# Version
# ==========================================
VERSION = "1.0.0"
INGESTION_RESULT_SCHEMA_VERSION = 1

# ==========================================
# Default Settings
# ==========================================
DEFAULT_CONFIDENCE = 1.0
DEFAULT_LOCALE = "en"
DEFAULT_NUM_WORKERS = max(1, min(8, (os.cpu_count() or 1)))

# Golden angle in degrees; consecutive classes are spaced by this hue step
GOLDEN_ANGLE_DEG = 137.50776
DEFAULT_COLOR_SATURATION = 70.0
DEFAULT_COLOR_LIGHTNESS = 50.0
FALLBACK_COLOR_HEX = "#4285f4"

SYNTHETIC_LABEL_PREFIX = "class_"

# Reserved YOLO class-name files (compared case-insensitively)
YOLO_CLASS_FILE_NAMES = ("classes.txt", "class_names.txt", "names.txt")

# Expected file extension per format
FORMAT_EXTENSIONS = {
    "coco": ".json",
    "yolo": ".txt",
    "csv": ".csv",
    "pascal": ".xml",
}


def synthetic_label(class_id: Any) -> str:
    """Label used when a class id has no known name."""
    return f"{SYNTHETIC_LABEL_PREFIX}{class_id}"


# ==========================================
# Enumerations
# ==========================================
class AnnotationFormat(str, Enum):
    """Supported annotation export formats."""

    COCO = "coco"
    YOLO = "yolo"
    CSV = "csv"
    PASCAL = "pascal"

    @classmethod
    def parse(cls, value: Union[str, "AnnotationFormat"]) -> "AnnotationFormat":
        """Resolve a format from a case-insensitive name or alias."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        normalized = _FORMAT_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise ValueError(
                f"Unknown annotation format '{value}'. Valid formats: {valid}"
            ) from None

    @property
    def extension(self) -> str:
        return FORMAT_EXTENSIONS[self.value]


_FORMAT_ALIASES = {
    "voc": "pascal",
    "pascal_voc": "pascal",
    "pascalvoc": "pascal",
    "json": "coco",
    "txt": "yolo",
}


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


# ==========================================
# Data Classes
# ==========================================
@dataclass(frozen=True)
class ClassColor:
    """Display color for a class, expressed in HSL."""

    hue: float
    saturation: float = DEFAULT_COLOR_SATURATION
    lightness: float = DEFAULT_COLOR_LIGHTNESS

    @property
    def css(self) -> str:
        return f"hsl({self.hue:g}, {self.saturation:g}%, {self.lightness:g}%)"

    @property
    def hex(self) -> str:
        r, g, b = colorsys.hls_to_rgb(
            self.hue / 360.0, self.lightness / 100.0, self.saturation / 100.0
        )
        return "#{:02x}{:02x}{:02x}".format(
            int(round(r * 255)), int(round(g * 255)), int(round(b * 255))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hue": self.hue,
            "saturation": self.saturation,
            "lightness": self.lightness,
            "css": self.css,
            "hex": self.hex,
        }


@dataclass(frozen=True)
class FallbackColor:
    """Color returned for class names that were never registered."""

    hex: str = FALLBACK_COLOR_HEX

    @property
    def css(self) -> str:
        return self.hex

    def to_dict(self) -> Dict[str, Any]:
        return {"css": self.css, "hex": self.hex}


DisplayColor = Union[ClassColor, FallbackColor]


@dataclass(frozen=True)
class BBox:
    """Axis-aligned box in absolute pixels with a top-left origin."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_corners(
        cls, xmin: float, ymin: float, xmax: float, ymax: float
    ) -> "BBox":
        return cls(xmin, ymin, xmax - xmin, ymax - ymin)

    @property
    def area(self) -> float:
        return self.width * self.height

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self.as_tuple())

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    def to_list(self) -> List[float]:
        return list(self.as_tuple())


@dataclass(frozen=True)
class Annotation:
    """Normalized annotation attached to an image."""

    id: str
    label: str
    bbox: BBox
    confidence: float
    color: DisplayColor

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "bbox": self.bbox.to_list(),
            "confidence": self.confidence,
            "color": self.color.css,
        }


@dataclass
class ImageRecord:
    """An image loaded by the surrounding application.

    The ingestion core only reads ``id``, ``filename``, ``width`` and
    ``height`` and appends to ``annotations``.
    """

    filename: str
    width: int
    height: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    annotations: List[Annotation] = field(default_factory=list)

    def __post_init__(self) -> None:
        from .exceptions import AnnotationValidationError

        for attr in ("width", "height"):
            value = getattr(self, attr)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise AnnotationValidationError(
                    f"Image {attr} must be a positive integer",
                    parameter_name=attr,
                    provided_value=value,
                    expected="positive integer (pixels)",
                    context={"filename": self.filename},
                )

    @property
    def stem(self) -> str:
        return os.path.splitext(self.filename)[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "width": self.width,
            "height": self.height,
            "annotations": [a.to_dict() for a in self.annotations],
        }


@dataclass
class RawFile:
    """Uploaded file payload with its declared original name."""

    name: str
    content: Union[bytes, str]

    @property
    def basename(self) -> str:
        return os.path.basename(self.name.replace("\\", "/"))

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lower()

    @property
    def stem(self) -> str:
        return os.path.splitext(self.basename)[0]

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content.lstrip("\ufeff")
        data = self.content
        if data.startswith(codecs.BOM_UTF8):
            data = data[len(codecs.BOM_UTF8):]
        return data.decode("utf-8")


@dataclass
class RawAnnotation:
    """Format-independent record produced by every decoder."""

    source_filename: str
    label: str
    bbox: BBox
    confidence: float = DEFAULT_CONFIDENCE
    annotation_id: Optional[str] = None
    source_file: Optional[str] = None
    record_index: Optional[int] = None
    match_on_stem: bool = False

    def describe(self) -> Dict[str, Any]:
        """Context used when this record is reported in a diagnostic."""
        context: Dict[str, Any] = {"source_filename": self.source_filename}
        if self.source_file is not None:
            context["file"] = self.source_file
        if self.record_index is not None:
            context["record"] = self.record_index
        return context


@dataclass
class Diagnostic:
    """Why a record was skipped or a batch failed."""

    severity: Severity
    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


@dataclass
class IngestionResult:
    """Aggregate outcome of one ingestion call."""

    format: AnnotationFormat
    accepted_count: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)
    accepted_by_label: Dict[str, int] = field(default_factory=dict)
    schema_version: int = INGESTION_RESULT_SCHEMA_VERSION

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def ok(self) -> bool:
        return not self.errors

    def codes(self) -> List[str]:
        return [d.code for d in self.diagnostics]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format.value,
            "accepted_count": self.accepted_count,
            "accepted_by_label": dict(self.accepted_by_label),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "schema_version": self.schema_version,
        }


@dataclass
class IngestionConfig:
    """Configuration for :class:`IngestionPipeline`.

    Attributes:
        strict: Re-raise batch-fatal errors instead of reporting them as a
            diagnostic.
        max_workers: Threads used when reading files from disk.
        locale: Locale code for diagnostic messages. ``None`` falls back to
            ``ANNOTATION_INGEST_LOCALE``, then ``"en"``.
        color_saturation: HSL saturation (percent) for class colors.
        color_lightness: HSL lightness (percent) for class colors.
        decoders: Per-format decoder configuration mappings, keyed by format
            name (e.g. ``{"yolo": {"class_file_names": ["labels.txt"]}}``).
    """

    strict: bool = False
    max_workers: int = DEFAULT_NUM_WORKERS
    locale: Optional[str] = None
    color_saturation: float = DEFAULT_COLOR_SATURATION
    color_lightness: float = DEFAULT_COLOR_LIGHTNESS
    decoders: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        for attr in ("color_saturation", "color_lightness"):
            value = getattr(self, attr)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{attr} must be within [0, 100], got {value}")
        if not isinstance(self.decoders, dict):
            raise ValueError("decoders must be a mapping of format name to config")
        normalized: Dict[str, Dict[str, Any]] = {}
        for name, options in self.decoders.items():
            fmt = AnnotationFormat.parse(name)
            if options is not None and not isinstance(options, dict):
                raise ValueError(f"decoder config for '{name}' must be a mapping")
            normalized[fmt.value] = dict(options or {})
        self.decoders = normalized

    def decoder_config(self, fmt: AnnotationFormat) -> Optional[Dict[str, Any]]:
        return self.decoders.get(fmt.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strict": self.strict,
            "max_workers": self.max_workers,
            "locale": self.locale,
            "color_saturation": self.color_saturation,
            "color_lightness": self.color_lightness,
            "decoders": {k: dict(v) for k, v in self.decoders.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IngestionConfig":
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise KeyError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(
            strict=bool(data.get("strict", False)),
            max_workers=int(data.get("max_workers", DEFAULT_NUM_WORKERS)),
            locale=data.get("locale"),
            color_saturation=float(
                data.get("color_saturation", DEFAULT_COLOR_SATURATION)
            ),
            color_lightness=float(data.get("color_lightness", DEFAULT_COLOR_LIGHTNESS)),
            decoders=data.get("decoders") or {},
        )
