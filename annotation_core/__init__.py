#!/usr/bin/env python
#
# Annotation Ingest - Core Package
# © 2025 Shinichi Morita (shin3tky)
#

"""
Annotation ingestion core library.

This package normalizes object-detection annotation exports into one
annotation model attached to a loaded image collection:
- schema: Data structures and constants
- class_registry: Class names and display colors
- matcher: Annotation-to-image filename matching
- decoders: COCO, YOLO, CSV and Pascal VOC decoders
- validation: Pre-flight and per-record checks
- ingest: Ingestion orchestration
- summary: Dataset statistics and filtering
- file_io / config_io: Disk access for the CLI

Logging:
    This library uses Python's standard logging module. By default, a NullHandler
    is attached to prevent "No handler found" warnings. To see log output, configure
    logging in your application:

    Example:
        >>> import logging
        >>> logging.basicConfig(level=logging.DEBUG)

    Or attach a handler to the 'annotation_core' logger:

        >>> import logging
        >>> logger = logging.getLogger('annotation_core')
        >>> logger.addHandler(logging.StreamHandler())
        >>> logger.setLevel(logging.DEBUG)
"""

import logging

# Library-level logger with NullHandler so the library is silent unless the
# application configures logging.
_logger = logging.getLogger(__name__)
_logger.addHandler(logging.NullHandler())

from .schema import (  # noqa: E402
    VERSION,
    DEFAULT_CONFIDENCE,
    DEFAULT_LOCALE,
    FALLBACK_COLOR_HEX,
    GOLDEN_ANGLE_DEG,
    YOLO_CLASS_FILE_NAMES,
    Annotation,
    AnnotationFormat,
    BBox,
    ClassColor,
    Diagnostic,
    FallbackColor,
    ImageRecord,
    IngestionConfig,
    IngestionResult,
    RawAnnotation,
    RawFile,
    Severity,
)
from .exceptions import (  # noqa: E402
    AnnotationConfigError,
    AnnotationError,
    AnnotationValidationError,
    DiagnosticInfo,
    EmptyResultError,
    RecordSkipped,
    StructuralError,
    create_diagnostic_from_exception,
    format_error_for_user,
    save_diagnostic_report,
)
from .class_registry import ClassRegistry  # noqa: E402
from .matcher import MATCH_RULES, ImageMatcher, match  # noqa: E402
from .validation import (  # noqa: E402
    PreflightResult,
    validate_bbox,
    validate_confidence,
    validate_files,
)
from .decoders import BaseDecoder, DecodeContext, DecodeOutput, DecoderRegistry  # noqa: E402
from .ingest import IngestionPipeline, create_registry, ingest  # noqa: E402
from .summary import DatasetSummary, filter_images, summarize  # noqa: E402
from .config_io import load_ingestion_config  # noqa: E402
from .file_io import load_image_manifest, read_raw_files  # noqa: E402

__version__ = VERSION

__all__ = [
    # Version
    "VERSION",
    "__version__",
    # Constants
    "DEFAULT_CONFIDENCE",
    "DEFAULT_LOCALE",
    "FALLBACK_COLOR_HEX",
    "GOLDEN_ANGLE_DEG",
    "YOLO_CLASS_FILE_NAMES",
    # Data model
    "Annotation",
    "AnnotationFormat",
    "BBox",
    "ClassColor",
    "Diagnostic",
    "FallbackColor",
    "ImageRecord",
    "IngestionConfig",
    "IngestionResult",
    "RawAnnotation",
    "RawFile",
    "Severity",
    # Exceptions
    "AnnotationConfigError",
    "AnnotationError",
    "AnnotationValidationError",
    "DiagnosticInfo",
    "EmptyResultError",
    "RecordSkipped",
    "StructuralError",
    "create_diagnostic_from_exception",
    "format_error_for_user",
    "save_diagnostic_report",
    # Components
    "ClassRegistry",
    "MATCH_RULES",
    "ImageMatcher",
    "match",
    "PreflightResult",
    "validate_bbox",
    "validate_confidence",
    "validate_files",
    "BaseDecoder",
    "DecodeContext",
    "DecodeOutput",
    "DecoderRegistry",
    # Orchestration
    "IngestionPipeline",
    "create_registry",
    "ingest",
    "DatasetSummary",
    "filter_images",
    "summarize",
    # I/O
    "load_ingestion_config",
    "load_image_manifest",
    "read_raw_files",
]
