#!/usr/bin/env python
#
# Annotation Ingest - Decoder Base Class
# © 2025 Shinichi Morita (shin3tky)
#

"""
Abstract base class for annotation format decoders.

A decoder turns the raw files of one upload into format-independent
:class:`~annotation_core.schema.RawAnnotation` records. Decoding is a pure
transform: it never touches the image collection or the class registry.
Records a decoder cannot read are reported as warning diagnostics in the
returned :class:`DecodeOutput`; only batch-fatal problems raise.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, is_dataclass
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from ..exceptions import RecordSkipped
from ..i18n import get_message
from ..matcher import ImageMatcher
from ..schema import (
    DEFAULT_LOCALE,
    AnnotationFormat,
    Diagnostic,
    ImageRecord,
    RawAnnotation,
    RawFile,
    Severity,
)
from ..validation import PreflightResult, validate_files

ConfigType = TypeVar("ConfigType")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodeContext:
    """Read-only view of the session a decoder may consult.

    Attributes:
        images: Snapshot of the loaded images, in collection order.
        matcher: Matcher over ``images``; YOLO needs it to find the pixel
            dimensions used for denormalization.
        locale: Locale code for diagnostic messages.
    """

    images: Tuple[ImageRecord, ...] = ()
    matcher: Optional[ImageMatcher] = None
    locale: str = DEFAULT_LOCALE

    @classmethod
    def for_images(
        cls, images: Sequence[ImageRecord], *, locale: str = DEFAULT_LOCALE
    ) -> "DecodeContext":
        snapshot = tuple(images)
        return cls(images=snapshot, matcher=ImageMatcher(snapshot), locale=locale)


@dataclass
class DecodeOutput:
    """Records and diagnostics produced by one decode call.

    Attributes:
        records: Decoded records, in file and record order.
        diagnostics: Warnings for records or files the decoder skipped.
        annotation_files: Number of files that were expected to carry
            annotations (class-name files and ignored files excluded).
        declared_labels: Class names the payload declares up front, registered
            in this order before any record is attached.
    """

    records: List[RawAnnotation] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    annotation_files: int = 0
    declared_labels: List[str] = field(default_factory=list)

    def warn(self, code: str, message: str, **context: Any) -> Diagnostic:
        diagnostic = Diagnostic(
            severity=Severity.WARNING,
            code=code,
            message=message,
            context={k: v for k, v in context.items() if v is not None},
        )
        self.diagnostics.append(diagnostic)
        return diagnostic

    def skip(self, exc: RecordSkipped, **context: Any) -> Diagnostic:
        """Record a skipped record as a warning diagnostic."""
        merged = exc.diagnostic_context()
        merged.update(context)
        logger.warning("Skipped record (%s): %s %s", exc.code, exc.message, merged)
        return self.warn(exc.code, exc.message, **merged)


class BaseDecoder(ABC, Generic[ConfigType]):
    """
    Abstract base class for annotation decoders.

    Subclasses define ``plugin_name`` (the registry key, normally an
    :class:`AnnotationFormat` value), ``format`` and a dataclass
    ``ConfigType`` whose fields all have defaults, and implement
    :meth:`decode`.

    Attributes:
        plugin_name: Unique identifier for the decoder (used in registry)
        name: Human-readable name of the decoder
        version: Version string of the decoder
        format: Annotation format handled, used for pre-flight checks
        requires_results: Whether accepting zero annotations is a batch failure
    """

    plugin_name: str = ""  # Must be overridden by subclasses
    name: str = "BaseDecoder"
    version: str = "1.0.0"
    format: Optional[AnnotationFormat] = None
    requires_results: bool = True
    ConfigType: Type[Any]

    def __init__(self, config: Any = None) -> None:
        if not _is_valid_decoder(type(self)):
            raise ValueError("Subclasses must define a non-empty 'plugin_name' string.")

        config_type = getattr(type(self), "ConfigType", None)
        if config_type is not None:
            if not is_dataclass(config_type):
                raise TypeError("ConfigType must be a dataclass type for decoders.")
            if config is None:
                config = config_type()
            elif not isinstance(config, config_type):
                logger.error(
                    "Config instance %s does not match dataclass %s for decoder %s",
                    type(config).__name__,
                    config_type.__name__,
                    type(self).__name__,
                )
                raise TypeError(f"config must be an instance of {config_type.__name__}.")
        self.config = config

    def preflight(
        self, files: Sequence[RawFile], *, locale: str = DEFAULT_LOCALE
    ) -> PreflightResult:
        """Check file count and extensions before decoding."""
        if self.format is None:
            if files:
                return PreflightResult(True)
            return PreflightResult(False, get_message("preflight.no_files", locale=locale))
        return validate_files(self.format, files, locale=locale)

    @abstractmethod
    def decode(self, files: Sequence[RawFile], context: DecodeContext) -> DecodeOutput:
        """
        Decode raw files into format-independent records.

        Args:
            files: Uploaded files, in upload order.
            context: Read-only session snapshot.

        Returns:
            DecodeOutput with records and per-record diagnostics.

        Raises:
            StructuralError: If the payload cannot be decoded at all.
        """

    def empty_message(self, reason: str, *, locale: str = DEFAULT_LOCALE) -> str:
        """Message used when nothing was accepted from this decoder."""
        key = f"empty.{self.plugin_name}.{reason}"
        message = get_message(key, locale=locale, format=self.name)
        if message == key:
            message = get_message(f"empty.default.{reason}", locale=locale, format=self.name)
        return message

    def get_info(self) -> Dict[str, str]:
        """
        Get information about the decoder.

        Returns:
            Dictionary with decoder metadata
        """
        return {
            "plugin_name": self.plugin_name,
            "name": self.name,
            "version": self.version,
            "class": self.__class__.__name__,
        }


def _is_valid_decoder(decoder_cls: Any) -> bool:
    if not inspect.isclass(decoder_cls) or not issubclass(decoder_cls, BaseDecoder):
        return False
    plugin_name = getattr(decoder_cls, "plugin_name", "")
    return isinstance(plugin_name, str) and bool(plugin_name)


__all__ = ["BaseDecoder", "DecodeContext", "DecodeOutput"]
