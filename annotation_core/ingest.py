#!/usr/bin/env python
#
# Annotation Ingest - Ingestion Pipeline
# © 2025 Shinichi Morita (shin3tky)
#

"""
Ingestion orchestration.

One ingestion call runs, in order:

1. pre-flight file checks for the declared format
2. decoding into format-independent records
3. per record: image matching, bbox/confidence validation, class color
   registration, and appending the annotation to the matched image

Records that fail any step are skipped with a warning diagnostic. Batch-fatal
conditions (pre-flight failure, structurally invalid payloads, nothing
accepted for formats that require results) become a single error diagnostic,
or are raised when ``IngestionConfig.strict`` is set. Annotations attached
before a failure stay attached; there is no rollback.
"""

import logging
import os
from collections import Counter
from typing import Dict, Optional, Sequence, Set, Union

from .class_registry import ClassRegistry
from .decoders import BaseDecoder, DecodeContext, DecoderRegistry
from .exceptions import (
    AnnotationConfigError,
    AnnotationError,
    EmptyResultError,
    RecordSkipped,
    StructuralError,
)
from .i18n import DEFAULT_LOCALE, get_message
from .schema import (
    Annotation,
    AnnotationFormat,
    Diagnostic,
    ImageRecord,
    IngestionConfig,
    IngestionResult,
    RawAnnotation,
    RawFile,
    Severity,
)
from .validation import validate_bbox, validate_confidence

# Module-level logger
logger = logging.getLogger(__name__)

LOCALE_ENV_VAR = "ANNOTATION_INGEST_LOCALE"


def _resolve_locale(locale: Optional[str]) -> str:
    if locale:
        return locale
    return os.environ.get(LOCALE_ENV_VAR, DEFAULT_LOCALE)


def _unique_id(base: str, taken: Set[str]) -> str:
    if base not in taken:
        return base
    suffix = 1
    while f"{base}#{suffix}" in taken:
        suffix += 1
    return f"{base}#{suffix}"


def create_registry(config: Optional[IngestionConfig] = None) -> ClassRegistry:
    """Empty class registry using the color settings of ``config``."""
    config = config or IngestionConfig()
    return ClassRegistry(
        saturation=config.color_saturation, lightness=config.color_lightness
    )


class IngestionPipeline:
    """
    Normalizes one annotation upload into a loaded image collection.

    The pipeline holds configuration only; the image collection and the class
    registry are passed to every :meth:`run` call, so one pipeline can serve
    several sessions.

    Example:
        >>> pipeline = IngestionPipeline(IngestionConfig(strict=False))
        >>> registry = ClassRegistry()
        >>> result = pipeline.run("csv", [RawFile("boxes.csv", data)], images, registry)
        >>> result.accepted_count
        12
    """

    def __init__(self, config: Optional[IngestionConfig] = None) -> None:
        self.config = config or IngestionConfig()
        self.locale = _resolve_locale(self.config.locale)

    def create_decoder(self, fmt: AnnotationFormat) -> BaseDecoder:
        try:
            return DecoderRegistry.create(fmt, self.config.decoder_config(fmt))
        except KeyError as exc:
            raise AnnotationConfigError(
                get_message("config.unknown_decoder", locale=self.locale, format=fmt.value),
                config_key="format",
                plugin_name=fmt.value,
                original_error=exc,
            ) from exc

    def run(
        self,
        fmt: Union[str, AnnotationFormat],
        files: Sequence[RawFile],
        images: Sequence[ImageRecord],
        registry: ClassRegistry,
    ) -> IngestionResult:
        """
        Ingest ``files`` declared as ``fmt`` into ``images``.

        Args:
            fmt: Annotation format name or enum member.
            files: Uploaded files in upload order.
            images: Loaded images; matched images get annotations appended.
            registry: Session class registry, updated in place.

        Returns:
            IngestionResult with the accepted count and diagnostics.

        Raises:
            AnnotationConfigError: If ``fmt`` is not a known format or the
                decoder configuration is invalid.
            StructuralError: Only with ``strict``, for batch-fatal payloads.
            EmptyResultError: Only with ``strict``, when nothing was accepted.
        """
        try:
            fmt = AnnotationFormat.parse(fmt)
        except ValueError as exc:
            raise AnnotationConfigError(
                str(exc), config_key="format", original_error=exc
            ) from exc

        result = IngestionResult(format=fmt)
        decoder = self.create_decoder(fmt)
        logger.info(
            "Ingesting %d %s file(s) into %d image(s)",
            len(files),
            decoder.name,
            len(images),
        )

        preflight = decoder.preflight(files, locale=self.locale)
        if not preflight.valid:
            return self._fail(
                result,
                StructuralError(
                    preflight.message or "Pre-flight validation failed",
                    context={
                        "format": fmt.value,
                        "files": ", ".join(f.name for f in files) or "none",
                    },
                ),
            )

        context = DecodeContext.for_images(images, locale=self.locale)
        try:
            output = decoder.decode(files, context)
        except StructuralError as exc:
            return self._fail(result, exc)

        result.diagnostics.extend(output.diagnostics)
        for label in output.declared_labels:
            registry.assign_color(label)

        accepted_by_label: Counter = Counter()
        taken: Dict[str, Set[str]] = {}
        for record in output.records:
            try:
                annotation = self._attach(record, context, registry, taken)
            except RecordSkipped as exc:
                merged = record.describe()
                merged.update(exc.diagnostic_context())
                logger.warning("Skipped record (%s): %s %s", exc.code, exc.message, merged)
                result.diagnostics.append(
                    Diagnostic(Severity.WARNING, exc.code, exc.message, merged)
                )
                continue
            result.accepted_count += 1
            accepted_by_label[annotation.label] += 1
        result.accepted_by_label = dict(accepted_by_label)

        if result.accepted_count == 0:
            reason = (
                EmptyResultError.NO_ANNOTATION_FILES
                if output.annotation_files == 0
                else EmptyResultError.NOTHING_PARSED
            )
            message = decoder.empty_message(reason, locale=self.locale)
            if decoder.requires_results:
                return self._fail(
                    result,
                    EmptyResultError(message, reason=reason, context={"format": fmt.value}),
                )
            logger.warning("%s", message)
            result.diagnostics.append(
                Diagnostic(
                    Severity.WARNING,
                    EmptyResultError.code,
                    message,
                    {"format": fmt.value, "reason": reason},
                )
            )

        logger.info(
            "Accepted %d annotation(s), %d diagnostic(s)",
            result.accepted_count,
            len(result.diagnostics),
        )
        return result

    def _attach(
        self,
        record: RawAnnotation,
        context: DecodeContext,
        registry: ClassRegistry,
        taken: Dict[str, Set[str]],
    ) -> Annotation:
        image = context.matcher.match(
            record.source_filename, compare_stems=record.match_on_stem
        )
        if image is None:
            raise RecordSkipped(
                get_message(
                    "diagnostic.unmatched_image.record",
                    locale=self.locale,
                    source=record.source_filename,
                ),
                code="unmatched_image",
                raw_value=record.source_filename,
            )

        bbox = validate_bbox(record.bbox, locale=self.locale)
        confidence = validate_confidence(record.confidence, locale=self.locale)
        color = registry.assign_color(record.label)

        ids = taken.get(image.id)
        if ids is None:
            ids = {a.id for a in image.annotations}
            taken[image.id] = ids
        base_id = record.annotation_id or f"{record.label}_{len(image.annotations)}"
        annotation_id = _unique_id(base_id, ids)
        ids.add(annotation_id)

        annotation = Annotation(
            id=annotation_id,
            label=record.label,
            bbox=bbox,
            confidence=confidence,
            color=color,
        )
        image.annotations.append(annotation)
        return annotation

    def _fail(self, result: IngestionResult, error: AnnotationError) -> IngestionResult:
        if self.config.strict:
            raise error
        logger.error("%s", error)
        result.diagnostics.append(
            Diagnostic(
                Severity.ERROR,
                error.code,
                error.message,
                error.diagnostic_context(),
            )
        )
        return result


def ingest(
    fmt: Union[str, AnnotationFormat],
    files: Sequence[RawFile],
    images: Sequence[ImageRecord],
    registry: ClassRegistry,
    config: Optional[IngestionConfig] = None,
) -> IngestionResult:
    """Ingest one annotation upload. See :class:`IngestionPipeline`."""
    return IngestionPipeline(config).run(fmt, files, images, registry)


__all__ = [
    "IngestionPipeline",
    "LOCALE_ENV_VAR",
    "create_registry",
    "ingest",
]
