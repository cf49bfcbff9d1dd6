#!/usr/bin/env python
#
# Annotation Ingest - File I/O
# © 2025 Shinichi Morita (shin3tky)
#

"""
Disk access for the CLI: annotation payloads and image manifests.

The ingestion core itself works on in-memory :class:`RawFile` payloads; this
module is the adapter that produces them from paths.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Sequence

import yaml

from .exceptions import AnnotationValidationError
from .schema import DEFAULT_NUM_WORKERS, ImageRecord, RawFile

logger = logging.getLogger(__name__)

MANIFEST_EXTENSIONS = {".json", ".yaml", ".yml", ".csv"}


def read_raw_file(path: str | Path) -> RawFile:
    """Read one file as bytes, keeping its base name as the declared name."""
    file_path = Path(path)
    try:
        content = file_path.read_bytes()
    except OSError as exc:
        raise AnnotationValidationError(
            "Cannot read annotation file",
            filepath=str(file_path),
            original_error=exc,
        ) from exc
    logger.debug("Read %s (%d bytes)", file_path, len(content))
    return RawFile(name=file_path.name, content=content)


def read_raw_files(
    paths: Sequence[str | Path], max_workers: int = DEFAULT_NUM_WORKERS
) -> List[RawFile]:
    """Read files concurrently; results keep the order of ``paths``."""
    if not paths:
        return []
    workers = max(1, min(max_workers, len(paths)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        files = list(executor.map(read_raw_file, paths))
    logger.info("Read %d annotation file(s) with %d worker(s)", len(files), workers)
    return files


def _image_from_mapping(entry: Any, index: int, source: Path) -> ImageRecord:
    if not isinstance(entry, Mapping):
        raise AnnotationValidationError(
            "Image manifest entries must be mappings",
            filepath=str(source),
            parameter_name=f"images[{index}]",
            provided_value=entry,
            expected="mapping with filename, width, height",
        )
    filename = entry.get("filename") or entry.get("file_name")
    if not filename:
        raise AnnotationValidationError(
            "Image manifest entry has no filename",
            filepath=str(source),
            parameter_name=f"images[{index}].filename",
            expected="non-empty string",
        )
    dims = {}
    for key in ("width", "height"):
        value = entry.get(key)
        try:
            dims[key] = int(value)
        except (TypeError, ValueError) as exc:
            raise AnnotationValidationError(
                f"Image manifest entry has an invalid {key}",
                filepath=str(source),
                original_error=exc,
                parameter_name=f"images[{index}].{key}",
                provided_value=value,
                expected="positive integer (pixels)",
            ) from exc
    kwargs = {}
    if entry.get("id") not in (None, ""):
        kwargs["id"] = str(entry["id"])
    return ImageRecord(filename=str(filename), **kwargs, **dims)


def _manifest_entries(path: Path, text: str) -> Iterable[Any]:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return list(csv.DictReader(io.StringIO(text)))
    try:
        data = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise AnnotationValidationError(
            "Invalid image manifest",
            filepath=str(path),
            original_error=exc,
        ) from exc
    if isinstance(data, Mapping):
        data = data.get("images")
    if not isinstance(data, list):
        raise AnnotationValidationError(
            "Image manifest must be a list of images or a mapping with an 'images' list",
            filepath=str(path),
        )
    return data


def load_image_manifest(path: str | Path) -> List[ImageRecord]:
    """Load the image collection from a JSON, YAML or CSV manifest.

    Each entry provides ``filename`` (or COCO-style ``file_name``),
    ``width``, ``height`` and optionally ``id``.
    """
    manifest = Path(path)
    if manifest.suffix.lower() not in MANIFEST_EXTENSIONS:
        raise AnnotationValidationError(
            "Unsupported image manifest format",
            filepath=str(manifest),
            expected=", ".join(sorted(MANIFEST_EXTENSIONS)),
        )
    try:
        text = manifest.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise AnnotationValidationError(
            "Cannot read image manifest",
            filepath=str(manifest),
            original_error=exc,
        ) from exc

    images = [
        _image_from_mapping(entry, index, manifest)
        for index, entry in enumerate(_manifest_entries(manifest, text))
    ]
    logger.info("Loaded %d image(s) from %s", len(images), manifest)
    return images


__all__ = [
    "MANIFEST_EXTENSIONS",
    "load_image_manifest",
    "read_raw_file",
    "read_raw_files",
]
