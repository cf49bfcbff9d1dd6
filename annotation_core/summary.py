#!/usr/bin/env python
#
# Annotation Ingest - Dataset Summary
# © 2025 Shinichi Morita (shin3tky)
#

"""
Dataset-level statistics and image filtering over ingested annotations.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .class_registry import ClassRegistry
from .schema import ImageRecord

logger = logging.getLogger(__name__)


@dataclass
class BoxStats:
    """Distribution of box areas (pixels squared) and confidences."""

    count: int = 0
    mean_area: float = 0.0
    median_area: float = 0.0
    min_area: float = 0.0
    max_area: float = 0.0
    mean_confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "mean_area": self.mean_area,
            "median_area": self.median_area,
            "min_area": self.min_area,
            "max_area": self.max_area,
            "mean_confidence": self.mean_confidence,
        }


@dataclass
class DatasetSummary:
    total_images: int = 0
    annotated_images: int = 0
    total_annotations: int = 0
    class_counts: Dict[str, int] = field(default_factory=dict)
    class_colors: Dict[str, str] = field(default_factory=dict)
    box_stats: BoxStats = field(default_factory=BoxStats)

    @property
    def unannotated_images(self) -> int:
        return self.total_images - self.annotated_images

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_images": self.total_images,
            "annotated_images": self.annotated_images,
            "total_annotations": self.total_annotations,
            "class_counts": dict(self.class_counts),
            "class_colors": dict(self.class_colors),
            "box_stats": self.box_stats.to_dict(),
        }


def _box_stats(images: Sequence[ImageRecord]) -> BoxStats:
    rows = [
        (a.bbox.width, a.bbox.height, a.confidence)
        for image in images
        for a in image.annotations
    ]
    if not rows:
        return BoxStats()
    data = np.asarray(rows, dtype=np.float64)
    areas = data[:, 0] * data[:, 1]
    return BoxStats(
        count=int(areas.size),
        mean_area=float(np.mean(areas)),
        median_area=float(np.median(areas)),
        min_area=float(np.min(areas)),
        max_area=float(np.max(areas)),
        mean_confidence=float(np.mean(data[:, 2])),
    )


def summarize(
    images: Sequence[ImageRecord], registry: Optional[ClassRegistry] = None
) -> DatasetSummary:
    """Count images, annotations and classes.

    Classes are listed in registry order when a registry is given (classes
    with no annotation get a zero count), followed by any label the registry
    does not know, sorted by name.
    """
    counts: Dict[str, int] = {}
    if registry is not None:
        counts.update((name, 0) for name in registry)

    extra: Dict[str, int] = {}
    for image in images:
        for annotation in image.annotations:
            target = counts if annotation.label in counts else extra
            target[annotation.label] = target.get(annotation.label, 0) + 1
    for name in sorted(extra):
        counts[name] = extra[name]

    colors: Dict[str, str] = {}
    if registry is not None:
        colors = {name: registry.color_of(name).css for name in counts}

    summary = DatasetSummary(
        total_images=len(images),
        annotated_images=sum(1 for image in images if image.annotations),
        total_annotations=sum(len(image.annotations) for image in images),
        class_counts=counts,
        class_colors=colors,
        box_stats=_box_stats(images),
    )
    logger.debug(
        "Summary: %d image(s), %d annotation(s), %d class(es)",
        summary.total_images,
        summary.total_annotations,
        len(summary.class_counts),
    )
    return summary


def filter_images(
    images: Sequence[ImageRecord],
    *,
    label: Optional[str] = None,
    annotated_only: bool = False,
    search: Optional[str] = None,
) -> List[ImageRecord]:
    """Images matching every given criterion, in collection order.

    Args:
        label: Keep images with at least one annotation of this class.
        annotated_only: Keep images with at least one annotation.
        search: Case-insensitive substring of the filename.
    """
    needle = search.lower() if search else None
    selected: List[ImageRecord] = []
    for image in images:
        if annotated_only and not image.annotations:
            continue
        if label and not any(a.label == label for a in image.annotations):
            continue
        if needle and needle not in image.filename.lower():
            continue
        selected.append(image)
    return selected


__all__ = ["BoxStats", "DatasetSummary", "filter_images", "summarize"]
