#!/usr/bin/env python
#
# Annotation Ingest - Image Matcher
# © 2025 Shinichi Morita (shin3tky)
#

"""
Resolve the filename stated inside an annotation record to a loaded image.

Annotation exports rarely agree with the image set on path prefixes: a COCO
file may say ``train/photo.jpg`` while the image was loaded as ``photo.jpg``,
or the other way round. Matching therefore walks an ordered list of rules and
returns the first image any rule accepts:

1. exact equality
2. the image filename is a suffix of the source name
3. the source name is a suffix of the image filename

Each rule is tried against every image before the next rule is consulted, so
an exact match always beats a suffix match further up the list.
"""

import logging
import os
from typing import Callable, List, Optional, Sequence, Tuple

from .schema import ImageRecord

logger = logging.getLogger(__name__)

MatchRule = Callable[[str, str], bool]


def exact_match(source: str, candidate: str) -> bool:
    return source == candidate


def candidate_is_suffix(source: str, candidate: str) -> bool:
    return source.endswith(candidate)


def source_is_suffix(source: str, candidate: str) -> bool:
    return candidate.endswith(source)


MATCH_RULES: Tuple[Tuple[str, MatchRule], ...] = (
    ("exact", exact_match),
    ("image_suffix", candidate_is_suffix),
    ("source_suffix", source_is_suffix),
)


def _key_for(image: ImageRecord, compare_stems: bool) -> str:
    if compare_stems:
        return os.path.splitext(image.filename)[0]
    return image.filename


def match(
    source_filename: str,
    images: Sequence[ImageRecord],
    *,
    compare_stems: bool = False,
    rules: Sequence[Tuple[str, MatchRule]] = MATCH_RULES,
) -> Optional[ImageRecord]:
    """Return the first image matching ``source_filename``, or None.

    Args:
        source_filename: Filename (or stem) stated by the annotation record.
        images: Loaded images in their collection order.
        compare_stems: Strip each image's extension before comparing. Used for
            YOLO, whose annotation files carry only the image stem.
        rules: Ordered ``(name, predicate)`` pairs.

    Returns:
        The matched ImageRecord, or None when no rule accepts any image.
    """
    if not source_filename:
        return None

    keys: List[str] = [_key_for(image, compare_stems) for image in images]
    for rule_name, rule in rules:
        for image, key in zip(images, keys):
            if key and rule(source_filename, key):
                logger.debug(
                    "Matched '%s' to image '%s' by %s rule",
                    source_filename,
                    image.filename,
                    rule_name,
                )
                return image
    return None


class ImageMatcher:
    """Matcher bound to one image collection."""

    def __init__(
        self,
        images: Sequence[ImageRecord],
        rules: Sequence[Tuple[str, MatchRule]] = MATCH_RULES,
    ):
        self.images = tuple(images)
        self.rules = tuple(rules)

    def match(
        self, source_filename: str, *, compare_stems: bool = False
    ) -> Optional[ImageRecord]:
        return match(
            source_filename,
            self.images,
            compare_stems=compare_stems,
            rules=self.rules,
        )


__all__ = [
    "MATCH_RULES",
    "ImageMatcher",
    "candidate_is_suffix",
    "exact_match",
    "match",
    "source_is_suffix",
]
