#!/usr/bin/env python
#
# Annotation Ingest - Class Registry
# © 2025 Shinichi Morita (shin3tky)
#

"""
Session-wide registry of class names and their display colors.

Colors are assigned by the golden-angle rule: the Nth distinct class
(0-indexed) receives hue ``(N * 137.50776) mod 360`` at a fixed saturation and
lightness, which keeps neighbouring classes visually distinct without a
palette size limit. A name keeps its color for the lifetime of the registry.
"""

import logging
from typing import Any, Dict, Iterator, List

from .schema import (
    DEFAULT_COLOR_LIGHTNESS,
    DEFAULT_COLOR_SATURATION,
    GOLDEN_ANGLE_DEG,
    ClassColor,
    DisplayColor,
    FallbackColor,
)

logger = logging.getLogger(__name__)


def golden_angle_hue(index: int) -> float:
    """Hue in degrees for the class registered at ``index``."""
    return (index * GOLDEN_ANGLE_DEG) % 360.0


class ClassRegistry:
    """Ordered mapping of class name to display color.

    The registry only grows; names are compared case-sensitively. Pass one
    instance through every ingestion call of a session so colors stay stable
    across formats.

    Example:
        >>> registry = ClassRegistry()
        >>> registry.assign_color("cat").css
        'hsl(0, 70%, 50%)'
        >>> registry.assign_color("dog").hue
        137.50776
    """

    def __init__(
        self,
        *,
        saturation: float = DEFAULT_COLOR_SATURATION,
        lightness: float = DEFAULT_COLOR_LIGHTNESS,
    ) -> None:
        self.saturation = saturation
        self.lightness = lightness
        self._colors: Dict[str, ClassColor] = {}
        self._fallback = FallbackColor()

    def assign_color(self, name: str) -> ClassColor:
        """Return the color for ``name``, registering it first if new."""
        color = self._colors.get(name)
        if color is not None:
            return color

        color = ClassColor(
            hue=golden_angle_hue(len(self._colors)),
            saturation=self.saturation,
            lightness=self.lightness,
        )
        self._colors[name] = color
        logger.info("Registered class '%s' as %s", name, color.css)
        return color

    def color_of(self, name: str) -> DisplayColor:
        """Return the assigned color, or the fallback for unknown names."""
        return self._colors.get(name, self._fallback)

    def names(self) -> List[str]:
        return list(self._colors)

    def __contains__(self, name: object) -> bool:
        return name in self._colors

    def __len__(self) -> int:
        return len(self._colors)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._colors))

    def items(self):
        return list(self._colors.items())

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: color.to_dict() for name, color in self._colors.items()}

    def __repr__(self) -> str:
        return f"ClassRegistry({self.names()!r})"
