#!/usr/bin/env python
#
# Annotation Ingest - Decoder Registry
# © 2025 Shinichi Morita (shin3tky)
#

"""
Registry for decoder plugins with discovery, registration, and instantiation.

Built-in decoders are registered first, followed by entry points in the
``annotation_core.decoders`` group sorted by entry-point name. Later
discoveries with a duplicate ``plugin_name`` are ignored with a warning so
resolution is predictable. Runtime-registered decoders shadow discovered ones,
which lets tests or applications replace a built-in format.
"""

from __future__ import annotations

import logging
import warnings
from importlib import metadata
from typing import Any, Dict, Iterable, Mapping, Optional, Type, Union

from ..plugin_registry_base import PluginRegistryBase
from ..schema import AnnotationFormat
from .base import BaseDecoder, _is_valid_decoder
from .coco import CocoDecoder
from .csv_table import CsvDecoder
from .pascal_voc import PascalVocDecoder
from .yolo import YoloDecoder

logger = logging.getLogger(__name__)

PLUGIN_GROUP = "annotation_core.decoders"

BUILTIN_DECODERS = (CocoDecoder, YoloDecoder, CsvDecoder, PascalVocDecoder)


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points(group=PLUGIN_GROUP)


def _add_decoder(
    registry: Dict[str, Type[BaseDecoder]], decoder_cls: Any, origin: str
) -> None:
    if not _is_valid_decoder(decoder_cls):
        warnings.warn(
            f"Skipping decoder from {origin}: {decoder_cls!r} does not inherit "
            "from BaseDecoder (or missing plugin_name).",
            stacklevel=3,
        )
        return

    name = decoder_cls.plugin_name.lower()
    if name in registry:
        existing = registry[name]
        warnings.warn(
            f"Duplicate decoder name '{name}' from {origin}; "
            f"keeping {existing.__module__}.{existing.__name__}",
            stacklevel=3,
        )
        return
    registry[name] = decoder_cls


def _discover_decoders_internal() -> Dict[str, Type[BaseDecoder]]:
    registry: Dict[str, Type[BaseDecoder]] = {}
    for decoder_cls in BUILTIN_DECODERS:
        _add_decoder(registry, decoder_cls, f"built-in {decoder_cls.__name__}")

    for ep in sorted(_iter_entry_points(), key=lambda e: e.name):
        try:
            loaded = ep.load()
        except Exception as exc:  # noqa: BLE001 - third-party import failure
            warnings.warn(
                f"Failed to load decoder entry point '{ep.name}': {exc}",
                stacklevel=2,
            )
            continue
        _add_decoder(registry, loaded, f"entry point '{ep.name}'")
    return registry


class DecoderRegistry(PluginRegistryBase[BaseDecoder]):
    """Decoder registry keyed by format name.

    Example:
        >>> decoder = DecoderRegistry.create("yolo", {"class_file_names": ["labels.txt"]})
        >>> decoder.get_info()["name"]
        'YOLO'

        >>> # Replace the CSV decoder for one test
        >>> DecoderRegistry.register(MyCsvDecoder)
        >>> DecoderRegistry.unregister("csv")
    """

    _plugin_kind = "decoder"

    @classmethod
    def _discover_internal(cls) -> Dict[str, Type[BaseDecoder]]:
        return _discover_decoders_internal()

    @classmethod
    def _is_valid_plugin(cls, decoder_cls: Type[BaseDecoder]) -> bool:
        return _is_valid_decoder(decoder_cls)

    @classmethod
    def get_for_format(cls, fmt: Union[str, AnnotationFormat]) -> Type[BaseDecoder]:
        """Decoder class for an annotation format (aliases accepted)."""
        return cls.get(AnnotationFormat.parse(fmt).value)

    @classmethod
    def create(
        cls,
        name: Union[str, AnnotationFormat],
        config: Optional[Union[Mapping[str, Any], Any]] = None,
    ) -> BaseDecoder:
        """Create a decoder instance.

        Args:
            name: Decoder plugin_name or AnnotationFormat.
            config: None for defaults, a mapping coerced to the decoder's
                ``ConfigType``, or a ``ConfigType`` instance.

        Raises:
            KeyError: If no decoder is registered under ``name``.
            AnnotationConfigError: If ``config`` cannot be coerced.
        """
        key = name.value if isinstance(name, AnnotationFormat) else name
        decoder_cls = cls.get(key)
        coerced = cls._coerce_config(decoder_cls, config)
        instance = decoder_cls(coerced)
        logger.debug(
            "Created decoder '%s' (%s) with %r", key, decoder_cls.__name__, coerced
        )
        return instance


__all__ = ["BUILTIN_DECODERS", "DecoderRegistry", "PLUGIN_GROUP"]
