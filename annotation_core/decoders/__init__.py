#!/usr/bin/env python
#
# Annotation Ingest - Decoders Package
# © 2025 Shinichi Morita (shin3tky)
#

"""
Annotation format decoders.
"""

from .base import BaseDecoder, DecodeContext, DecodeOutput
from .coco import CocoDecoder, CocoDecoderConfig
from .csv_table import CsvDecoder, CsvDecoderConfig, resolve_columns
from .pascal_voc import PascalVocDecoder, PascalVocDecoderConfig
from .yolo import YoloDecoder, YoloDecoderConfig, denormalize
from .registry import BUILTIN_DECODERS, PLUGIN_GROUP, DecoderRegistry

__all__ = [
    # Base class
    "BaseDecoder",
    "DecodeContext",
    "DecodeOutput",
    # Built-in decoders
    "CocoDecoder",
    "CocoDecoderConfig",
    "CsvDecoder",
    "CsvDecoderConfig",
    "PascalVocDecoder",
    "PascalVocDecoderConfig",
    "YoloDecoder",
    "YoloDecoderConfig",
    "denormalize",
    "resolve_columns",
    # Registry
    "BUILTIN_DECODERS",
    "DecoderRegistry",
    "PLUGIN_GROUP",
]
