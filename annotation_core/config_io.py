#!/usr/bin/env python
#
# Annotation Ingest - Configuration I/O
# © 2025 Shinichi Morita (shin3tky)
#

"""Load ingestion configuration files for CLI usage.

Example ``ingest.yaml``::

    strict: false
    locale: en
    max_workers: 4
    decoders:
      yolo:
        class_file_names: [classes.txt, obj.names.txt]
      csv:
        delimiter: ";"
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .decoders import DecoderRegistry
from .exceptions import AnnotationConfigError
from .schema import IngestionConfig

SUPPORTED_CONFIG_EXTENSIONS = {".json", ".yaml", ".yml"}


def _load_config_mapping(path: Path) -> Any:
    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise AnnotationConfigError(
                "Invalid JSON configuration file",
                filepath=str(path),
                original_error=exc,
            ) from exc
    if suffix in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise AnnotationConfigError(
                "Invalid YAML configuration file",
                filepath=str(path),
                original_error=exc,
            ) from exc
        return data if data is not None else {}
    raise AnnotationConfigError(
        "Unsupported configuration file format",
        filepath=str(path),
        context={"supported_extensions": sorted(SUPPORTED_CONFIG_EXTENSIONS)},
    )


def _check_decoder_configs(config: IngestionConfig, path: Path) -> None:
    """Coerce each decoder section once so bad keys fail at load time."""
    for name, options in config.decoders.items():
        try:
            decoder_cls = DecoderRegistry.get(name)
        except KeyError as exc:
            raise AnnotationConfigError(
                "Unknown decoder in configuration",
                filepath=str(path),
                config_key=f"decoders.{name}",
                original_error=exc,
            ) from exc
        try:
            DecoderRegistry._coerce_config(decoder_cls, options)
        except AnnotationConfigError as exc:
            raise AnnotationConfigError(
                exc.message,
                filepath=str(path),
                config_key=exc.config_key,
                plugin_name=exc.plugin_name,
                original_error=exc.original_error,
            ) from exc


def load_ingestion_config(path: str | Path) -> IngestionConfig:
    """Load ingestion configuration from a YAML/JSON file.

    Raises:
        AnnotationConfigError: If the file is missing, unreadable, not a
            mapping, or holds invalid settings.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise AnnotationConfigError(
            "Configuration file not found",
            filepath=str(config_path),
        )
    if config_path.is_dir():
        raise AnnotationConfigError(
            "Configuration path must be a file, not a directory",
            filepath=str(config_path),
        )
    data = _load_config_mapping(config_path)
    if not isinstance(data, dict):
        raise AnnotationConfigError(
            "Configuration file must define an object at the top level",
            filepath=str(config_path),
        )
    try:
        config = IngestionConfig.from_dict(data)
    except (TypeError, ValueError, KeyError) as exc:
        raise AnnotationConfigError(
            "Invalid ingestion configuration",
            filepath=str(config_path),
            original_error=exc,
        ) from exc
    _check_decoder_configs(config, config_path)
    return config


__all__ = [
    "SUPPORTED_CONFIG_EXTENSIONS",
    "load_ingestion_config",
]
