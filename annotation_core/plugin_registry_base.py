#!/usr/bin/env python
#
# Annotation Ingest - Plugin Registry Base
# © 2025 Shinichi Morita (shin3tky)
#

"""Shared registry utilities for plugin-based components."""

from __future__ import annotations

import logging
import warnings
from dataclasses import fields, is_dataclass
from typing import Any, Dict, Generic, List, Mapping, Optional, Type, TypeVar, Union

from .exceptions import AnnotationConfigError

# Module-level logger for registry operations
logger = logging.getLogger(__name__)

PluginType = TypeVar("PluginType")

_PLUGIN_KIND_GENERIC = "plugin"


class PluginRegistryBase(Generic[PluginType]):
    """Base class providing common registry behaviors.

    Subclasses implement `_discover_internal` and `_is_valid_plugin` to supply
    discovery logic and validation for their specific plugin type.

    Plugins expose a ``ConfigType`` dataclass whose fields all carry defaults,
    so ``ConfigType()`` is always a complete configuration. Plain mappings
    (from a YAML/JSON config file) are coerced into it by `_coerce_config`;
    unknown keys are rejected.
    """

    _plugin_kind: str = _PLUGIN_KIND_GENERIC

    # Discovered plugins (built-ins + entry points), lazily initialized
    _discovered: Optional[Dict[str, Type[PluginType]]] = None

    # Runtime-registered plugins (for testing/dynamic plugins)
    _custom: Dict[str, Type[PluginType]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        # Each subclass gets its own registry state
        cls._discovered = None
        cls._custom = {}

    # ========================================
    # Discovery & Registration
    # ========================================
    @classmethod
    def _discover_internal(cls) -> Dict[str, Type[PluginType]]:
        raise NotImplementedError

    @classmethod
    def _is_valid_plugin(cls, plugin_cls: Type[PluginType]) -> bool:
        raise NotImplementedError

    @classmethod
    def discover(cls, force: bool = False) -> Dict[str, Type[PluginType]]:
        """Discover available plugins (cached, lazy)."""
        if cls._discovered is None or force:
            cls._discovered = cls._discover_internal()
            logger.debug(
                "%s.discover: found %d %s(s): %s",
                cls.__name__,
                len(cls._discovered),
                cls._plugin_kind,
                ", ".join(sorted(cls._discovered)) or "none",
            )
        return cls._discovered

    @classmethod
    def get(cls, name: str) -> Type[PluginType]:
        """Get plugin class by name (case-insensitive).

        Runtime-registered plugins shadow discovered ones of the same name.

        Raises:
            KeyError: If no plugin of that name is known.
        """
        name_lower = name.lower()

        if name_lower in cls._custom:
            return cls._custom[name_lower]

        discovered = cls.discover()
        if name_lower in discovered:
            return discovered[name_lower]

        available = cls.list_available()
        available_str = ", ".join(available) if available else "none"
        logger.warning(
            "%s.get('%s'): %s not found. Available: %s",
            cls.__name__,
            name,
            cls._plugin_kind,
            available_str,
        )
        raise KeyError(
            f"Unknown {cls._plugin_kind} '{name}'. Available: {available_str}"
        )

    @classmethod
    def register(cls, plugin_cls: Type[PluginType]) -> None:
        """Register a plugin class at runtime.

        Raises:
            ValueError: If the class is not a valid plugin.
        """
        if not cls._is_valid_plugin(plugin_cls):
            logger.error(
                "%s.register: invalid %s class %s",
                cls.__name__,
                cls._plugin_kind,
                plugin_cls,
            )
            raise ValueError(
                f"Invalid {cls._plugin_kind} class: {plugin_cls}. "
                f"Must inherit from the proper base and have non-empty plugin_name."
            )

        name_lower = plugin_cls.plugin_name.lower()
        if name_lower in cls._custom:
            logger.warning(
                "%s.register: overwriting runtime-registered %s '%s'",
                cls.__name__,
                cls._plugin_kind,
                name_lower,
            )
            warnings.warn(
                f"Overwriting existing runtime-registered {cls._plugin_kind} "
                f"'{name_lower}'",
                stacklevel=2,
            )

        cls._custom[name_lower] = plugin_cls
        logger.info(
            "%s.register: registered %s '%s' (%s.%s)",
            cls.__name__,
            cls._plugin_kind,
            name_lower,
            plugin_cls.__module__,
            plugin_cls.__name__,
        )

    @classmethod
    def unregister(cls, name: str) -> bool:
        """Unregister a runtime-registered plugin. Returns True if removed."""
        removed = cls._custom.pop(name.lower(), None)
        if removed is None:
            return False
        logger.info(
            "%s.unregister: removed %s '%s'", cls.__name__, cls._plugin_kind, name
        )
        return True

    @classmethod
    def list_available(cls) -> List[str]:
        """List all available plugin names."""
        return sorted(set(cls.discover()) | set(cls._custom))

    # ========================================
    # Internal Methods
    # ========================================
    @classmethod
    def _coerce_config(
        cls,
        plugin_cls: Type[PluginType],
        config: Optional[Union[Mapping[str, Any], Any]],
    ) -> Any:
        """Coerce config to the plugin's expected ConfigType.

        Raises:
            AnnotationConfigError: If the mapping has unknown keys or values the
                ConfigType rejects.
        """
        config_type = getattr(plugin_cls, "ConfigType", None)
        plugin_name = getattr(plugin_cls, "plugin_name", "unknown")

        if config_type is None:
            return config

        if config is None:
            return config_type()

        if isinstance(config, config_type):
            return config

        if not isinstance(config, Mapping) or not is_dataclass(config_type):
            raise AnnotationConfigError(
                f"Cannot use {type(config).__name__} as configuration for "
                f"{cls._plugin_kind} '{plugin_name}'",
                plugin_name=plugin_name,
            )

        known = {f.name for f in fields(config_type)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise AnnotationConfigError(
                f"Unknown configuration key(s) for {cls._plugin_kind} "
                f"'{plugin_name}': {', '.join(unknown)}",
                config_key=unknown[0],
                plugin_name=plugin_name,
                context={"allowed": ", ".join(sorted(known))},
            )

        try:
            result = config_type(**config)
        except (TypeError, ValueError) as exc:
            raise AnnotationConfigError(
                f"Invalid configuration for {cls._plugin_kind} '{plugin_name}'",
                plugin_name=plugin_name,
                original_error=exc,
            ) from exc
        logger.debug(
            "_coerce_config(%s): coerced mapping to %s",
            plugin_name,
            config_type.__name__,
        )
        return result

    @classmethod
    def _reset(cls) -> None:
        """Reset registry state (for tests)."""
        cls._discovered = None
        cls._custom = {}


__all__ = ["PluginRegistryBase"]
