#!/usr/bin/env python
#
# Annotation Ingest - Message Catalog
# © 2025 Shinichi Morita (shin3tky)
#

"""Localized messages for diagnostics and CLI output.

Message templates live in ``annotation_core/locales/<lang>/messages.yaml`` as
nested mappings. Keys are addressed with dots (``diagnostic.yolo.malformed_line``).
Templates use ``{name}`` placeholders and a small subset of ICU plural syntax::

    accepted: "{count, plural, =0 {no annotations} one {# annotation} other {# annotations}}"

Unknown keys render as the key itself so that a missing translation never
breaks ingestion.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from importlib import resources
from numbers import Number
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .schema import DEFAULT_LOCALE

logger = logging.getLogger(__name__)

_LOCALES_PACKAGE = "annotation_core.locales"
_PLURAL_HEAD = re.compile(r"\{\s*(\w+)\s*,\s*plural\s*,")
_PLURAL_OPTION = re.compile(r"\s*(=\d+|zero|one|two|few|many|other)\s*\{")


class _SafeDict(dict):
    """Mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def _normalize_locale(locale: Optional[str]) -> str:
    normalized = (locale or DEFAULT_LOCALE).strip().replace("_", "-").lower()
    return normalized or DEFAULT_LOCALE


def _candidate_locales(locale: Optional[str]) -> List[str]:
    normalized = _normalize_locale(locale)
    candidates = [normalized]
    language = normalized.split("-")[0]
    for fallback in (language, DEFAULT_LOCALE):
        if fallback not in candidates:
            candidates.append(fallback)
    return candidates


def _flatten(node: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in node.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(value, full_key))
        else:
            flat[full_key] = str(value)
    return flat


@lru_cache(maxsize=None)
def _load_catalog(locale: str) -> Dict[str, str]:
    path = resources.files(_LOCALES_PACKAGE).joinpath(locale, "messages.yaml")
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.warning("Ignoring unreadable message catalog for '%s': %s", locale, exc)
        return {}
    if not isinstance(data, Mapping):
        return {}
    return _flatten(data)


def _matching_brace(text: str, start: int) -> int:
    """Index of the brace closing the one opened at ``start``, or -1."""
    depth = 0
    for idx in range(start, len(text)):
        if text[idx] == "{":
            depth += 1
        elif text[idx] == "}":
            depth -= 1
            if depth == 0:
                return idx
    return -1


def _parse_options(body: str) -> Dict[str, str]:
    options: Dict[str, str] = {}
    cursor = 0
    while cursor < len(body):
        match = _PLURAL_OPTION.match(body, cursor)
        if not match:
            break
        open_idx = match.end() - 1
        close_idx = _matching_brace(body, open_idx)
        if close_idx < 0:
            break
        options[match.group(1)] = body[open_idx + 1 : close_idx]
        cursor = close_idx + 1
    return options


def _select_plural(options: Mapping[str, str], count: Optional[Number]) -> Optional[str]:
    if count is None:
        return options.get("other")
    exact = options.get(f"={count}")
    if exact is not None:
        return exact
    category = "one" if count == 1 else "other"
    return options.get(category, options.get("other"))


def _coerce_count(value: Any) -> Optional[Number]:
    if isinstance(value, Number) and not isinstance(value, bool):
        return value
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return None


def _render_plurals(template: str, params: Mapping[str, Any]) -> str:
    pieces: List[str] = []
    cursor = 0
    for head in _PLURAL_HEAD.finditer(template):
        if head.start() < cursor:
            continue
        close_idx = _matching_brace(template, head.start())
        if close_idx < 0:
            continue
        options = _parse_options(template[head.end() : close_idx])
        count = _coerce_count(params.get(head.group(1)))
        selected = _select_plural(options, count)
        if selected is None:
            continue
        pieces.append(template[cursor : head.start()])
        pieces.append(selected.replace("#", "" if count is None else str(count)))
        cursor = close_idx + 1
    pieces.append(template[cursor:])
    return "".join(pieces)


def format_message(template: str, params: Mapping[str, Any]) -> str:
    """Render a catalog template with plural blocks and placeholders."""
    rendered = _render_plurals(template, params)
    try:
        return rendered.format_map(_SafeDict(params))
    except (ValueError, IndexError):
        return rendered


def get_message(
    key: str,
    *,
    locale: str = DEFAULT_LOCALE,
    params: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> str:
    """Look up ``key`` in the catalog for ``locale`` and render it."""
    merged: Dict[str, Any] = dict(params or {})
    merged.update(kwargs)

    template = key
    for candidate in _candidate_locales(locale):
        catalog = _load_catalog(candidate)
        if key in catalog:
            template = catalog[key]
            break
    return format_message(template, merged)


def available_locales() -> Tuple[str, ...]:
    root = resources.files(_LOCALES_PACKAGE)
    return tuple(
        sorted(
            entry.name
            for entry in root.iterdir()
            if entry.is_dir() and entry.joinpath("messages.yaml").is_file()
        )
    )


__all__ = ["DEFAULT_LOCALE", "available_locales", "format_message", "get_message"]
