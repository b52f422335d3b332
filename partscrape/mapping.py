"""Serialization map loading and lookup.

The map is a JSON document keyed first by category and then by the raw
attribute label shown on the site. Each entry is a two-item list of
``[field_name, kind]``::

    {"cpu": {"Core Count": ["core_count", "number"]}}

The map is loaded once and exposed read-only, so every worker can share it.
"""

import json
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from partscrape.config import SERIALIZATION_MAP_PATH
from partscrape.exceptions import ConfigurationError
from partscrape.models import AttributeMapping, SerializationKind

__all__ = [
    "SerializationMap",
    "load_serialization_map",
    "parse_serialization_map",
    "get_serialization_map",
    "resolve",
]

SerializationMap = Mapping[str, Mapping[str, AttributeMapping]]

_cached_map: Optional[SerializationMap] = None
_cache_lock = threading.Lock()


def parse_serialization_map(raw: Any) -> SerializationMap:
    """Validate a decoded map document and freeze it.

    Raises:
        ConfigurationError: If the document does not have the expected shape
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("Serialization map must be a JSON object keyed by category")

    table = {}
    for category, labels in raw.items():
        if not isinstance(labels, dict):
            raise ConfigurationError(f"Entry for category '{category}' must be an object")

        entries = {}
        for raw_label, spec in labels.items():
            if not isinstance(spec, (list, tuple)) or len(spec) != 2:
                raise ConfigurationError(
                    f"Mapping for '{raw_label}' in '{category}' must be [field_name, kind]"
                )
            field_name, kind = spec
            try:
                kind = SerializationKind(kind)
            except ValueError as e:
                raise ConfigurationError(
                    f"Unknown serialization kind '{kind}' for '{raw_label}' in '{category}'"
                ) from e
            entries[raw_label] = AttributeMapping(raw_label, str(field_name), kind)

        table[category] = MappingProxyType(entries)

    return MappingProxyType(table)


def load_serialization_map(path: Optional[Union[str, Path]] = None) -> SerializationMap:
    """Load and validate the serialization map from a JSON file."""
    path = Path(path) if path else SERIALIZATION_MAP_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not load serialization map from {path}: {e}") from e
    return parse_serialization_map(raw)


def get_serialization_map() -> SerializationMap:
    """Get the process-wide serialization map, loading it on first use."""
    global _cached_map
    if _cached_map is None:
        with _cache_lock:
            if _cached_map is None:
                _cached_map = load_serialization_map()
    return _cached_map


def resolve(
    category: str,
    raw_label: str,
    table: Optional[SerializationMap] = None,
) -> Optional[AttributeMapping]:
    """Look up the mapping for a raw label. Returns None if it is not mapped."""
    table = table if table is not None else get_serialization_map()
    return table.get(category, {}).get(raw_label)
