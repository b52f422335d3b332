"""Value serializers turning raw attribute text into typed record fields."""

import logging
import re
from typing import Callable, Dict, Iterable, Optional, Tuple

from partscrape.logging_config import get_logger, log_scrape_event
from partscrape.mapping import SerializationMap, resolve
from partscrape.models import AttributeMapping, Record, SerializationKind, Value

__all__ = [
    "serialize_number",
    "serialize_string",
    "serialize_boolean",
    "serialize_enum",
    "generic_serialize",
    "custom_serialize",
    "serialize_attribute",
    "build_record",
    "CustomSerializer",
    "CUSTOM_SERIALIZERS",
]

logger = get_logger("serializers")

CustomSerializer = Callable[[str], Value]

# US formatted numbers: 1,299.99 / 129 / .5
NUMBER_RE = re.compile(r"-?(?:\d+(?:,\d{3})*(?:\.\d+)?|\.\d+)")
# Range bounds such as '600-2000' carry no sign
UNSIGNED_RE = re.compile(r"\d+(?:,\d{3})*(?:\.\d+)?")
EFFICIENCY_PREFIX_RE = re.compile(r"^80\s*(?:\+|plus)", re.IGNORECASE)
FREQUENCY_RE = re.compile(r"(\d+(?:,\d{3})*(?:\.\d+)?)\s*(k?hz)?", re.IGNORECASE)
FREQUENCY_SCALE = {"hz": 1, "khz": 1000}

TRUE_TOKENS = frozenset({"yes", "true", "y", "1", "on", "enabled", "supported"})
FALSE_TOKENS = frozenset({"no", "false", "n", "0", "off", "disabled", "none"})

# Values the site shows when an enumerated attribute does not apply
PLACEHOLDER_TOKENS = frozenset({"none", "n/a", "na", "-", "--"})


# =============================================================================
# Generic serializers
# =============================================================================

def _to_number(token: str) -> Optional[float]:
    token = token.replace(",", "")
    if "." in token:
        return float(token)
    return int(token)


def serialize_number(text: Optional[str]):
    """Parse the first number in text, ignoring currency symbols and units.

    >>> serialize_number("$1,129.99")
    1129.99
    >>> serialize_number("8")
    8

    Returns None when the text holds no digits.
    """
    if not text:
        return None
    match = NUMBER_RE.search(text)
    if not match:
        return None
    return _to_number(match.group(0))


def serialize_string(text: Optional[str]) -> Optional[str]:
    """Trim and collapse embedded newlines and whitespace runs into single spaces."""
    if text is None:
        return None
    collapsed = " ".join(text.split())
    return collapsed or None


def serialize_boolean(text: Optional[str]) -> Optional[bool]:
    if text is None:
        return None
    token = text.strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    logger.warning(f"Unrecognized boolean value '{text.strip()}'")
    return None


def serialize_enum(text: Optional[str]) -> Optional[str]:
    value = serialize_string(text)
    if value is None or value.lower() in PLACEHOLDER_TOKENS:
        return None
    return value


_GENERIC_SERIALIZERS: Dict[SerializationKind, Callable[[str], Value]] = {
    SerializationKind.STRING: serialize_string,
    SerializationKind.NUMBER: serialize_number,
    SerializationKind.BOOLEAN: serialize_boolean,
    SerializationKind.ENUM: serialize_enum,
}


def generic_serialize(text: str, kind) -> Value:
    """Serialize text according to a non-custom kind.

    An unrecognized kind is a data-quality problem rather than an error:
    it is logged and the value becomes None.
    """
    try:
        kind = SerializationKind(kind)
    except ValueError:
        logger.warning(f"Unknown serialization kind '{kind}', storing null")
        return None

    serializer = _GENERIC_SERIALIZERS.get(kind)
    if serializer is None:
        logger.warning(f"No generic serializer for kind '{kind.value}', storing null")
        return None
    return serializer(text)


# =============================================================================
# Category-specific serializers
# =============================================================================

def _numbers(text: str):
    return [_to_number(m) for m in UNSIGNED_RE.findall(text)]


def _range_upper(text: str):
    """'600 - 2000 RPM' -> 2000; single values pass through."""
    values = _numbers(text)
    return max(values) if values else None


def _frequency_upper(text: str):
    """'20 Hz - 20 kHz' -> 20000 (hertz); a bare bound takes the next unit shown."""
    bounds = FREQUENCY_RE.findall(text)
    if not bounds:
        return None

    values = []
    unit = "hz"
    for number, suffix in reversed(bounds):
        unit = suffix.lower() or unit
        value = _to_number(number) * FREQUENCY_SCALE[unit]
        values.append(int(value) if float(value).is_integer() else value)
    return max(values)


def _capacity_gb(text: str):
    """'2 TB' -> 2000, '512 GB' -> 512 (gigabytes)."""
    value = serialize_number(text)
    if value is None:
        return None
    upper = text.upper()
    if "TB" in upper:
        value = value * 1000
    elif "MB" in upper:
        value = value / 1000
    return int(value) if float(value).is_integer() else value


def _memory_speed(text: str):
    """'DDR5-6000' -> 6000."""
    match = re.search(r"-\s*(\d+)", text)
    if match:
        return int(match.group(1))
    return serialize_number(text)


def _memory_modules(text: str):
    """'2 x 16GB' -> 32 (total gigabytes)."""
    match = re.search(r"(\d+)\s*[x×]\s*(\d+(?:\.\d+)?)\s*(TB|GB|MB)?", text, re.IGNORECASE)
    if not match:
        return _capacity_gb(text)
    count = int(match.group(1))
    size = _capacity_gb(match.group(2) + (match.group(3) or "GB"))
    if size is None:
        return None
    return count * size


def _resolution(text: str) -> Optional[str]:
    """'2560 x 1440' -> '2560x1440'."""
    match = re.search(r"(\d+)\s*[x×]\s*(\d+)", text)
    if not match:
        return serialize_enum(text)
    return f"{match.group(1)}x{match.group(2)}"


def _efficiency(text: str) -> Optional[str]:
    """'80+ Gold' -> 'gold'; a bare '80+' is 'standard'."""
    value = serialize_enum(text)
    if value is None:
        return None
    tier = EFFICIENCY_PREFIX_RE.sub("", value).strip().lower()
    return tier or "standard"


CUSTOM_SERIALIZERS: Dict[Tuple[str, str], CustomSerializer] = {
    ("cpu", "integrated_graphics"): serialize_enum,
    ("cpu-cooler", "fan_rpm"): _range_upper,
    ("cpu-cooler", "noise_level"): _range_upper,
    ("motherboard", "memory_max"): _capacity_gb,
    ("memory", "speed"): _memory_speed,
    ("memory", "modules"): _memory_modules,
    ("internal-hard-drive", "capacity"): _capacity_gb,
    ("power-supply", "efficiency"): _efficiency,
    ("monitor", "resolution"): _resolution,
    ("headphones", "frequency_response"): _frequency_upper,
    ("speakers", "frequency_response"): _frequency_upper,
    ("case-fan", "rpm"): _range_upper,
    ("case-fan", "airflow"): _range_upper,
    ("case-fan", "noise_level"): _range_upper,
    ("external-hard-drive", "capacity"): _capacity_gb,
}


def custom_serialize(
    category: str,
    field_name: str,
    text: str,
    registry: Optional[Dict[Tuple[str, str], CustomSerializer]] = None,
) -> Value:
    """Dispatch to the custom serializer registered for (category, field_name).

    A missing registry entry is logged and yields None; this never raises.
    """
    registry = registry if registry is not None else CUSTOM_SERIALIZERS
    serializer = registry.get((category, field_name))
    if serializer is None:
        logger.warning(f"No custom serializer found for '{field_name}' in category '{category}'")
        return None
    return serializer(text)


def serialize_attribute(
    category: str,
    mapping: AttributeMapping,
    raw_value: Optional[str],
    registry: Optional[Dict[Tuple[str, str], CustomSerializer]] = None,
) -> Value:
    """Serialize one attribute cell. Empty cells become None."""
    if raw_value is None or not raw_value.strip():
        return None
    if mapping.kind == SerializationKind.CUSTOM:
        return custom_serialize(category, mapping.field_name, raw_value, registry)
    return generic_serialize(raw_value, mapping.kind)


def build_record(
    category: str,
    name: str,
    price_text: Optional[str],
    raw_specs: Iterable[Tuple[str, Optional[str]]],
    item_index: int = 0,
    table: Optional[SerializationMap] = None,
    registry: Optional[Dict[Tuple[str, str], CustomSerializer]] = None,
) -> Record:
    """Assemble one record from the raw texts of a catalog item.

    Args:
        category: Category the item belongs to
        name: Item name as displayed
        price_text: Raw price cell text, may be empty or None
        raw_specs: (label, value) pairs in display order
        item_index: Position of the item on its page, for log context
        table: Serialization map (default: process-wide map)
        registry: Custom serializer registry (default: CUSTOM_SERIALIZERS)

    Unmapped labels are logged and left out of the record.
    """
    record: Record = {
        "name": serialize_string(name),
        "price": serialize_number(price_text) if price_text else None,
    }

    for raw_label, raw_value in raw_specs:
        mapping = resolve(category, raw_label, table)
        if mapping is None:
            log_scrape_event(
                "unknown_spec",
                {
                    "message": f"Unknown spec '{raw_label}' for category '{category}'. Skipping...",
                    "category": category,
                    "label": raw_label,
                    "item_index": item_index,
                },
                level=logging.WARNING,
                logger_name="serializers",
            )
            continue
        record[mapping.field_name] = serialize_attribute(category, mapping, raw_value, registry)

    return record
