"""Roast shape normalization.

A roast stored in a passport comes in one of two shapes:

* the current shape, ``{"entries": [entry, ...]}``;
* the legacy shape, a single flat entry with no ``entries`` list and
  possibly no ``id``.

``normalize_roast`` turns either into the current shape. ``sanitize_entry_fields``
is the one place where entry defaults are filled in, so stored entries never
carry ``None`` for a string, boolean or rating field.
"""

import enum
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional, Union

STRING_FIELDS = (
    "brew_method",
    "grind_notes",
    "grinder_setting",
    "brew_recipe",
    "notes",
    "outcome",
)
BOOLEAN_FIELDS = ("grinding_from_whole_bean",)
NUMBER_FIELDS = ("rating",)
ENTRY_FIELDS = STRING_FIELDS + BOOLEAN_FIELDS + NUMBER_FIELDS


def utc_now_iso() -> str:
    """Current UTC time as ``2025-01-31T09:15:02.123Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RoastShape(enum.Enum):
    EMPTY = "empty"
    ENTRIES = "entries"
    LEGACY = "legacy"


def classify_roast(raw: Any) -> RoastShape:
    if raw is None or not isinstance(raw, Mapping):
        return RoastShape.EMPTY
    if isinstance(raw.get("entries"), list):
        return RoastShape.ENTRIES
    return RoastShape.LEGACY


def _coerce_string(value: Any) -> str:
    if not value:
        return ""
    return value if isinstance(value, str) else str(value)


def _coerce_number(value: Any) -> Union[int, float]:
    if not value:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        number = float(value if isinstance(value, float) else str(value).strip())
    except ValueError:
        return 0
    if not math.isfinite(number):
        return 0
    return int(number) if number.is_integer() else number


def sanitize_entry_fields(data: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    data = data or {}
    fields: dict[str, Any] = {}
    for name in STRING_FIELDS:
        fields[name] = _coerce_string(data.get(name))
    for name in BOOLEAN_FIELDS:
        fields[name] = bool(data.get(name))
    for name in NUMBER_FIELDS:
        fields[name] = _coerce_number(data.get(name))
    return fields


def _entry_from_legacy(raw: Mapping[str, Any], now: str) -> dict[str, Any]:
    created_at = raw.get("created_at") or now
    entry = {
        "id": _coerce_string(raw.get("id")) or now,
        "created_at": created_at,
        "updated_at": raw.get("updated_at") or created_at,
    }
    entry.update(sanitize_entry_fields(raw))
    return entry


def normalize_roast(raw: Any, now: Optional[str] = None) -> dict[str, list]:
    shape = classify_roast(raw)
    if shape is RoastShape.ENTRIES:
        return {"entries": list(raw["entries"])}
    if shape is RoastShape.LEGACY:
        return {"entries": [_entry_from_legacy(raw, now or utc_now_iso())]}
    return {"entries": []}
