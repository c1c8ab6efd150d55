"""
Conversion of raw attribute values into each type's native shape.

Raw values arrive from forms, tools and the backend as loosely typed data
(strings from inputs, numbers as strings, JSON as text). Every conversion
happens here, at the boundary, so renderers and validators only ever see
native values:

- numeric types   -> int | float | None
- boolean         -> True | False | None
- date / datetime -> ISO 8601 strings, time -> "HH:MM" or "HH:MM:SS"
- list-like types -> list
- object / json   -> dict
- everything else -> str
"""

import json
import math
from datetime import date, datetime, time
from enum import Enum
from typing import Any, List, Optional, Union

from .models import AttributeType


class ValueCategory(str, Enum):
    """Coarse value shape shared by several attribute types."""

    TEXT = "text"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    TEMPORAL = "temporal"
    CHOICE = "choice"
    COMPOSITE = "composite"
    FILE = "file"


_CATEGORIES = {
    AttributeType.NUMBER: ValueCategory.NUMERIC,
    AttributeType.INTEGER: ValueCategory.NUMERIC,
    AttributeType.DECIMAL: ValueCategory.NUMERIC,
    AttributeType.RATING: ValueCategory.NUMERIC,
    AttributeType.BOOLEAN: ValueCategory.BOOLEAN,
    AttributeType.DATE: ValueCategory.TEMPORAL,
    AttributeType.DATETIME: ValueCategory.TEMPORAL,
    AttributeType.TIME: ValueCategory.TEMPORAL,
    AttributeType.SELECT: ValueCategory.CHOICE,
    AttributeType.MULTISELECT: ValueCategory.CHOICE,
    AttributeType.TABLE: ValueCategory.COMPOSITE,
    AttributeType.OBJECT: ValueCategory.COMPOSITE,
    AttributeType.ARRAY: ValueCategory.COMPOSITE,
    AttributeType.JSON: ValueCategory.COMPOSITE,
    AttributeType.FILE: ValueCategory.FILE,
    AttributeType.IMAGE: ValueCategory.FILE,
    AttributeType.ATTACHMENT: ValueCategory.FILE,
}

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def category_for(attribute_type: Any) -> ValueCategory:
    parsed = AttributeType.parse(attribute_type)
    return _CATEGORIES.get(parsed, ValueCategory.TEXT)


def is_empty(value: Any) -> bool:
    """True for None, blank strings and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def to_number(raw: Any, integer: bool = False) -> Optional[Union[int, float]]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        number = raw
    else:
        text = str(raw).strip().replace(",", ".")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if isinstance(number, float) and not math.isfinite(number):
        return None
    if integer:
        return int(number)
    if isinstance(number, float) and number.is_integer() and "." not in str(raw):
        return int(number)
    return number


def to_bool(raw: Any) -> Optional[bool]:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    text = str(raw).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return None


def parse_date(raw: Any) -> Optional[date]:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_datetime(raw: Any) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def to_iso_date(raw: Any) -> Optional[str]:
    parsed = parse_date(raw)
    return parsed.isoformat() if parsed else None


def to_iso_datetime(raw: Any) -> Optional[str]:
    parsed = parse_datetime(raw)
    return parsed.isoformat() if parsed else None


def to_time(raw: Any) -> Optional[str]:
    if isinstance(raw, time):
        return raw.isoformat()
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return time.fromisoformat(raw.strip()).isoformat()
    except ValueError:
        return None


def to_list(raw: Any) -> List[Any]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set)):
        return list(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return parsed
        return [item.strip() for item in text.split(",") if item.strip()]
    return [raw]


def to_dict(raw: Any) -> Optional[dict]:
    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def to_text(raw: Any) -> str:
    if raw is None:
        return ""
    return raw if isinstance(raw, str) else str(raw)


def coerce_value(attribute_type: Any, raw: Any) -> Any:
    """Convert ``raw`` to the native value shape of ``attribute_type``.

    Unknown types are treated as text.
    """
    parsed = AttributeType.parse(attribute_type) or AttributeType.TEXT

    if parsed == AttributeType.INTEGER:
        return to_number(raw, integer=True)
    if parsed in (AttributeType.NUMBER, AttributeType.DECIMAL, AttributeType.RATING):
        return to_number(raw)
    if parsed == AttributeType.BOOLEAN:
        return to_bool(raw)
    if parsed == AttributeType.DATE:
        return to_iso_date(raw)
    if parsed == AttributeType.DATETIME:
        return to_iso_datetime(raw)
    if parsed == AttributeType.TIME:
        return to_time(raw)
    if parsed in (
        AttributeType.MULTISELECT,
        AttributeType.ARRAY,
        AttributeType.ATTACHMENT,
    ):
        return to_list(raw)
    if parsed == AttributeType.TABLE:
        rows = to_list(raw)
        return [to_list(row) for row in rows]
    if parsed == AttributeType.OBJECT:
        return to_dict(raw)
    if parsed == AttributeType.JSON:
        if isinstance(raw, (dict, list)) or raw is None:
            return raw
        converted = to_dict(raw)
        return converted if converted is not None else to_text(raw)
    if parsed in (AttributeType.FILE, AttributeType.IMAGE):
        return raw if raw not in ("", None) else None
    return to_text(raw)


def default_value_for(attribute_type: Any) -> Any:
    """Initial value for a freshly created attribute of this type."""
    parsed = AttributeType.parse(attribute_type)
    if parsed in (AttributeType.NUMBER, AttributeType.INTEGER, AttributeType.DECIMAL):
        return 0
    if parsed == AttributeType.RATING:
        return 0
    if parsed == AttributeType.BOOLEAN:
        return False
    if parsed == AttributeType.DATE:
        return date.today().isoformat()
    if parsed == AttributeType.DATETIME:
        return datetime.now().isoformat()
    if parsed == AttributeType.TIME:
        return datetime.now().time().replace(microsecond=0).isoformat()
    if parsed in (
        AttributeType.MULTISELECT,
        AttributeType.ATTACHMENT,
        AttributeType.ARRAY,
        AttributeType.TABLE,
    ):
        return []
    if parsed in (AttributeType.OBJECT, AttributeType.JSON):
        return {}
    if parsed in (AttributeType.FILE, AttributeType.IMAGE):
        return None
    if parsed == AttributeType.COLOR:
        return "#000000"
    if parsed is None:
        return None
    return ""
