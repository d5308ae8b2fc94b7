"""
Value helpers shared by the data agents.

Tabular payloads arrive as JSON, so numbers may be strings, dates are strings
in a handful of formats, and blanks can be None or empty strings.
"""

import math
import re
from datetime import date, datetime
from typing import Any

DEFAULT_DATE_FORMATS = ["%m/%d/%Y", "%d/%m/%Y", "%Y-%m-%d", "%m-%d-%Y", "%Y/%m/%d"]

_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def to_number(value: Any) -> float | None:
    """Return value as a float if it is numeric (or a numeric string), else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str) and _NUMBER_PATTERN.match(value.strip()):
        return float(value.strip())
    return None


def parse_date(value: Any, formats: list[str] | None = None) -> date | None:
    """Parse a date string using the given strptime formats, then ISO 8601."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    for fmt in formats or DEFAULT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp, falling back to a date at midnight."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            pass
    parsed = parse_date(value)
    return datetime(parsed.year, parsed.month, parsed.day) if parsed else None


def mean_and_std(values: list[float]) -> tuple[float, float]:
    """Mean and population standard deviation; (0.0, 0.0) for an empty list."""
    if not values:
        return 0.0, 0.0
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(variance)


def z_score(value: float, mean: float, std: float) -> float:
    if std == 0:
        return 0.0
    return abs((value - mean) / std)


def field_value(record: dict[str, Any], name: str) -> Any:
    """Look up a field by name, accepting the capitalised spelling as well."""
    if name in record:
        return record[name]
    return record.get(name.capitalize())
