"""
Field-level normalisation rules for the Cleaner Agent.
"""

import re
from typing import Any

from src.core.utils.values import is_blank, parse_date, to_number

CURRENCY_KEYWORDS = ("amount", "price", "cost", "fee", "balance", "total", "payment")
DATE_KEYWORDS = ("date", "time", "created", "updated", "timestamp")

_IDENTIFIER_PATTERN = re.compile(r"(^|[_\s])id$")
_BOOLEAN_FIELD_PATTERN = re.compile(r"^(is_|has_|active|enabled|verified|confirmed)|status|flag")
_CURRENCY_NOISE = re.compile(r"[$£€¥,\s]")

_TRUE_TOKENS = {"true", "yes", "y", "1", "on", "active", "enabled"}
_FALSE_TOKENS = {"false", "no", "n", "0", "off", "inactive", "disabled"}


def is_currency_field(header: str) -> bool:
    return any(keyword in header.lower() for keyword in CURRENCY_KEYWORDS)


def is_date_field(header: str) -> bool:
    return any(keyword in header.lower() for keyword in DATE_KEYWORDS)


def is_identifier_field(header: str) -> bool:
    return bool(_IDENTIFIER_PATTERN.search(header.lower()))


def is_gender_field(header: str) -> bool:
    lowered = header.lower()
    return "gender" in lowered or lowered == "sex"


def is_boolean_field(header: str) -> bool:
    return bool(_BOOLEAN_FIELD_PATTERN.search(header.lower()))


def normalize_text_value(value: str) -> str:
    """Trim, collapse inner whitespace and title-case."""
    collapsed = re.sub(r"\s+", " ", value.strip()).lower()
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), collapsed)


def standardize_currency_value(value: Any) -> float | None:
    """Strip currency symbols and separators; accounting parentheses mean a negative amount."""
    number = to_number(value)
    if number is not None:
        return number
    if not isinstance(value, str):
        return None

    text = _CURRENCY_NOISE.sub("", value)
    negative = text.startswith("(") and text.endswith(")")
    number = to_number(text.strip("()"))
    if number is None:
        return None
    return -abs(number) if negative else number


def validate_date_value(value: Any, formats: list[str] | None = None) -> str:
    """Return the date as YYYY-MM-DD, or an empty string when it cannot be parsed."""
    parsed = parse_date(value, formats)
    return parsed.isoformat() if parsed else ""


def normalize_gender(value: Any) -> str:
    token = str(value).strip().lower()
    if token in {"m", "male", "man", "boy"}:
        return "M"
    if token in {"f", "female", "woman", "girl"}:
        return "F"
    if token in {"o", "other", "non-binary", "nb"}:
        return "O"
    return "U"


def normalize_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    token = str(value).strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


def fill_missing(rows: list[dict[str, Any]], headers: list[str], strategy: str) -> tuple[list[dict[str, Any]], int]:
    """
    Fill blank cells column by column.

    Returns the filled copy of the rows and the number of cells filled.
    """
    filled_rows = [dict(row) for row in rows]
    filled_count = 0

    for header in headers:
        present = [row.get(header) for row in filled_rows if not is_blank(row.get(header))]
        if not present:
            continue
        numbers = sorted(n for n in (to_number(v) for v in present) if n is not None)

        for index, row in enumerate(filled_rows):
            if not is_blank(row.get(header)):
                continue

            fill_value: Any = None
            if strategy == "mean" and numbers:
                fill_value = sum(numbers) / len(numbers)
            elif strategy == "median" and numbers:
                fill_value = numbers[len(numbers) // 2]
            elif strategy == "forward":
                fill_value = filled_rows[index - 1].get(header) if index > 0 else present[0]
            elif strategy == "backward":
                following = [r.get(header) for r in filled_rows[index + 1 :] if not is_blank(r.get(header))]
                fill_value = following[0] if following else present[-1]

            if not is_blank(fill_value):
                row[header] = fill_value
                filled_count += 1

    return filled_rows, filled_count
