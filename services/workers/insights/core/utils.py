from __future__ import annotations
import math
import operator
import re
from datetime import date
from functools import reduce
from typing import Any, Iterable, List, Optional, Sequence

import pandas as pd

from .types import Rows

_NUMERIC_LITERAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_NUMERIC_PREFIX = re.compile(r"^-?(\d+\.?\d*|\.\d+)")
_NUMBER_NOISE = re.compile(r"[$€£¥,%\s]")
_TREND_NOISE = re.compile(r"[$,\s%]")
_NON_NUMERIC_CHARS = re.compile(r"[^\d.-]")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}|\d{2}/\d{2}/\d{4}|\d{2}-\d{2}-\d{4}")


def is_blank(value: Any) -> bool:
    return value is None or value == ""


def _finite(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def parse_number(value: Any) -> Optional[float]:
    """Parse a cell as a finite number after dropping currency, comma, percent and whitespace."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _finite(float(value))
    cleaned = _NUMBER_NOISE.sub("", str(value))
    if not _NUMERIC_LITERAL.match(cleaned):
        return None
    return _finite(float(cleaned))


def strip_to_number(value: Any) -> Optional[float]:
    """Lenient extraction used for trend series: keep digits, dots and minus signs, parse the leading number."""
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _finite(float(value))
    cleaned = _NON_NUMERIC_CHARS.sub("", _TREND_NOISE.sub("", str(value)))
    match = _NUMERIC_PREFIX.match(cleaned)
    if not match:
        return None
    return _finite(float(match.group(0)))


def numeric_values(rows: Rows, column: str) -> List[float]:
    parsed = (parse_number(row.get(column)) for row in rows)
    return [value for value in parsed if value is not None]


def collect_columns(rows: Rows) -> List[str]:
    seen: dict = {}
    for row in rows:
        for key in row.keys():
            seen.setdefault(str(key), None)
    return list(seen)


def fold_sum(values: Iterable[float]) -> float:
    return reduce(operator.add, values, 0.0)


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return fold_sum(values) / len(values)


def population_stddev(values: Sequence[float], center: Optional[float] = None) -> float:
    if not values:
        return 0.0
    mu = mean(values) if center is None else center
    return math.sqrt(fold_sum((value - mu) ** 2 for value in values) / len(values))


def round_half_up(value: float) -> int:
    """Round halves toward positive infinity."""
    return int(math.floor(value + 0.5))


def round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def parse_date(value: Any) -> Optional[date]:
    if is_blank(value) or isinstance(value, (bool, int, float)):
        return None
    text = str(value).strip()
    if not text or parse_number(text) is not None:
        return None
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def is_date_like(value: Any) -> bool:
    if is_blank(value) or isinstance(value, (bool, int, float)):
        return False
    if _DATE_PATTERN.search(str(value)):
        return True
    return parse_date(value) is not None


def format_column_label(name: str) -> str:
    spaced = re.sub(r"([A-Z])", r" \1", name).replace("_", " ")
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), spaced).strip()


def month_date(year: int, index: int) -> str:
    return f"{year}-{index + 1:02d}-01"


def name_contains(name: str, keywords: Iterable[str]) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in keywords)


def first_matching(columns: Sequence[str], keywords: Iterable[str]) -> Optional[str]:
    keywords = tuple(keywords)
    for column in columns:
        if name_contains(column, keywords):
            return column
    return None