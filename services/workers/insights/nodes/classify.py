from __future__ import annotations
from typing import Any, Dict, List, MutableMapping

from ..core.constants import (
    _CATEGORICAL_DISTINCT_RATIO,
    _CATEGORICAL_MAX_DISTINCT,
    _CLASSIFY_SAMPLE_ROWS,
    _DATE_SHARE_THRESHOLD,
    _NUMERIC_SHARE_THRESHOLD,
)
from ..core.state import _with_phase
from ..core.types import (
    KIND_CATEGORICAL,
    KIND_DATE_LIKE,
    KIND_NUMERIC,
    KIND_UNCLASSIFIED,
    ColumnClassification,
    ColumnProfile,
    Rows,
)
from ..core.utils import collect_columns, is_blank, is_date_like, parse_number


def _distinct_key(value: Any) -> Any:
    # 1 and "1" are different values; 1 and 1.0 are not.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return ("number", float(value))
    return (type(value).__name__, str(value))


def _is_numeric(values: List[Any]) -> bool:
    if not values:
        return False
    parsed = sum(1 for value in values if parse_number(value) is not None)
    return parsed / len(values) >= _NUMERIC_SHARE_THRESHOLD


def _is_categorical(values: List[Any]) -> bool:
    distinct = len({_distinct_key(value) for value in values})
    return 1 < distinct <= _CATEGORICAL_MAX_DISTINCT and distinct < len(values) * _CATEGORICAL_DISTINCT_RATIO


def _is_date_like(values: List[Any]) -> bool:
    if not values:
        return False
    dated = sum(1 for value in values if is_date_like(value))
    return dated / len(values) >= _DATE_SHARE_THRESHOLD


def classify_columns(rows: Rows) -> ColumnClassification:
    """Split the columns of ``rows`` into numeric, categorical and date-like sets.

    Only the first rows are sampled. A column can be both numeric and
    categorical (e.g. a 0/1 flag); date-like never overlaps numeric.
    """
    columns = collect_columns(rows)
    if not rows or not columns:
        return ColumnClassification()

    sample = rows[:_CLASSIFY_SAMPLE_ROWS]
    numeric: List[str] = []
    categorical: List[str] = []
    date_like: List[str] = []
    profiles: List[ColumnProfile] = []

    for column in columns:
        values = [row.get(column) for row in sample]
        present = [value for value in values if not is_blank(value)]

        is_numeric = _is_numeric(present)
        is_categorical = _is_categorical(present)
        is_dated = not is_numeric and _is_date_like(present)

        if is_numeric:
            numeric.append(column)
            kind = KIND_NUMERIC
        elif is_dated:
            date_like.append(column)
            kind = KIND_DATE_LIKE
        elif is_categorical:
            kind = KIND_CATEGORICAL
        else:
            kind = KIND_UNCLASSIFIED
        if is_categorical:
            categorical.append(column)

        profiles.append(
            ColumnProfile(
                name=column,
                kind=kind,
                non_null_ratio=len(present) / len(values) if values else 0.0,
                sample_size=len(values),
            )
        )

    return ColumnClassification(
        columns=columns,
        numeric=numeric,
        categorical=categorical,
        date_like=date_like,
        profiles=profiles,
    )


def classify_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    rows = state.get("rows") or []
    classification = classify_columns(rows)
    return _with_phase(state, "classify", classification.to_dict(), classification=classification)
