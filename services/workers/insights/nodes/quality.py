from __future__ import annotations
from collections import Counter
from typing import Any, Dict, List, MutableMapping, Optional, Sequence

from ..core.constants import (
    _QUALITY_SAMPLE_ROWS,
    _VALIDITY_LONG_PENALTY,
    _VALIDITY_LONG_VALUE,
    _VALIDITY_SENTINEL_PENALTY,
    _VALIDITY_SENTINELS,
)
from ..core.state import _with_phase
from ..core.types import ColumnClassification, QualityScore, Rows
from ..core.utils import collect_columns, is_blank, mean, round_half_up


def _runtime_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def column_completeness(rows: Rows, columns: Sequence[str]) -> Dict[str, float]:
    """Percentage of rows holding a non-empty value, per column."""
    if not rows:
        return {column: 0.0 for column in columns}
    total = len(rows)
    return {
        column: sum(1 for row in rows if not is_blank(row.get(column))) / total * 100
        for column in columns
    }


def completeness_score(rows: Rows, columns: Sequence[str]) -> int:
    if not rows or not columns:
        return 0
    ratios = [share / 100 for share in column_completeness(rows, columns).values()]
    return round_half_up(100 * mean(ratios))


def consistency_score(rows: Rows, columns: Sequence[str]) -> int:
    """Lowest share of values agreeing with their column's majority runtime type."""
    sample = rows[:_QUALITY_SAMPLE_ROWS]
    lowest: Optional[float] = None
    for column in columns:
        types = Counter(
            _runtime_type(row.get(column)) for row in sample if not is_blank(row.get(column))
        )
        observed = sum(types.values())
        if not observed:
            continue
        share = max(types.values()) / observed
        lowest = share if lowest is None else min(lowest, share)
    if lowest is None:
        return 100
    return round_half_up(lowest * 100)


def validity_score(rows: Rows, columns: Sequence[str]) -> int:
    score = 100
    for row in rows[:_QUALITY_SAMPLE_ROWS]:
        for column in columns:
            value = row.get(column)
            if value is None:
                continue
            text = str(value)
            if len(text) > _VALIDITY_LONG_VALUE:
                score -= _VALIDITY_LONG_PENALTY
            if any(sentinel in text for sentinel in _VALIDITY_SENTINELS):
                score -= _VALIDITY_SENTINEL_PENALTY
    return max(score, 0)


def score_quality(rows: Rows, classification: Optional[ColumnClassification] = None) -> QualityScore:
    columns: List[str] = list(classification.columns) if classification else collect_columns(rows)
    completeness = completeness_score(rows, columns)
    consistency = consistency_score(rows, columns)
    validity = validity_score(rows, columns)
    return QualityScore(
        completeness=completeness,
        consistency=consistency,
        validity=validity,
        composite=round_half_up((completeness + consistency + validity) / 3),
        column_completeness=column_completeness(rows, columns),
    )


def quality_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    rows = state.get("rows") or []
    quality = score_quality(rows, state.get("classification"))
    return _with_phase(state, "quality", quality.to_dict(), quality=quality)
