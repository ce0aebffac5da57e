from __future__ import annotations
import math
from typing import Any, Dict, List, MutableMapping, Optional, Sequence

from ..core.constants import (
    _CORRELATION_LEFT_COLUMNS,
    _CORRELATION_MIN_PAIRS,
    _CORRELATION_RIGHT_COLUMNS,
    _OUTLIER_MIN_VALUES,
    _OUTLIER_Z,
)
from ..core.state import _with_phase
from ..core.types import ColumnClassification, ColumnStats, CorrelationPair, Rows, StatisticsReport
from ..core.utils import fold_sum, mean, numeric_values, parse_number, population_stddev


def count_outliers(values: Sequence[float]) -> int:
    """Values more than three population standard deviations from the mean."""
    if len(values) < _OUTLIER_MIN_VALUES:
        return 0
    center = mean(values)
    spread = population_stddev(values, center)
    return sum(1 for value in values if abs(value - center) > _OUTLIER_Z * spread)


def pearson(rows: Rows, left: str, right: str) -> float:
    pairs = []
    for row in rows:
        x = parse_number(row.get(left))
        y = parse_number(row.get(right))
        if x is not None and y is not None:
            pairs.append((x, y))
    if len(pairs) < _CORRELATION_MIN_PAIRS:
        return 0.0

    n = len(pairs)
    sum_x = fold_sum(x for x, _ in pairs)
    sum_y = fold_sum(y for _, y in pairs)
    sum_xy = fold_sum(x * y for x, y in pairs)
    sum_xx = fold_sum(x * x for x, _ in pairs)
    sum_yy = fold_sum(y * y for _, y in pairs)

    numerator = n * sum_xy - sum_x * sum_y
    spread = (n * sum_xx - sum_x * sum_x) * (n * sum_yy - sum_y * sum_y)
    if spread <= 0:
        return 0.0
    denominator = math.sqrt(spread)
    if denominator == 0:
        return 0.0
    return numerator / denominator


def correlation_pairs(rows: Rows, numeric_columns: Sequence[str]) -> List[CorrelationPair]:
    pairs: List[CorrelationPair] = []
    if len(numeric_columns) < 2:
        return pairs
    for i in range(min(_CORRELATION_LEFT_COLUMNS, len(numeric_columns))):
        for j in range(i + 1, min(_CORRELATION_RIGHT_COLUMNS, len(numeric_columns))):
            left, right = numeric_columns[i], numeric_columns[j]
            pairs.append(CorrelationPair(left=left, right=right, coefficient=pearson(rows, left, right)))
    return pairs


def describe_column(rows: Rows, column: str) -> Optional[ColumnStats]:
    values = numeric_values(rows, column)
    if not values:
        return None
    center = mean(values)
    return ColumnStats(
        name=column,
        count=len(values),
        total=fold_sum(values),
        mean=center,
        min_value=min(values),
        max_value=max(values),
        stddev=population_stddev(values, center),
    )


def analyze_statistics(rows: Rows, numeric_columns: Sequence[str]) -> StatisticsReport:
    outliers: Dict[str, int] = {}
    column_stats: Dict[str, ColumnStats] = {}
    for column in numeric_columns:
        outliers[column] = count_outliers(numeric_values(rows, column))
        stats = describe_column(rows, column)
        if stats is not None:
            column_stats[column] = stats
    return StatisticsReport(
        outliers=outliers,
        correlations=correlation_pairs(rows, numeric_columns),
        column_stats=column_stats,
    )


def statistics_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    rows = state.get("rows") or []
    classification: ColumnClassification = state.get("classification") or ColumnClassification()
    report = analyze_statistics(rows, classification.numeric)
    return _with_phase(state, "statistics", report.to_dict(), statistics=report)
