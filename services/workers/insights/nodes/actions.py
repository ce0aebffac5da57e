from __future__ import annotations
import time
from collections import Counter
from typing import List, Optional

from ..core.constants import (
    _CATEGORY_IMBALANCE_RATIO,
    _CATEGORY_IMBALANCE_TOP,
    _COMPLETENESS_ACTION_THRESHOLD,
    _LARGE_DATASET_ROWS,
    _MAX_ACTION_ITEMS,
    _RANGE_OUTLIER_SHARE,
    _SMALL_DATASET_ROWS,
)
from ..core.types import (
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    ActionItem,
    ColumnClassification,
    QualityScore,
    Rows,
)
from ..core.utils import is_blank, mean, numeric_values, round_half_up


def _action_id(kind: str, now_ms: int) -> str:
    return f"action_{kind}_{now_ms}"


def data_quality_item(quality: QualityScore, now_ms: int) -> Optional[ActionItem]:
    incomplete = [
        (column, share)
        for column, share in quality.column_completeness.items()
        if share < _COMPLETENESS_ACTION_THRESHOLD
    ]
    if not incomplete:
        return None
    names = ", ".join(column for column, _ in incomplete[:3])
    if len(incomplete) > 3:
        names += "..."
    average = mean([share for _, share in incomplete])
    return ActionItem(
        id=_action_id("data_quality", now_ms),
        title="Improve Data Collection Quality",
        description=(
            f"Address missing data in {len(incomplete)} columns ({names}). "
            f"Current completeness: {round_half_up(average)}%"
        ),
        priority=PRIORITY_HIGH,
        category="Data Quality",
        estimated_impact=f"{round_half_up(100 - average)}% data quality improvement",
        timeline="1-2 weeks",
    )


def numeric_items(rows: Rows, column: str, now_ms: int) -> List[ActionItem]:
    """Outlier and variability follow-ups for one numeric column.

    Outliers here are values in the outer thirds of the distance between the
    mean and each extreme.
    """
    values = numeric_values(rows, column)
    if not values:
        return []
    average = mean(values)
    high, low = max(values), min(values)
    items: List[ActionItem] = []

    outliers = [
        value
        for value in values
        if value > average + 2 * (high - average) / 3 or value < average - 2 * (average - low) / 3
    ]
    if len(outliers) > len(values) * _RANGE_OUTLIER_SHARE:
        share = round_half_up(len(outliers) / len(values) * 100)
        items.append(
            ActionItem(
                id=_action_id("outliers", now_ms),
                title=f"Investigate {column} Outliers",
                description=(
                    f"Analyze {len(outliers)} outlier values in {column} ({share}% of data). "
                    "These may indicate data entry errors or exceptional cases requiring special attention."
                ),
                priority=PRIORITY_MEDIUM,
                category="Data Analysis",
                estimated_impact="Improved data accuracy and insights",
                timeline="2-3 weeks",
            )
        )

    if high - low > average * 2:
        items.append(
            ActionItem(
                id=_action_id("variability", now_ms),
                title=f"Address High {column} Variability",
                description=(
                    f"High variance detected in {column} (range: {round_half_up(low)} to {round_half_up(high)}). "
                    "Consider segmentation strategies or process standardization."
                ),
                priority=PRIORITY_MEDIUM,
                category="Process Improvement",
                estimated_impact="Reduced variability and improved predictability",
                timeline="4-6 weeks",
            )
        )
    return items


def category_balance_item(rows: Rows, column: str, now_ms: int) -> Optional[ActionItem]:
    counts = Counter(str(row.get(column)) for row in rows if not is_blank(row.get(column)))
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:_CATEGORY_IMBALANCE_TOP]
    if not ranked:
        return None
    (top_name, top_count), (bottom_name, bottom_count) = ranked[0], ranked[-1]
    if top_count <= bottom_count * _CATEGORY_IMBALANCE_RATIO:
        return None
    return ActionItem(
        id=_action_id("category_balance", now_ms),
        title=f"Balance {column} Distribution",
        description=(
            f'Significant imbalance in {column}: "{top_name}" has {top_count} records vs '
            f'"{bottom_name}" with {bottom_count} records. Consider strategies to balance representation.'
        ),
        priority=PRIORITY_LOW,
        category="Strategy",
        estimated_impact="More balanced insights and representation",
        timeline="6-8 weeks",
    )


def dataset_size_item(row_count: int, now_ms: int) -> Optional[ActionItem]:
    if row_count < _SMALL_DATASET_ROWS:
        return ActionItem(
            id=_action_id("sample_size", now_ms),
            title="Increase Sample Size",
            description=(
                f"Current dataset has {row_count} records. For more robust analysis and statistical "
                "significance, consider collecting additional data points."
            ),
            priority=PRIORITY_MEDIUM,
            category="Data Collection",
            estimated_impact="More reliable statistical insights",
            timeline="3-4 weeks",
        )
    if row_count > _LARGE_DATASET_ROWS:
        return ActionItem(
            id=_action_id("data_efficiency", now_ms),
            title="Optimize Large Dataset Processing",
            description=(
                f"Dataset contains {row_count} records. Consider implementing data sampling techniques "
                "or distributed processing for improved performance."
            ),
            priority=PRIORITY_LOW,
            category="Performance",
            estimated_impact="Faster analysis and reduced processing costs",
            timeline="4-6 weeks",
        )
    return None


def review_item(filename: str, insight_count: int, now_ms: int) -> ActionItem:
    return ActionItem(
        id=_action_id("insights_review", now_ms),
        title=f"Review Analysis of {filename}",
        description=(
            f"Conduct detailed review of the analysis results from {filename}. {insight_count} key insights "
            "were identified that require stakeholder evaluation and potential action planning."
        ),
        priority=PRIORITY_HIGH,
        category="Review",
        estimated_impact="Actionable business decisions",
        timeline="1 week",
    )


def build_action_items(
    rows: Rows,
    classification: ColumnClassification,
    quality: QualityScore,
    *,
    filename: str,
    insight_count: int,
    now_ms: Optional[int] = None,
) -> List[ActionItem]:
    """Conditional follow-ups in priority order, always closed by the review item."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    candidates: List[Optional[ActionItem]] = [data_quality_item(quality, now_ms)]
    if classification.numeric:
        candidates.extend(numeric_items(rows, classification.numeric[0], now_ms))
    if classification.categorical:
        candidates.append(category_balance_item(rows, classification.categorical[0], now_ms))
    candidates.append(dataset_size_item(len(rows), now_ms))

    conditional = [item for item in candidates if item is not None]
    return conditional[:_MAX_ACTION_ITEMS - 1] + [review_item(filename, insight_count, now_ms)]
