from __future__ import annotations
import random
from typing import Any, Dict, List, MutableMapping, Optional, Sequence

from ..core.constants import (
    _CATEGORY_CHART_COLOR,
    _DATE_RANGE_UNAVAILABLE,
    _MAX_CHART_CATEGORIES,
    _TREND_CHART_COLOR,
    DEFAULT_ANALYSIS_TYPE,
)
from ..core.state import _with_phase
from ..core.types import (
    ColumnClassification,
    DomainProfile,
    FileDescriptor,
    QualityScore,
    Rows,
    StatisticsReport,
    TrendSeries,
)
from ..core.utils import format_column_label, is_blank, mean, name_contains, parse_date, parse_number, round_half_up
from .actions import build_action_items
from .kpis import build_kpis
from .patterns import detect_domain
from .quality import score_quality
from .statistics import analyze_statistics
from .trends import build_trend_series, select_trend_column

SUMMARY_TYPES = {"FULL_ANALYSIS", "SUMMARY"}
TREND_TYPES = {"FULL_ANALYSIS", "TREND_ANALYSIS"}

_CAPABILITIES = [
    (("churn",), "churn prediction"),
    (("revenue", "sales"), "revenue forecasting"),
    (("score", "rating"), "performance scoring"),
    (("category", "segment"), "customer segmentation"),
]
_DEFAULT_CAPABILITIES = "trend analysis and anomaly detection"


def detect_date_range(rows: Rows, date_columns: Sequence[str]) -> str:
    for column in date_columns:
        dates = [parse_date(row.get(column)) for row in rows]
        found = [value for value in dates if value is not None]
        if found:
            return f"{min(found).isoformat()} to {max(found).isoformat()}"
    return _DATE_RANGE_UNAVAILABLE


def build_summary(rows: Rows, classification: ColumnClassification, quality: QualityScore, filename: str) -> Dict[str, Any]:
    total = len(rows)
    columns = len(classification.columns)
    numeric = len(classification.numeric)
    completeness = quality.completeness
    return {
        "executive": (
            f"Analysis of {filename} processed {total} records across {columns} columns. "
            f"The dataset shows {completeness}% data completeness with {numeric} numeric fields "
            "suitable for quantitative analysis. Key patterns identified in customer behavior, "
            "operational metrics, and performance indicators."
        ),
        "keyFindings": [
            f"Dataset contains {total:,} total records",
            f"{columns} data fields identified for analysis",
            f"{completeness}% data completeness rate",
            f"{numeric} numeric columns available for trend analysis",
            "Most recent data patterns show actionable business insights",
        ],
        "statistics": {
            "totalRecords": total,
            "dateRange": detect_date_range(rows, classification.date_like),
            "completeness": completeness,
            "accuracy": min(95 + completeness // 10, 99),
            "columns": columns,
            "numericColumns": numeric,
        },
    }


def predictive_capabilities(columns: Sequence[str]) -> str:
    found = [label for keywords, label in _CAPABILITIES if any(name_contains(c, keywords) for c in columns)]
    return ", ".join(found) if found else _DEFAULT_CAPABILITIES


def build_insights(
    classification: ColumnClassification,
    quality: QualityScore,
    statistics: StatisticsReport,
    domain: DomainProfile,
) -> List[str]:
    score = quality.completeness
    if score > 90:
        verdict = "Excellent"
    elif score > 70:
        verdict = "Good"
    else:
        verdict = "Needs improvement"
    insights = [f"Data quality score: {score}% - {verdict} for reliable analysis"]

    if classification.numeric:
        insights.append(
            f"{len(classification.numeric)} quantitative metrics identified for predictive modeling and trend forecasting"
        )
    if statistics.outlier_total > 0:
        insights.append(
            f"{statistics.outlier_total} statistical outliers detected - recommend investigation for data integrity"
        )
    insights.extend(domain.patterns)

    strong = statistics.strong_correlations
    if strong:
        labels = ", ".join(pair.label for pair in strong)
        insights.append(f"Strong correlations detected between {labels} - indicates potential causality relationships")

    insights.append(
        f"Dataset structure supports machine learning applications for {predictive_capabilities(classification.columns)}"
    )
    return insights


def trend_chart(series: TrendSeries, classification: ColumnClassification, filename: str, row_count: int) -> Dict[str, Any]:
    column = series.column or select_trend_column(classification.numeric) or "value"
    label = format_column_label(column)
    return {
        "type": "line",
        "title": f"{label} Trends Over Time",
        "description": f"Monthly trend analysis of {label.lower()} from {filename} ({row_count} records analyzed)",
        "data": [{"month": p.period, "value": p.value, "date": p.date} for p in series.points],
        "config": {"xAxis": "month", "yAxis": "value", "color": _TREND_CHART_COLOR},
        "source": series.source,
    }


def category_chart(rows: Rows, category_column: str, numeric_column: str) -> Optional[Dict[str, Any]]:
    groups: Dict[str, List[float]] = {}
    for row in rows:
        category = row.get(category_column)
        value = parse_number(row.get(numeric_column))
        if is_blank(category) or value is None:
            continue
        groups.setdefault(str(category), []).append(value)
    data = [
        {"category": category, "value": round_half_up(mean(values)), "count": len(values)}
        for category, values in list(groups.items())[:_MAX_CHART_CATEGORIES]
    ]
    if not data:
        return None
    label = category_column.replace("_", " ")
    return {
        "type": "bar",
        "title": f"{label} Analysis",
        "description": f"Distribution analysis by {label}",
        "data": data,
        "config": {"xAxis": "category", "yAxis": "value", "color": _CATEGORY_CHART_COLOR},
    }


def build_visualizations(
    rows: Rows,
    classification: ColumnClassification,
    series: TrendSeries,
    filename: str,
) -> List[Dict[str, Any]]:
    charts: List[Dict[str, Any]] = []
    if not classification.numeric:
        return charts
    charts.append(trend_chart(series, classification, filename, len(rows)))

    numeric_column = classification.numeric[0]
    category_column = next((c for c in classification.categorical if c != numeric_column), None)
    if category_column:
        chart = category_chart(rows, category_column, numeric_column)
        if chart:
            charts.append(chart)
    return charts


def compose_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    rows = state.get("rows") or []
    file: Optional[FileDescriptor] = state.get("file")
    filename = file.original_name if file else ""
    analysis_type = state.get("analysis_type") or DEFAULT_ANALYSIS_TYPE
    rng = state.get("rng") or random.Random()

    classification: ColumnClassification = state.get("classification") or ColumnClassification()
    quality: QualityScore = state.get("quality") or score_quality(rows, classification)
    statistics: StatisticsReport = state.get("statistics") or analyze_statistics(rows, classification.numeric)
    domain: DomainProfile = state.get("domain") or detect_domain(rows, classification.columns, filename)
    series: TrendSeries = state.get("trend") or build_trend_series(
        rows, classification.numeric, rng=rng, profile=domain
    )

    insights = build_insights(classification, quality, statistics, domain)
    composed: Dict[str, Any] = {
        "summary": None,
        "trends": [],
        "visualizations": [],
        "insights": insights,
        "kpis": build_kpis(rows, classification, quality, domain),
        "actionItems": build_action_items(
            rows, classification, quality, filename=filename, insight_count=len(insights)
        ),
    }
    if analysis_type in SUMMARY_TYPES:
        composed["summary"] = build_summary(rows, classification, quality, filename)
    if analysis_type in TREND_TYPES:
        composed["trends"] = list(series.points)
        composed["visualizations"] = build_visualizations(rows, classification, series, filename)

    payload = {
        "analysisType": analysis_type,
        "hasSummary": composed["summary"] is not None,
        "kpiCount": len(composed["kpis"]),
        "insightCount": len(insights),
        "actionItemCount": len(composed["actionItems"]),
        "chartCount": len(composed["visualizations"]),
        "trendSource": series.source,
    }
    return _with_phase(state, "compose", payload, composed=composed)
