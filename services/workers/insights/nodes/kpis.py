from __future__ import annotations
import math
from typing import Any, Callable, Dict, List, Sequence

from ..core.constants import _MAX_KPIS
from ..core.types import (
    TREND_DECREASING,
    TREND_INCREASING,
    TREND_STABLE,
    ColumnClassification,
    DomainProfile,
    KPIRecord,
    QualityScore,
    Rows,
)
from ..core.utils import (
    fold_sum,
    first_matching,
    is_blank,
    mean,
    numeric_values,
    parse_number,
    population_stddev,
    round_half_up,
)


def scale_category(row_count: int) -> str:
    if row_count > 100000:
        return "Big Data"
    if row_count > 10000:
        return "Large Dataset"
    if row_count > 1000:
        return "Medium Dataset"
    return "Small Dataset"


def dataset_scale_kpi(row_count: int) -> KPIRecord:
    if row_count > 10000:
        trend = TREND_INCREASING
    elif row_count > 1000:
        trend = TREND_STABLE
    else:
        trend = TREND_DECREASING
    return KPIRecord(
        name="Dataset Scale",
        value=row_count,
        unit="records",
        change=scale_category(row_count),
        trend=trend,
        change_percent=min(math.floor(row_count / 10000 * 100), 100),
        icon="Database",
    )


def quality_index_kpi(quality: QualityScore) -> KPIRecord:
    score = quality.composite
    if score > 90:
        change = "Excellent"
    elif score > 75:
        change = "Good"
    else:
        change = "Needs Review"
    return KPIRecord(
        name="Data Quality Index",
        value=score,
        unit="%",
        change=change,
        trend=TREND_INCREASING if score > 85 else TREND_STABLE,
        change_percent=score,
        icon="Target",
    )


def _is_churned(value: Any) -> bool:
    if isinstance(value, bool) or is_blank(value):
        return False
    if isinstance(value, (int, float)):
        return value == 1
    text = str(value).strip()
    return text.lower() == "yes" or text == "1"


def churn_kpis(rows: Rows, classification: ColumnClassification) -> List[KPIRecord]:
    kpis: List[KPIRecord] = []
    churn_column = first_matching(classification.columns, ("churn",))
    if churn_column and rows:
        churned = sum(1 for row in rows if _is_churned(row.get(churn_column)))
        rate = churned / len(rows) * 100
        if rate > 20:
            change = "High Risk"
        elif rate > 10:
            change = "Moderate"
        else:
            change = "Healthy"
        kpis.append(
            KPIRecord(
                name="Customer Churn Rate",
                value=round_half_up(rate),
                unit="%",
                change=change,
                trend=TREND_INCREASING if rate > 15 else TREND_STABLE,
                change_percent=round_half_up(rate),
                icon="Users",
            )
        )

    charge_column = next(
        (c for c in classification.columns if "monthly" in c.lower() and "charge" in c.lower()),
        None,
    )
    if charge_column and churn_column:
        at_risk = fold_sum(
            parse_number(row.get(charge_column)) or 0.0
            for row in rows
            if str(row.get(churn_column) or "").strip().lower() == "yes"
        )
        kpis.append(
            KPIRecord(
                name="Revenue at Risk",
                value=round_half_up(at_risk),
                unit="$",
                change="Monthly Loss",
                trend=TREND_DECREASING,
                change_percent=round_half_up(at_risk / 10000 * 100),
                icon="DollarSign",
            )
        )
    return kpis


def revenue_kpis(rows: Rows, classification: ColumnClassification) -> List[KPIRecord]:
    column = first_matching(classification.numeric, ("revenue", "sales", "amount"))
    if not column:
        return []
    revenues = numeric_values(rows, column)
    if not revenues:
        return []
    total = fold_sum(revenues)
    average = total / len(revenues)
    return [
        KPIRecord(
            name="Total Revenue",
            value=round_half_up(total),
            unit="$",
            change=f"Avg: ${round_half_up(average)}",
            trend=TREND_INCREASING,
            change_percent=85,
            icon="DollarSign",
        ),
        KPIRecord(
            name="Revenue per Customer",
            value=round_half_up(average),
            unit="$",
            change=f"{len(revenues)} customers",
            trend=TREND_INCREASING if average > 100 else TREND_STABLE,
            change_percent=min(round_half_up(average / 10), 100),
            icon="TrendingUp",
        ),
    ]


def engagement_kpis(rows: Rows, classification: ColumnClassification) -> List[KPIRecord]:
    column = first_matching(classification.numeric, ("session", "time", "duration"))
    if not column:
        return []
    sessions = numeric_values(rows, column)
    if not sessions:
        return []
    average = mean(sessions)
    return [
        KPIRecord(
            name="Avg Engagement Time",
            value=round_half_up(average),
            unit="min",
            change=f"{len(sessions)} sessions",
            trend=TREND_INCREASING if average > 30 else TREND_STABLE,
            change_percent=min(round_half_up(average / 2), 100),
            icon="Activity",
        )
    ]


def performance_score(rows: Rows, numeric_columns: Sequence[str]) -> int:
    scores = []
    for column in numeric_columns[:3]:
        values = numeric_values(rows, column)
        if not values:
            continue
        peak = max(values)
        scores.append(mean(values) / peak * 100 if peak > 0 else 50.0)
    return round_half_up(mean(scores)) if scores else 50


def diversity_index(rows: Rows, column: str) -> int:
    values = [row.get(column) for row in rows if not is_blank(row.get(column))]
    if not values:
        return 0
    return round_half_up(len({str(value) for value in values}) / len(values) * 100)


def generic_kpis(rows: Rows, classification: ColumnClassification) -> List[KPIRecord]:
    kpis: List[KPIRecord] = []
    if classification.numeric:
        score = performance_score(rows, classification.numeric)
        if score > 75:
            change = "Excellent"
        elif score > 50:
            change = "Good"
        else:
            change = "Improvement Needed"
        kpis.append(
            KPIRecord(
                name="Performance Score",
                value=score,
                unit="/100",
                change=change,
                trend=TREND_INCREASING if score > 60 else TREND_STABLE,
                change_percent=score,
                icon="Target",
            )
        )
    if classification.categorical:
        diversity = diversity_index(rows, classification.categorical[0])
        if diversity > 70:
            change = "High"
        elif diversity > 40:
            change = "Medium"
        else:
            change = "Low"
        kpis.append(
            KPIRecord(
                name="Data Diversity",
                value=diversity,
                unit="%",
                change=change,
                trend=TREND_STABLE,
                change_percent=diversity,
                icon="BarChart3",
            )
        )
    return kpis


def variability_kpi(rows: Rows, column: str) -> KPIRecord:
    values = numeric_values(rows, column)
    center = mean(values)
    if not values or center == 0:
        return KPIRecord(
            name="Data Variability",
            value=0,
            unit="%",
            change="No data",
            trend=TREND_STABLE,
            change_percent=0,
            icon="BarChart",
        )
    variation = population_stddev(values, center) / abs(center) * 100
    if variation > 50:
        change = "High Variation"
    elif variation > 20:
        change = "Moderate"
    else:
        change = "Low Variation"
    return KPIRecord(
        name="Data Variability",
        value=round_half_up(variation),
        unit="%",
        change=change,
        trend=TREND_INCREASING if variation > 30 else TREND_STABLE,
        change_percent=min(round_half_up(variation), 100),
        icon="BarChart",
    )


DOMAIN_KPI_GENERATORS: Dict[str, Callable[[Rows, ColumnClassification], List[KPIRecord]]] = {
    "telecom": churn_kpis,
    "churn": churn_kpis,
    "revenue": revenue_kpis,
    "gaming": engagement_kpis,
    "generic": generic_kpis,
}


def build_kpis(
    rows: Rows,
    classification: ColumnClassification,
    quality: QualityScore,
    domain: DomainProfile,
) -> List[KPIRecord]:
    kpis = [dataset_scale_kpi(len(rows)), quality_index_kpi(quality)]
    generator = DOMAIN_KPI_GENERATORS.get(domain.tag, generic_kpis)
    kpis.extend(generator(rows, classification))
    if classification.numeric:
        kpis.append(variability_kpi(rows, classification.numeric[0]))
    return kpis[:_MAX_KPIS]
