from __future__ import annotations
from typing import Any, Callable, Dict, List, MutableMapping, NamedTuple, Optional, Sequence, Tuple

from ..core.constants import (
    _CHURN_REVENUE_FACTOR,
    _DEFAULT_MONTHLY_REVENUE,
    _MIN_MONTHLY_REVENUE,
    _REVENUE_SAMPLE_ROWS,
    _TELECOM_REVENUE_CAP,
    CHURN_KEYWORDS,
    GAMING_KEYWORDS,
    REVENUE_KEYWORDS,
    TELECOM_KEYWORDS,
)
from ..core.state import _with_phase
from ..core.types import ColumnClassification, DomainProfile, FileDescriptor, Rows
from ..core.utils import first_matching, mean, name_contains, parse_number


class Signals(NamedTuple):
    revenue: bool
    churn: bool
    telecom: bool
    gaming: bool


# Evaluated top to bottom; the first matching predicate names the domain.
DOMAIN_RULES: List[Tuple[Callable[[Signals], bool], str]] = [
    (lambda s: s.churn and s.telecom, "telecom"),
    (lambda s: s.churn and s.revenue, "churn"),
    (lambda s: s.churn, "churn"),
    (lambda s: s.gaming, "gaming"),
    (lambda s: s.revenue, "revenue"),
]
DEFAULT_DOMAIN = "generic"


def _signal(names: Sequence[str], keywords: Sequence[str]) -> bool:
    return any(name_contains(name, keywords) for name in names)


def detect_signals(columns: Sequence[str], filename: str = "") -> Signals:
    names = list(columns) + ([filename] if filename else [])
    return Signals(
        revenue=_signal(names, REVENUE_KEYWORDS),
        churn=_signal(names, CHURN_KEYWORDS),
        telecom=_signal(names, TELECOM_KEYWORDS),
        gaming=_signal(names, GAMING_KEYWORDS),
    )


def domain_tag(signals: Signals) -> str:
    for predicate, tag in DOMAIN_RULES:
        if predicate(signals):
            return tag
    return DEFAULT_DOMAIN


def average_revenue(rows: Rows, revenue_column: Optional[str]) -> float:
    if not revenue_column:
        return 0.0
    values = [parse_number(row.get(revenue_column)) for row in rows[:_REVENUE_SAMPLE_ROWS]]
    return mean([value for value in values if value is not None and value > 0])


def business_patterns(columns: Sequence[str], filename: str = "") -> List[str]:
    lowered = filename.lower()
    patterns: List[str] = []

    if "churn" in lowered or _signal(columns, ("churn",)):
        patterns.append("Customer retention patterns identified - critical for churn prevention strategies")
        patterns.append("Revenue at risk calculations possible with current dataset structure")

    if "sales" in lowered or _signal(columns, ("revenue",)):
        patterns.append("Revenue optimization opportunities detected across multiple segments")
        patterns.append("Seasonal sales trends can be forecasted with time-series analysis")

    if "gaming" in lowered or "behavior" in lowered:
        patterns.append("User engagement metrics indicate personalization opportunities")
        patterns.append("Behavioral segmentation possible for targeted marketing strategies")

    if _signal(columns, ("date", "time")):
        patterns.append("Temporal analysis capabilities enable trend forecasting and seasonality detection")

    if _signal(columns, ("category", "type")):
        patterns.append("Categorical segmentation analysis reveals distinct performance clusters")

    return patterns


def detect_domain(rows: Rows, columns: Sequence[str], filename: str = "") -> DomainProfile:
    signals = detect_signals(columns, filename)
    revenue_column = first_matching(columns, REVENUE_KEYWORDS)
    return DomainProfile(
        tag=domain_tag(signals),
        row_count=len(rows),
        has_revenue=signals.revenue,
        has_churn=signals.churn,
        has_telecom=signals.telecom,
        has_gaming=signals.gaming,
        revenue_column=revenue_column,
        avg_revenue=average_revenue(rows, revenue_column),
        patterns=business_patterns(columns, filename),
    )


def estimate_monthly_revenue(profile: DomainProfile) -> float:
    if not profile.has_revenue or profile.avg_revenue == 0:
        return _DEFAULT_MONTHLY_REVENUE
    customers = profile.row_count
    estimate = customers * profile.avg_revenue
    if profile.tag == "telecom":
        return min(estimate, customers * _TELECOM_REVENUE_CAP)
    if profile.tag == "churn":
        return estimate * _CHURN_REVENUE_FACTOR
    return max(estimate, _MIN_MONTHLY_REVENUE)


def patterns_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    rows = state.get("rows") or []
    classification: ColumnClassification = state.get("classification") or ColumnClassification()
    file: Optional[FileDescriptor] = state.get("file")
    profile = detect_domain(rows, classification.columns, file.original_name if file else "")
    return _with_phase(state, "patterns", profile.to_dict(), domain=profile)
