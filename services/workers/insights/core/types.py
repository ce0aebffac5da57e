from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from .constants import _CORRELATION_THRESHOLD

# A dataset row: column name -> raw cell value (str | int | float | None).
Row = Mapping[str, Any]
Rows = Sequence[Row]

KIND_NUMERIC = "Numeric"
KIND_CATEGORICAL = "Categorical"
KIND_DATE_LIKE = "DateLike"
KIND_UNCLASSIFIED = "Unclassified"

TREND_INCREASING = "increasing"
TREND_DECREASING = "decreasing"
TREND_STABLE = "stable"

PRIORITY_HIGH = "HIGH"
PRIORITY_MEDIUM = "MEDIUM"
PRIORITY_LOW = "LOW"

ACTION_PENDING = "PENDING"
ACTION_IN_PROGRESS = "IN_PROGRESS"
ACTION_COMPLETED = "COMPLETED"

STATUS_PENDING = "PENDING"
STATUS_PROCESSING = "PROCESSING"
STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"


@dataclass(frozen=True)
class ColumnProfile:
    name: str
    kind: str
    non_null_ratio: float
    sample_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "nonNullRatio": self.non_null_ratio,
            "sampleSize": self.sample_size,
        }


@dataclass(frozen=True)
class ColumnClassification:
    columns: List[str] = field(default_factory=list)
    numeric: List[str] = field(default_factory=list)
    categorical: List[str] = field(default_factory=list)
    date_like: List[str] = field(default_factory=list)
    profiles: List[ColumnProfile] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.columns

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": list(self.columns),
            "numeric": list(self.numeric),
            "categorical": list(self.categorical),
            "dateLike": list(self.date_like),
            "columnProfiles": [profile.to_dict() for profile in self.profiles],
        }


@dataclass(frozen=True)
class QualityScore:
    completeness: int
    consistency: int
    validity: int
    composite: int
    column_completeness: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completeness": self.completeness,
            "consistency": self.consistency,
            "validity": self.validity,
            "composite": self.composite,
            "columnCompleteness": dict(self.column_completeness),
        }


@dataclass(frozen=True)
class ColumnStats:
    name: str
    count: int
    total: float
    mean: float
    min_value: float
    max_value: float
    stddev: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "count": self.count,
            "sum": self.total,
            "mean": self.mean,
            "min": self.min_value,
            "max": self.max_value,
            "stddev": self.stddev,
        }


@dataclass(frozen=True)
class CorrelationPair:
    left: str
    right: str
    coefficient: float

    @property
    def label(self) -> str:
        return f"{self.left} and {self.right}"

    def to_dict(self) -> Dict[str, Any]:
        return {"left": self.left, "right": self.right, "coefficient": self.coefficient}


@dataclass(frozen=True)
class StatisticsReport:
    outliers: Dict[str, int] = field(default_factory=dict)
    correlations: List[CorrelationPair] = field(default_factory=list)
    column_stats: Dict[str, ColumnStats] = field(default_factory=dict)
    threshold: float = _CORRELATION_THRESHOLD

    @property
    def outlier_total(self) -> int:
        return sum(self.outliers.values())

    @property
    def strong_correlations(self) -> List[CorrelationPair]:
        return [pair for pair in self.correlations if abs(pair.coefficient) > self.threshold]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outliers": dict(self.outliers),
            "outlierTotal": self.outlier_total,
            "correlations": [pair.to_dict() for pair in self.correlations],
            "strongCorrelations": [pair.label for pair in self.strong_correlations],
            "columnStats": {name: stats.to_dict() for name, stats in self.column_stats.items()},
        }


@dataclass(frozen=True)
class DomainProfile:
    tag: str
    row_count: int
    has_revenue: bool = False
    has_churn: bool = False
    has_telecom: bool = False
    has_gaming: bool = False
    revenue_column: Optional[str] = None
    avg_revenue: float = 0.0
    patterns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.tag,
            "rowCount": self.row_count,
            "signals": {
                "revenue": self.has_revenue,
                "churn": self.has_churn,
                "telecom": self.has_telecom,
                "gaming": self.has_gaming,
            },
            "revenueColumn": self.revenue_column,
            "avgRevenue": self.avg_revenue,
            "patterns": list(self.patterns),
        }


@dataclass(frozen=True)
class TrendPoint:
    period: str
    value: float
    date: str

    def to_dict(self) -> Dict[str, Any]:
        return {"period": self.period, "value": self.value, "date": self.date}


@dataclass(frozen=True)
class TrendSeries:
    points: List[TrendPoint]
    source: str
    mode: str
    column: Optional[str] = None

    @property
    def synthetic(self) -> bool:
        return self.source != "data"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "source": self.source,
            "mode": self.mode,
            "points": [point.to_dict() for point in self.points],
        }


@dataclass(frozen=True)
class KPIRecord:
    name: str
    value: Union[int, float, str]
    trend: str
    unit: Optional[str] = None
    change: Optional[str] = None
    change_percent: Optional[int] = None
    icon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "value": self.value, "trend": self.trend}
        if self.unit is not None:
            payload["unit"] = self.unit
        if self.change is not None:
            payload["change"] = self.change
        if self.change_percent is not None:
            payload["changePercent"] = self.change_percent
        if self.icon is not None:
            payload["icon"] = self.icon
        return payload


@dataclass(frozen=True)
class ActionItem:
    id: str
    title: str
    description: str
    priority: str
    category: str
    estimated_impact: Optional[str] = None
    timeline: Optional[str] = None
    status: str = ACTION_PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "estimatedImpact": self.estimated_impact,
            "timeline": self.timeline,
            "status": self.status,
        }


@dataclass(frozen=True)
class FileDescriptor:
    """What the core needs to know about an uploaded file."""

    original_name: str
    mime_type: str = ""
    size: int = 0
    storage_path: Optional[str] = None
    file_id: Optional[str] = None
    uploaded_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "FileDescriptor":
        return cls(
            original_name=str(record.get("originalName") or record.get("filename") or ""),
            mime_type=str(record.get("mimeType") or ""),
            size=int(record.get("size") or 0),
            storage_path=record.get("cloudStoragePath") or record.get("filename"),
            file_id=record.get("id"),
            uploaded_at=record.get("uploadedAt"),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnalysisResult:
    id: str
    type: str
    status: str = STATUS_COMPLETED
    synthetic: bool = False
    trend_source: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    summary: Optional[Dict[str, Any]] = None
    kpis: List[KPIRecord] = field(default_factory=list)
    trends: List[TrendPoint] = field(default_factory=list)
    visualizations: List[Dict[str, Any]] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    action_items: List[ActionItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "synthetic": self.synthetic,
            "trendSource": self.trend_source,
            "createdAt": self.created_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "summary": self.summary,
            "kpis": [kpi.to_dict() for kpi in self.kpis],
            "trends": [point.to_dict() for point in self.trends],
            "visualizations": list(self.visualizations),
            "insights": list(self.insights),
            "actionItems": [item.to_dict() for item in self.action_items],
        }


@dataclass
class PipelineResult:
    analysis: AnalysisResult
    phases: Dict[str, Any] = field(default_factory=dict)
