from __future__ import annotations
import math
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, MutableMapping, Optional, Sequence

from ..core.constants import (
    _FALLBACK_TREND_RANGE,
    _SEASONAL_PATTERNS,
    _SYNTHETIC_MIN_BASE,
    _SYNTHETIC_ROW_MULTIPLIER,
    _SYNTHETIC_TREND_PARAMS,
    _TELECOM_DEFAULT_REVENUE,
    _TREND_CYCLE_AMPLITUDE,
    _TREND_FLUCTUATION,
    _TREND_MIN_VALID_POINTS,
    _TREND_MIN_VALUES,
    _TREND_POINTS,
    _TREND_PRIORITY_GROUPS,
    _TREND_SEGMENT_KEYWORDS,
    MONTHS,
)
from ..core.state import _with_phase
from ..core.types import ColumnClassification, DomainProfile, Rows, TrendPoint, TrendSeries
from ..core.utils import collect_columns, first_matching, mean, month_date, name_contains, round2, strip_to_number
from .patterns import detect_domain, estimate_monthly_revenue

SOURCE_DATA = "data"
SOURCE_SYNTHETIC = "synthetic"


def _current_year() -> int:
    return datetime.now(timezone.utc).year


def select_trend_column(numeric_columns: Sequence[str]) -> Optional[str]:
    if not numeric_columns:
        return None
    for group in _TREND_PRIORITY_GROUPS:
        found = first_matching(numeric_columns, group)
        if found:
            return found
    return numeric_columns[0]


def extract_trend_values(rows: Rows, column: str) -> List[float]:
    values = (strip_to_number(row.get(column)) for row in rows)
    return [value for value in values if value is not None]


def _segment_points(values: Sequence[float], year: int) -> List[TrendPoint]:
    ordered = sorted(values)
    count = len(ordered)
    points = []
    for index, month in enumerate(MONTHS):
        segment = ordered[index * count // _TREND_POINTS:(index + 1) * count // _TREND_POINTS]
        points.append(TrendPoint(period=month, value=round2(mean(segment)), date=month_date(year, index)))
    return points


def _range_points(values: Sequence[float], rng: random.Random, year: int) -> List[TrendPoint]:
    low, high = min(values), max(values)
    spread = high - low
    points = []
    for index, month in enumerate(MONTHS):
        base = low + spread * (index / (_TREND_POINTS - 1))
        fluctuation = (rng.random() - 0.5) * _TREND_FLUCTUATION
        value = max(0.0, base * (1 + fluctuation))
        points.append(TrendPoint(period=month, value=round2(value), date=month_date(year, index)))
    return points


def _valid_point(point: TrendPoint) -> bool:
    return bool(point.period) and bool(point.date) and math.isfinite(point.value) and point.value >= 0


def _gate(points: List[TrendPoint]) -> Optional[List[TrendPoint]]:
    """Reject series with too few usable months; fill the rest with the mean of the valid ones."""
    valid = [point for point in points if _valid_point(point)]
    if len(valid) < _TREND_MIN_VALID_POINTS:
        return None
    if len(valid) == len(points):
        return points
    filler = round2(mean([point.value for point in valid]))
    return [point if _valid_point(point) else TrendPoint(point.period, filler, point.date) for point in points]


def synthetic_points(profile: DomainProfile, rng: random.Random, year: int) -> List[TrendPoint]:
    """Trend, seasonality, quarterly cycle and noise. A simulation, not a forecast."""
    override, growth, volatility, pattern = _SYNTHETIC_TREND_PARAMS.get(
        profile.tag, _SYNTHETIC_TREND_PARAMS["generic"]
    )
    if override is not None:
        base = override
    elif profile.tag == "revenue":
        base = estimate_monthly_revenue(profile)
    elif profile.tag == "telecom":
        base = profile.avg_revenue or _TELECOM_DEFAULT_REVENUE
    else:
        base = max(_SYNTHETIC_MIN_BASE, float(profile.row_count * _SYNTHETIC_ROW_MULTIPLIER))
    seasonality = _SEASONAL_PATTERNS[pattern]

    points = []
    for index, month in enumerate(MONTHS):
        trend = base * math.pow(1 + growth, index)
        cycle = 1 + math.sin(index * math.pi / 6) * _TREND_CYCLE_AMPLITUDE
        noise = 1 + (rng.random() - 0.5) * 2 * volatility
        value = max(0.0, trend * seasonality[index] * cycle * noise)
        points.append(TrendPoint(period=month, value=round2(value), date=month_date(year, index)))
    return points


def random_points(rng: random.Random, year: int) -> List[TrendPoint]:
    low, high = _FALLBACK_TREND_RANGE
    return [
        TrendPoint(period=month, value=rng.randrange(low, high), date=month_date(year, index))
        for index, month in enumerate(MONTHS)
    ]


def build_trend_series(
    rows: Rows,
    numeric_columns: Sequence[str],
    *,
    rng: random.Random,
    profile: Optional[DomainProfile] = None,
    filename: str = "",
    year: Optional[int] = None,
) -> TrendSeries:
    year = year or _current_year()
    columns = collect_columns(rows)
    if not rows or not columns:
        return TrendSeries(points=random_points(rng, year), source=SOURCE_SYNTHETIC, mode="random")

    column = select_trend_column(numeric_columns)
    if column:
        values = extract_trend_values(rows, column)
        if len(values) >= _TREND_MIN_VALUES:
            if name_contains(column, _TREND_SEGMENT_KEYWORDS):
                mode, points = "segments", _segment_points(values, year)
            else:
                mode, points = "range", _range_points(values, rng, year)
            gated = _gate(points)
            if gated is not None:
                return TrendSeries(points=gated, source=SOURCE_DATA, mode=mode, column=column)

    profile = profile or detect_domain(rows, columns, filename)
    return TrendSeries(points=synthetic_points(profile, rng, year), source=SOURCE_SYNTHETIC, mode="seasonal", column=column)


def synthesize_trend(
    rows: Rows,
    numeric_columns: Sequence[str],
    *,
    rng: Optional[random.Random] = None,
    profile: Optional[DomainProfile] = None,
    year: Optional[int] = None,
) -> List[TrendPoint]:
    return build_trend_series(rows, numeric_columns, rng=rng or random.Random(), profile=profile, year=year).points


def trends_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    rows = state.get("rows") or []
    classification: ColumnClassification = state.get("classification") or ColumnClassification()
    series = build_trend_series(
        rows,
        classification.numeric,
        rng=state.get("rng") or random.Random(),
        profile=state.get("domain"),
    )
    return _with_phase(state, "trends", series.to_dict(), trend=series)
