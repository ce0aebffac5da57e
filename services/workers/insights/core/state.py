from __future__ import annotations
import random
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, TypedDict

from .constants import PHASE_ORDER
from .types import (
    AnalysisResult,
    ColumnClassification,
    DomainProfile,
    FileDescriptor,
    QualityScore,
    StatisticsReport,
    TrendSeries,
)


class AnalysisState(TypedDict, total=False):
    rows: List[Mapping[str, Any]]
    file: FileDescriptor
    analysis_type: str
    rng: random.Random
    classification: ColumnClassification
    quality: QualityScore
    statistics: StatisticsReport
    domain: DomainProfile
    trend: TrendSeries
    composed: Dict[str, Any]
    analysis: AnalysisResult
    phase_outputs: Dict[str, Any]
    _callback: Optional[Callable[..., None]]


def _with_phase(state: MutableMapping[str, Any], phase: str, payload: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    phases = dict(state.get("phase_outputs") or {})
    phases[phase] = payload
    update: Dict[str, Any] = {"phase_outputs": phases}
    update.update(extra)
    _emit_callback(state, phase, payload)
    return update


def _emit_callback(state: Mapping[str, Any], phase: str, payload: Mapping[str, Any]) -> None:
    callback = state.get("_callback")
    if not callable(callback):
        return
    index = PHASE_ORDER.index(phase)
    callback(phase, payload, index, len(PHASE_ORDER))
