from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from langgraph.graph import END, StateGraph

from .core.constants import DEFAULT_ANALYSIS_TYPE, PHASE_ORDER
from .core.state import AnalysisState
from .core.types import AnalysisResult, FileDescriptor, PipelineResult
from .core.utils import collect_columns
from .mock import generate_mock_analysis
from .nodes import (
    classify_node,
    compose_node,
    finalize_node,
    ingest_node,
    patterns_node,
    quality_node,
    statistics_node,
    trends_node,
)

logger = logging.getLogger("reportingagent.insights")

PhaseCallback = Optional[Callable[[str, Mapping[str, Any], int, int], None]]

_NODES = {
    "ingest": ingest_node,
    "classify": classify_node,
    "quality": quality_node,
    "statistics": statistics_node,
    "patterns": patterns_node,
    "trends": trends_node,
    "compose": compose_node,
    "finalize": finalize_node,
}


def build_graph(checkpointer=None):
    g = StateGraph(AnalysisState)
    for phase in PHASE_ORDER:
        g.add_node(phase, _NODES[phase])

    g.set_entry_point(PHASE_ORDER[0])
    for current, following in zip(PHASE_ORDER, PHASE_ORDER[1:]):
        g.add_edge(current, following)
    g.add_edge(PHASE_ORDER[-1], END)
    return g.compile(checkpointer=checkpointer)


PIPELINE = build_graph()


def run_pipeline(
    rows: Sequence[Mapping[str, Any]],
    file: FileDescriptor,
    analysis_type: str = DEFAULT_ANALYSIS_TYPE,
    *,
    rng: Optional[random.Random] = None,
    on_phase: PhaseCallback = None,
) -> PipelineResult:
    initial_state: Dict[str, Any] = {
        "rows": list(rows),
        "file": file,
        "analysis_type": analysis_type,
        "rng": rng or random.Random(),
        "phase_outputs": {},
    }
    if on_phase:
        initial_state["_callback"] = on_phase

    final_state = PIPELINE.invoke(initial_state)
    analysis = final_state.get("analysis")
    if analysis is None:
        raise RuntimeError("pipeline finished without producing an analysis")
    return PipelineResult(analysis=analysis, phases=final_state.get("phase_outputs", {}) or {})


def generate_analysis(
    file: FileDescriptor,
    analysis_type: str,
    row_source,
    rng: Optional[random.Random] = None,
    on_phase: PhaseCallback = None,
) -> AnalysisResult:
    """Analyse the stored file, falling back to a synthetic result.

    ``row_source`` must expose ``read(path, mime_type)`` returning a list of
    rows, empty when the blob cannot be read or parsed.
    """
    rng = rng or random.Random()
    rows = row_source.read(file.storage_path, file.mime_type)
    if not rows or not collect_columns(rows):
        logger.info(
            "no columnar data available, generating synthetic analysis",
            extra={"fileName": file.original_name, "analysisType": analysis_type},
        )
        return generate_mock_analysis(file, analysis_type, rng)

    try:
        result = run_pipeline(rows, file, analysis_type, rng=rng, on_phase=on_phase)
    except Exception:
        logger.exception(
            "analysis pipeline failed, generating synthetic analysis",
            extra={"fileName": file.original_name, "analysisType": analysis_type, "rows": len(rows)},
        )
        return generate_mock_analysis(file, analysis_type, rng)

    logger.info(
        "analysis pipeline completed",
        extra={
            "fileName": file.original_name,
            "analysisType": analysis_type,
            "rows": len(rows),
            "trendSource": result.analysis.trend_source,
        },
    )
    return result.analysis
