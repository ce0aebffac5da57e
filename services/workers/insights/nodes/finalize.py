from __future__ import annotations
import time
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping

from ..core.constants import DEFAULT_ANALYSIS_TYPE
from ..core.state import _with_phase
from ..core.types import STATUS_COMPLETED, AnalysisResult


def finalize_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    composed = state.get("composed")
    if composed is None:
        raise ValueError("finalize requires 'composed' in state. Upstream compose must run first.")

    trend = state.get("trend")
    now = datetime.now(timezone.utc)
    analysis = AnalysisResult(
        id=f"analysis_{int(time.time() * 1000)}",
        type=state.get("analysis_type") or DEFAULT_ANALYSIS_TYPE,
        status=STATUS_COMPLETED,
        synthetic=False,
        trend_source=trend.source if trend is not None else None,
        created_at=now,
        completed_at=now,
        summary=composed.get("summary"),
        kpis=list(composed.get("kpis") or []),
        trends=list(composed.get("trends") or []),
        visualizations=list(composed.get("visualizations") or []),
        insights=list(composed.get("insights") or []),
        action_items=list(composed.get("actionItems") or []),
    )
    payload = {
        "analysisId": analysis.id,
        "status": analysis.status,
        "synthetic": analysis.synthetic,
        "trendSource": analysis.trend_source,
    }
    return _with_phase(state, "finalize", payload, analysis=analysis)
