from __future__ import annotations
from typing import Any, Dict, List, Mapping, MutableMapping

from ..core.state import _with_phase
from ..core.utils import collect_columns

_PREVIEW_ROWS = 5


def ingest_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    raw = state.get("rows")
    if not raw:
        raise ValueError("ingest requires at least one row in state['rows']")

    rows: List[Dict[str, Any]] = [dict(row) for row in raw if isinstance(row, Mapping)]
    if not rows:
        raise ValueError("ingest found no mapping rows in state['rows']")

    columns = collect_columns(rows)
    payload = {
        "rows": len(rows),
        "columns": len(columns),
        "columnNames": columns,
        "preview": rows[:_PREVIEW_ROWS],
    }
    return _with_phase(state, "ingest", payload, rows=rows)
