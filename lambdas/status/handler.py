import os
from typing import Any, Dict

import boto3

from services.common.records import KIND_ANALYSIS, KIND_FILE, RecordStore

TABLE_NAME = os.environ["TABLE_NAME"]
ddb = boto3.resource("dynamodb")

_KINDS = {"analysis": KIND_ANALYSIS, "file": KIND_FILE}


def _table():
    return ddb.Table(TABLE_NAME)


def handler(event: Dict[str, Any], _context):
    """Force a status onto an analysis or file record, e.g. from a workflow catch."""
    record_id = event.get("analysisId") or event.get("fileId")
    kind = KIND_ANALYSIS if event.get("analysisId") else KIND_FILE
    if event.get("kind"):
        kind = _KINDS.get(str(event["kind"]).lower())
        if kind is None:
            raise ValueError("kind must be analysis or file")
    status = event.get("status", "FAILED")
    error = event.get("error")

    if not record_id:
        raise ValueError("analysisId or fileId is required")

    attrs: Dict[str, Any] = {"status": status}
    if error:
        attrs["error"] = str(error)[:1000]
    RecordStore(_table()).update(kind, record_id, **attrs)

    return {"id": record_id, "kind": kind, "status": status}
