import logging
import os
from typing import Any, Dict, Mapping

import boto3

from services.common.blobs import BlobStore
from services.common.pipeline import process_upload, run_analysis_job
from services.common.records import KIND_ANALYSIS, KIND_FILE, RecordStore
from services.workers.insights.core.types import STATUS_COMPLETED, STATUS_PROCESSING
from services.workers.insights.io.ingest import RowSource

logger = logging.getLogger("reportingagent.jobs")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)

s3 = boto3.client("s3")
ddb = boto3.resource("dynamodb")

TABLE_NAME = os.environ["TABLE_NAME"]
BUCKET_NAME = os.environ["BUCKET_NAME"]
FOLDER_PREFIX = os.environ.get("FOLDER_PREFIX", "")


def record_store() -> RecordStore:
    return RecordStore(ddb.Table(TABLE_NAME))


def _phase_summary(payload: Mapping[str, Any]) -> Dict[str, Any]:
    scalars = {key: value for key, value in payload.items() if isinstance(value, (str, int, float, bool))}
    return scalars or {"fields": list(payload.keys())[:5]}


def _progress_callback(records: RecordStore, analysis_id: str):
    def _callback(phase: str, payload: Mapping[str, Any], index: int, total: int) -> None:
        try:
            records.update(
                KIND_ANALYSIS,
                analysis_id,
                currentPhase=phase,
                phaseIndex=index,
                phaseCount=total,
                progress=int(((index + 1) / total) * 100),
                phaseSummary=_phase_summary(payload),
            )
        except Exception:  # pragma: no cover - progress updates must not halt the job
            logger.warning("failed to stream phase status", extra={"analysis_id": analysis_id, "phase": phase})

    return _callback


def row_source() -> RowSource:
    return RowSource(BlobStore(s3, BUCKET_NAME, FOLDER_PREFIX))


def _process_file(file_id: str) -> Dict[str, Any]:
    records = record_store()
    if not records.get(KIND_FILE, file_id):
        raise LookupError(f"file {file_id} not found")
    metadata = process_upload(file_id, records, row_source())
    current = records.get(KIND_FILE, file_id) or {}
    return {"ok": metadata is not None, "fileId": file_id, "status": current.get("status"), "error": current.get("error")}


def main(event, _ctx):
    if event.get("fileId"):
        return _process_file(event["fileId"])

    analysis_id = event.get("analysisId")
    if not analysis_id:
        raise ValueError("analysisId or fileId is required")

    records = record_store()
    existing = records.get(KIND_ANALYSIS, analysis_id)
    if not existing:
        raise LookupError(f"analysis {analysis_id} not found")
    if existing.get("status") == STATUS_COMPLETED:
        logger.info("analysis already completed (idempotent skip)", extra={"analysis_id": analysis_id})
        return {"ok": True, "analysisId": analysis_id, "status": STATUS_COMPLETED, "idempotent": True}

    records.update(KIND_ANALYSIS, analysis_id, status=STATUS_PROCESSING)
    result = run_analysis_job(
        analysis_id,
        records,
        row_source(),
        on_phase=_progress_callback(records, analysis_id),
    )
    if result is None:
        current = records.get(KIND_ANALYSIS, analysis_id) or {}
        return {"ok": False, "analysisId": analysis_id, "status": current.get("status"), "error": current.get("error")}

    return {
        "ok": True,
        "analysisId": analysis_id,
        "status": STATUS_COMPLETED,
        "synthetic": result.synthetic,
        "trendSource": result.trend_source,
    }
