"""Background jobs run after an upload or an analysis request."""
from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from services.workers.insights.app import generate_analysis
from services.workers.insights.core.constants import DEFAULT_ANALYSIS_TYPE
from services.workers.insights.core.types import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    AnalysisResult,
    FileDescriptor,
)
from services.workers.insights.io.metadata import extract_metadata

from .records import KIND_ANALYSIS, KIND_FILE, RecordStore, epoch

logger = logging.getLogger("reportingagent.jobs")

_ERROR_LIMIT = 1000
_RESULT_FIELDS = ("summary", "kpis", "trends", "insights", "actionItems", "visualizations", "synthetic", "trendSource")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def analysis_attributes(result: AnalysisResult) -> Dict[str, Any]:
    payload = result.to_dict()
    return {name: payload[name] for name in _RESULT_FIELDS}


def process_upload(file_id: str, records: RecordStore, row_source) -> Optional[Dict[str, Any]]:
    """Extract metadata for an uploaded file: ``PROCESSING -> COMPLETED | FAILED``."""
    records.update(KIND_FILE, file_id, status=STATUS_PROCESSING)
    record = records.get(KIND_FILE, file_id)
    if not record:
        logger.warning("uploaded file vanished before processing", extra={"file_id": file_id})
        return None

    try:
        descriptor = FileDescriptor.from_record(record)
        dataset = row_source.parse(descriptor.storage_path, descriptor.mime_type)
        metadata = extract_metadata(descriptor, dataset.rows, dataset=dataset)
    except Exception as exc:
        logger.exception("file processing failed", extra={"file_id": file_id})
        records.update(KIND_FILE, file_id, status=STATUS_FAILED, error=str(exc)[:_ERROR_LIMIT])
        return None

    records.update(
        KIND_FILE,
        file_id,
        status=STATUS_COMPLETED,
        processedAt=_now_iso(),
        metadata=metadata,
        rowCount=metadata.get("rowCount"),
        columnCount=metadata.get("columnCount"),
    )
    logger.info("file processed", extra={"file_id": file_id, "rowCount": metadata.get("rowCount")})
    return metadata


def run_analysis_job(
    analysis_id: str,
    records: RecordStore,
    row_source,
    rng: Optional[random.Random] = None,
    on_phase=None,
) -> Optional[AnalysisResult]:
    """Generate and persist an analysis: ``PROCESSING -> COMPLETED | FAILED``.

    ``generate_analysis`` already degrades to synthetic output, so FAILED
    means the fallback itself or the persistence layer broke.
    """
    analysis = records.get(KIND_ANALYSIS, analysis_id)
    if not analysis:
        logger.warning("analysis record not found", extra={"analysis_id": analysis_id})
        return None

    file_id = analysis.get("fileId")
    try:
        record = records.get(KIND_FILE, file_id) if file_id else None
        if not record:
            raise LookupError(f"file {file_id} not found for analysis {analysis_id}")
        descriptor = FileDescriptor.from_record(record)
        result = generate_analysis(descriptor, analysis.get("type") or DEFAULT_ANALYSIS_TYPE, row_source, rng, on_phase)
        records.update(
            KIND_ANALYSIS,
            analysis_id,
            status=STATUS_COMPLETED,
            completedAt=epoch(),
            **analysis_attributes(result),
        )
    except Exception as exc:
        logger.exception("analysis job failed", extra={"analysis_id": analysis_id, "file_id": file_id})
        records.update(KIND_ANALYSIS, analysis_id, status=STATUS_FAILED, error=str(exc)[:_ERROR_LIMIT])
        return None

    logger.info(
        "analysis job completed",
        extra={"analysis_id": analysis_id, "file_id": file_id, "synthetic": result.synthetic},
    )
    return result
