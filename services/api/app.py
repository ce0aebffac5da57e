# services/api/app.py
from __future__ import annotations

import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import ClientError
from fastapi import BackgroundTasks, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum
from pydantic import BaseModel

from services.common.blobs import BlobStore
from services.common.chat import CompletionClient, answer_chat
from services.common.pipeline import process_upload, run_analysis_job
from services.common.records import (
    KIND_ANALYSIS,
    KIND_CHAT_MESSAGE,
    KIND_CHAT_SESSION,
    KIND_FILE,
    RecordStore,
)
from services.workers.insights.core.constants import ANALYSIS_TYPES, DEFAULT_ANALYSIS_TYPE
from services.workers.insights.core.types import STATUS_COMPLETED, STATUS_FAILED, STATUS_PROCESSING
from services.workers.insights.io.ingest import RowSource

# ---- Env ----
BUCKET_NAME = os.environ["BUCKET_NAME"]          # uploads bucket
TABLE_NAME  = os.environ["TABLE_NAME"]           # DynamoDB table
FOLDER_PREFIX = os.environ.get("FOLDER_PREFIX", "")
MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))
COMPLETION_API_URL = os.environ.get("COMPLETION_API_URL", "")
COMPLETION_API_KEY = os.environ.get("COMPLETION_API_KEY", "")
COMPLETION_MODEL = os.environ.get("COMPLETION_MODEL", "gpt-4.1-mini")
COMPLETION_TIMEOUT = float(os.environ.get("COMPLETION_TIMEOUT", "30"))
STATE_MACHINE_ARN = os.environ.get("STATE_MACHINE_ARN", "")  # unset: run jobs in-process (local dev)

# ---- Logging & Observability ----
logger = logging.getLogger("reportingagent.api")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)
logger.setLevel(logging.INFO)

METRICS_NAMESPACE = os.environ.get("METRICS_NAMESPACE", "ReportingAgent/API")

# ---- AWS ----
s3 = boto3.client("s3")
ddb = boto3.resource("dynamodb")
table = ddb.Table(TABLE_NAME)
cloudwatch = boto3.client("cloudwatch")
sfn = boto3.client("stepfunctions")

completion_client: Optional[CompletionClient] = (
    CompletionClient(COMPLETION_API_URL, COMPLETION_API_KEY, COMPLETION_MODEL, COMPLETION_TIMEOUT)
    if COMPLETION_API_URL
    else None
)

# ---- App ----
app = FastAPI(title="Reporting Agent API")

# --- CORS for local dashboard ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
    allow_credentials=False,
)

FILE_STATUS_UPLOADED = "UPLOADED"
ACCEPTED_EXTENSIONS = (".pdf", ".xlsx", ".xls", ".csv", ".json", ".txt")
RECENT_FILES_LIMIT = 50
DASHBOARD_FILES = 10
DASHBOARD_ANALYSES = 5


# ---- Models ----
class AnalyzeRequest(BaseModel):
    """Request payload for starting an analysis."""
    analysisType: str = DEFAULT_ANALYSIS_TYPE
    options: Dict[str, object] | None = None


class ChatRequest(BaseModel):
    message: str = ""
    sessionId: Optional[str] = None
    reportId: Optional[str] = None


# ---- Helpers ----
def record_metric(name: str, value: float = 1, unit: str = "Count", dimensions: Optional[Dict[str, str]] | None = None) -> None:
    metric = {"MetricName": name, "Value": value, "Unit": unit}
    if dimensions:
        metric["Dimensions"] = [{"Name": key, "Value": val} for key, val in dimensions.items()]
    try:
        cloudwatch.put_metric_data(Namespace=METRICS_NAMESPACE, MetricData=[metric])
    except Exception as exc:  # pragma: no cover
        logger.debug("failed to emit metric", extra={"metric": name, "error": str(exc)})


def records() -> RecordStore:
    return RecordStore(table)


def row_source() -> RowSource:
    return RowSource(BlobStore(s3, BUCKET_NAME, FOLDER_PREFIX))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def ensure_record(kind: str, record_id: str, label: str) -> dict:
    item = records().get(kind, record_id)
    if not item:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return item


def create_record(kind: str, record_id: str, attrs: dict, *, label: str) -> dict:
    try:
        return records().create(kind, record_id, attrs)
    except ClientError as e:
        logger.exception("failed to persist record", extra={"kind": kind, "record_id": record_id})
        record_metric("PersistenceFailed", dimensions={"Kind": kind})
        raise HTTPException(status_code=502, detail=f"Unable to persist {label}") from e


def file_to_payload(item: dict) -> dict:
    return {
        "id": item.get("id"),
        "fileId": item.get("id"),
        "filename": item.get("filename"),
        "originalName": item.get("originalName"),
        "mimeType": item.get("mimeType"),
        "size": item.get("size"),
        "status": item.get("status"),
        "uploadedAt": item.get("uploadedAt"),
        "processedAt": item.get("processedAt"),
        "metadata": item.get("metadata"),
        "rowCount": item.get("rowCount"),
        "columnCount": item.get("columnCount"),
    }


def _is_accepted(name: str) -> bool:
    return name.lower().endswith(ACCEPTED_EXTENSIONS)


def _run_upload(file_id: str) -> None:
    process_upload(file_id, records(), row_source())


def _run_analysis(analysis_id: str) -> None:
    run_analysis_job(analysis_id, records(), row_source())


_LOCAL_RUNNERS = {KIND_FILE: _run_upload, KIND_ANALYSIS: _run_analysis}
_EXECUTION_KEYS = {KIND_FILE: "fileId", KIND_ANALYSIS: "analysisId"}


def dispatch_job(background: BackgroundTasks, kind: str, record_id: str, *, label: str) -> None:
    """Hand the job to the workflow so the request returns before the work is done.

    Without a state machine the job runs as a background task of the local server.
    """
    if not STATE_MACHINE_ARN:
        background.add_task(_LOCAL_RUNNERS[kind], record_id)
        return

    try:
        sfn.start_execution(
            stateMachineArn=STATE_MACHINE_ARN,
            name=f"{kind}-{record_id}",
            input=json.dumps({_EXECUTION_KEYS[kind]: record_id}),
        )
    except ClientError as e:
        error = e.response.get("Error", {})
        message = error.get("Message") or str(e)
        records().update(kind, record_id, status=STATUS_FAILED, error=message[:1000])
        record_metric("WorkflowStartFailed", dimensions={"Kind": kind})
        logger.exception("failed to start workflow", extra={"kind": kind, "record_id": record_id})
        raise HTTPException(status_code=502, detail=f"Failed to start {label} processing") from e


# ---- Routes ----
@app.get("/health")
def health():
    return {"ok": True}


@app.post("/files/upload")
def upload_file(background: BackgroundTasks, file: UploadFile = File(...)):
    name = file.filename or ""
    if not name or not _is_accepted(name):
        record_metric("UploadRejected", dimensions={"Reason": "UnsupportedType"})
        raise HTTPException(status_code=400, detail="Unsupported file type")

    body = file.file.read()
    if len(body) > MAX_UPLOAD_BYTES:
        record_metric("UploadRejected", dimensions={"Reason": "TooLarge"})
        raise HTTPException(status_code=413, detail="File exceeds the maximum upload size")

    mime_type = file.content_type or "application/octet-stream"
    try:
        storage_path = BlobStore(s3, BUCKET_NAME, FOLDER_PREFIX).put(body, name, content_type=mime_type)
    except ClientError as e:
        logger.exception("failed to store upload", extra={"fileName": name})
        record_metric("UploadStorageFailed")
        raise HTTPException(status_code=502, detail="Unable to store file") from e

    file_id = str(uuid.uuid4())
    uploaded_at = now_iso()
    item = create_record(
        KIND_FILE,
        file_id,
        {
            "filename": f"file_{int(time.time() * 1000)}_{name}",
            "originalName": name,
            "mimeType": mime_type,
            "size": len(body),
            "cloudStoragePath": storage_path,
            "status": FILE_STATUS_UPLOADED,
            "uploadedAt": uploaded_at,
            "metadata": {"originalSize": len(body), "uploadTimestamp": uploaded_at},
        },
        label="file",
    )
    dispatch_job(background, KIND_FILE, file_id, label="file")

    record_metric("FileUploaded")
    logger.info("file uploaded", extra={"file_id": file_id, "size": len(body), "mimeType": mime_type})
    return {
        "fileId": file_id,
        "id": file_id,
        "filename": item.get("filename"),
        "originalName": name,
        "size": len(body),
        "status": item.get("status"),
        "uploadedAt": uploaded_at,
    }


@app.get("/files")
def list_files():
    items = records().list(KIND_FILE, limit=RECENT_FILES_LIMIT)
    return [file_to_payload(item) for item in items]


@app.get("/files/{file_id}/status")
def get_file_status(file_id: str):
    item = ensure_record(KIND_FILE, file_id, "File")
    payload = file_to_payload(item)
    payload.pop("mimeType")
    payload.pop("size")
    return payload


@app.post("/files/{file_id}/analyze")
def analyze_file(file_id: str, background: BackgroundTasks, body: AnalyzeRequest | None = None):
    body = body or AnalyzeRequest()
    item = ensure_record(KIND_FILE, file_id, "File")
    if item.get("status") != STATUS_COMPLETED:
        raise HTTPException(status_code=400, detail="File is not ready for analysis")
    if body.analysisType not in ANALYSIS_TYPES:
        record_metric("AnalysisValidationError")
        raise HTTPException(status_code=400, detail="Unsupported analysisType")

    analysis_id = str(uuid.uuid4())
    analysis = create_record(
        KIND_ANALYSIS,
        analysis_id,
        {
            "fileId": file_id,
            "type": body.analysisType,
            "status": STATUS_PROCESSING,
            "options": body.options or {},
        },
        label="analysis",
    )
    dispatch_job(background, KIND_ANALYSIS, analysis_id, label="analysis")

    dimensions = {"AnalysisType": body.analysisType}
    record_metric("AnalysisRequested", dimensions=dimensions)
    logger.info("analysis queued", extra={"analysis_id": analysis_id, "file_id": file_id, **dimensions})
    return {
        "analysisId": analysis_id,
        "status": analysis.get("status"),
        "type": analysis.get("type"),
        "createdAt": analysis.get("createdAt"),
    }


@app.get("/analysis/{analysis_id}")
def get_analysis(analysis_id: str):
    item = ensure_record(KIND_ANALYSIS, analysis_id, "Analysis")
    file_record = records().get(KIND_FILE, item.get("fileId")) if item.get("fileId") else None
    return {
        "id": item.get("id"),
        "analysisId": item.get("id"),
        "fileId": item.get("fileId"),
        "fileName": file_record.get("originalName") if file_record else None,
        "type": item.get("type"),
        "status": item.get("status"),
        "createdAt": item.get("createdAt"),
        "completedAt": item.get("completedAt"),
        "summary": item.get("summary"),
        "kpis": item.get("kpis"),
        "trends": item.get("trends"),
        "insights": item.get("insights"),
        "actionItems": item.get("actionItems"),
        "visualizations": item.get("visualizations"),
        "synthetic": item.get("synthetic"),
        "trendSource": item.get("trendSource"),
        "error": item.get("error"),
    }


@app.get("/dashboard")
def dashboard():
    store = records()
    files = store.list(KIND_FILE)
    analyses = store.list(KIND_ANALYSIS)
    completed = sum(1 for item in analyses if item.get("status") == STATUS_COMPLETED)
    names = {item.get("id"): item.get("originalName") for item in files}

    recent_analyses: List[dict] = [
        {
            "id": item.get("id"),
            "type": item.get("type"),
            "status": item.get("status"),
            "createdAt": item.get("createdAt"),
            "completedAt": item.get("completedAt"),
            "fileName": names.get(item.get("fileId")),
        }
        for item in analyses[:DASHBOARD_ANALYSES]
    ]
    recent_files = [
        {
            "id": item.get("id"),
            "filename": item.get("filename"),
            "originalName": item.get("originalName"),
            "status": item.get("status"),
            "uploadedAt": item.get("uploadedAt"),
            "size": item.get("size"),
            "metadata": item.get("metadata"),
        }
        for item in files[:DASHBOARD_FILES]
    ]
    return {
        "statistics": {
            "totalFiles": len(files),
            "totalAnalyses": len(analyses),
            "completedAnalyses": completed,
            "successRate": int(completed / len(analyses) * 100 + 0.5) if analyses else 0,
        },
        "recentFiles": recent_files,
        "recentAnalyses": recent_analyses,
    }


@app.post("/chat")
def chat(body: ChatRequest):
    message = body.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")

    store = records()
    session = store.get(KIND_CHAT_SESSION, body.sessionId) if body.sessionId else None
    if not session:
        session = create_record(
            KIND_CHAT_SESSION,
            str(uuid.uuid4()),
            {"title": "Chat about analysis", "reportId": body.reportId},
            label="chat session",
        )
    session_id = session["id"]

    create_record(
        KIND_CHAT_MESSAGE,
        str(uuid.uuid4()),
        {"sessionId": session_id, "role": "USER", "content": message},
        label="chat message",
    )
    reply = answer_chat(message, store, completion_client)
    assistant = create_record(
        KIND_CHAT_MESSAGE,
        str(uuid.uuid4()),
        {
            "sessionId": session_id,
            "role": "ASSISTANT",
            "content": reply.response,
            "metadata": {"suggestions": reply.suggestions, "charts": reply.charts},
        },
        label="chat message",
    )

    record_metric("ChatMessage")
    return {
        "messageId": assistant["id"],
        "sessionId": session_id,
        "response": reply.response,
        "suggestions": reply.suggestions,
        "charts": reply.charts,
    }


# ---- Middleware ----
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    try:
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info(
            "request completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
            },
        )
        response.headers.setdefault("x-request-id", request_id)
        return response
    except Exception:
        duration_ms = int((time.time() - start) * 1000)
        logger.exception(
            "request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "request_id": request_id,
                "duration_ms": duration_ms,
            },
        )
        raise


# Lambda entry point
handler = Mangum(app)
