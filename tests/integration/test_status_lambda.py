import importlib

import pytest

from services.common.records import KIND_ANALYSIS, KIND_FILE, RecordStore
from tests.integration.utils.aws import FakeDynamoResource, FakeDynamoTable


@pytest.fixture()
def status(monkeypatch):
    monkeypatch.setenv("TABLE_NAME", "reports-table")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")

    module = importlib.import_module("lambdas.status.handler")
    importlib.reload(module)

    table = FakeDynamoTable()
    monkeypatch.setattr(module, "ddb", FakeDynamoResource(table))
    records = RecordStore(table)
    records.create(KIND_ANALYSIS, "a1", {"status": "PROCESSING"})
    records.create(KIND_FILE, "f1", {"status": "PROCESSING"})
    return {"module": module, "records": records}


def test_marks_analysis_failed_by_default(status):
    result = status["module"].handler({"analysisId": "a1", "error": "x" * 2000}, None)
    assert result == {"id": "a1", "kind": "analysis", "status": "FAILED"}
    stored = status["records"].get(KIND_ANALYSIS, "a1")
    assert stored["status"] == "FAILED"
    assert len(stored["error"]) == 1000


def test_updates_file_records(status):
    result = status["module"].handler({"fileId": "f1", "status": "COMPLETED"}, None)
    assert result["kind"] == "file"
    assert status["records"].get(KIND_FILE, "f1")["status"] == "COMPLETED"


def test_explicit_kind_overrides_lookup(status):
    status["module"].handler({"analysisId": "f1", "kind": "FILE", "status": "UPLOADED"}, None)
    assert status["records"].get(KIND_FILE, "f1")["status"] == "UPLOADED"


def test_rejects_bad_events(status):
    with pytest.raises(ValueError):
        status["module"].handler({}, None)
    with pytest.raises(ValueError):
        status["module"].handler({"analysisId": "a1", "kind": "job"}, None)
