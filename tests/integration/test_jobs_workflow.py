import random

import pytest

from services.common.blobs import BlobNotFoundError, BlobStore, upload_key_for
from services.common.pipeline import process_upload, run_analysis_job
from services.common.records import KIND_ANALYSIS, KIND_FILE, RecordStore
from services.workers.insights.io.ingest import RowSource
from tests.integration.utils.aws import FakeDynamoTable, FakeS3, client_error


CSV_BODY = (
    b"customerID,tenure,MonthlyCharges,Contract,Churn\n"
    + b"".join(
        f"C{i:03d},{i + 1},{50 + i * 1.5:.2f},{['Month-to-month', 'One year', 'Two year'][i % 3]},{'Yes' if i % 4 == 0 else 'No'}\n".encode()
        for i in range(30)
    )
)


@pytest.fixture()
def env():
    s3 = FakeS3()
    table = FakeDynamoTable()
    blobs = BlobStore(s3, "uploads-bucket", "reports")
    return {
        "s3": s3,
        "blobs": blobs,
        "records": RecordStore(table),
        "rows": RowSource(blobs),
    }


def _upload(env, name="churn_data.csv", body=CSV_BODY, mime="text/csv", file_id="f1"):
    path = env["blobs"].put(body, name, content_type=mime)
    env["records"].create(
        KIND_FILE,
        file_id,
        {
            "filename": f"file_1_{name}",
            "originalName": name,
            "mimeType": mime,
            "size": len(body),
            "cloudStoragePath": path,
            "status": "UPLOADED",
            "uploadedAt": "2024-06-01T00:00:00+00:00",
        },
    )
    return path


def test_upload_keys_keep_the_original_name():
    assert upload_key_for("churn data.csv", now_ms=123) == "uploads/123-churn data.csv"
    assert upload_key_for("../etc/passwd", now_ms=1) == "uploads/1-.._etc_passwd"


def test_blob_store_prefixes_paths(env):
    path = _upload(env)
    assert path.startswith("reports/uploads/")
    assert list(env["s3"].list_keys("uploads-bucket")) == [path]
    assert env["blobs"].get(path) == CSV_BODY


def test_blob_store_maps_missing_objects(env):
    with pytest.raises(BlobNotFoundError):
        env["blobs"].get("reports/uploads/none.csv")


def test_blob_store_reraises_other_errors():
    class DeniedS3(FakeS3):
        def get_object(self, Bucket, Key):  # noqa: N803
            raise client_error("AccessDenied", "GetObject")

    with pytest.raises(Exception) as excinfo:
        BlobStore(DeniedS3(), "b").get("k")
    assert not isinstance(excinfo.value, BlobNotFoundError)


def test_process_upload_extracts_metadata(env):
    _upload(env)
    metadata = process_upload("f1", env["records"], env["rows"])
    assert metadata["rowCount"] == 30
    assert metadata["columnCount"] == 5
    assert metadata["delimiter"] == ","

    record = env["records"].get(KIND_FILE, "f1")
    assert record["status"] == "COMPLETED"
    assert record["rowCount"] == 30
    assert record["processedAt"]
    assert record["metadata"]["type"] == "csv"


def test_process_upload_of_unreadable_blob_still_completes(env):
    env["records"].create(
        KIND_FILE,
        "f2",
        {"originalName": "gone.csv", "mimeType": "text/csv", "cloudStoragePath": "reports/uploads/gone.csv"},
    )
    metadata = process_upload("f2", env["records"], env["rows"])
    assert metadata["rowCount"] == 0
    assert env["records"].get(KIND_FILE, "f2")["status"] == "COMPLETED"


def test_process_upload_failure_marks_file_failed(env):
    _upload(env)

    class BrokenRows:
        def parse(self, path, mime_type):
            raise RuntimeError("parser crashed")

    assert process_upload("f1", env["records"], BrokenRows()) is None
    record = env["records"].get(KIND_FILE, "f1")
    assert record["status"] == "FAILED"
    assert record["error"] == "parser crashed"


def test_analysis_job_persists_results(env):
    _upload(env)
    env["records"].create(KIND_ANALYSIS, "a1", {"fileId": "f1", "type": "FULL_ANALYSIS", "status": "PROCESSING"})

    phases = []
    result = run_analysis_job(
        "a1", env["records"], env["rows"], rng=random.Random(4), on_phase=lambda phase, *_: phases.append(phase)
    )
    assert result is not None and result.synthetic is False
    assert phases[0] == "ingest" and phases[-1] == "finalize"

    stored = env["records"].get(KIND_ANALYSIS, "a1")
    assert stored["status"] == "COMPLETED"
    assert stored["completedAt"] >= stored["createdAt"]
    assert stored["synthetic"] is False
    assert stored["trendSource"] == "data"
    assert len(stored["trends"]) == 12
    assert stored["summary"]["statistics"]["totalRecords"] == 30
    assert stored["actionItems"][-1]["title"] == "Review Analysis of churn_data.csv"
    assert any(kpi["name"] == "Customer Churn Rate" for kpi in stored["kpis"])


def test_analysis_of_unparsed_file_is_synthetic(env):
    _upload(env, name="deck.pdf", body=b"%PDF-1.4", mime="application/pdf", file_id="f3")
    env["records"].create(KIND_ANALYSIS, "a3", {"fileId": "f3", "type": "SUMMARY", "status": "PROCESSING"})

    result = run_analysis_job("a3", env["records"], env["rows"], rng=random.Random(0))
    assert result.synthetic is True
    stored = env["records"].get(KIND_ANALYSIS, "a3")
    assert stored["status"] == "COMPLETED"
    assert stored["synthetic"] is True
    assert stored["trends"] == []
    assert "deck.pdf" in stored["summary"]["executive"]


def test_analysis_without_file_fails(env):
    env["records"].create(KIND_ANALYSIS, "a4", {"fileId": "nope", "type": "FULL_ANALYSIS"})
    assert run_analysis_job("a4", env["records"], env["rows"]) is None
    stored = env["records"].get(KIND_ANALYSIS, "a4")
    assert stored["status"] == "FAILED"
    assert "nope" in stored["error"]


def test_missing_analysis_is_ignored(env):
    assert run_analysis_job("ghost", env["records"], env["rows"]) is None
