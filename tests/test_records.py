from decimal import Decimal

import pytest
from botocore.exceptions import ClientError

from services.common.records import (
    KIND_ANALYSIS,
    KIND_FILE,
    RecordStore,
    from_dynamo,
    record_key,
    to_dynamo,
)
from tests.integration.utils.aws import FakeDynamoTable


def test_floats_become_decimals_and_back():
    stored = to_dynamo({"value": 1.25, "items": [2.5, {"x": 3}], "ok": True, "none": None})
    assert stored == {"value": Decimal("1.25"), "items": [Decimal("2.5"), {"x": 3}], "ok": True, "none": None}
    assert from_dynamo(stored) == {"value": 1.25, "items": [2.5, {"x": 3}], "ok": True, "none": None}


def test_integral_decimals_read_back_as_ints():
    assert from_dynamo(Decimal("42")) == 42
    assert isinstance(from_dynamo(Decimal("42")), int)


def test_record_key_layout():
    assert record_key(KIND_FILE, "abc") == {"pk": "file#abc", "sk": "meta"}


def test_create_get_and_update():
    table = FakeDynamoTable()
    store = RecordStore(table)
    created = store.create(KIND_FILE, "f1", {"originalName": "a.csv", "size": 10})
    assert created["id"] == "f1" and created["kind"] == KIND_FILE
    assert "pk" not in created

    store.update(KIND_FILE, "f1", status="COMPLETED", metadata={"ratio": 0.5})
    record = store.get(KIND_FILE, "f1")
    assert record["status"] == "COMPLETED"
    assert record["metadata"] == {"ratio": 0.5}
    assert record["updatedAt"] >= record["createdAt"]
    assert store.get(KIND_FILE, "missing") is None


def test_create_refuses_duplicates():
    store = RecordStore(FakeDynamoTable())
    store.create(KIND_FILE, "f1", {})
    with pytest.raises(ClientError):
        store.create(KIND_FILE, "f1", {})


def test_list_follows_scan_pages_and_filters():
    table = FakeDynamoTable(page_size=2)
    store = RecordStore(table)
    for index in range(5):
        store.create(KIND_FILE, f"f{index}", {"status": "COMPLETED" if index % 2 else "UPLOADED"})
    store.create(KIND_ANALYSIS, "a1", {"fileId": "f1"})

    assert len(store.list(KIND_FILE)) == 5
    assert table.scan_calls == 3
    assert sorted(item["id"] for item in store.list(KIND_FILE, status="COMPLETED")) == ["f1", "f3"]
    assert [item["id"] for item in store.list(KIND_ANALYSIS, fileId="f1")] == ["a1"]
    assert len(store.list(KIND_FILE, limit=2)) == 2
    assert store.count(KIND_FILE, status="UPLOADED") == 3


def test_list_returns_newest_first(monkeypatch):
    clock = iter([100, 300, 200])
    monkeypatch.setattr("services.common.records.epoch", lambda: next(clock))
    store = RecordStore(FakeDynamoTable())
    for record_id in ("old", "new", "mid"):
        store.create(KIND_FILE, record_id, {})
    assert [item["id"] for item in store.list(KIND_FILE)] == ["new", "mid", "old"]
