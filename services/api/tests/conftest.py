import importlib
import io
import hashlib
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError
import anyio
import httpx


def _client_error(code: str, operation: str):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class InMemoryS3:
    def __init__(self):
        self._buckets: dict[str, dict[str, dict]] = {}

    def _bucket(self, bucket: str) -> dict[str, dict]:
        return self._buckets.setdefault(bucket, {})

    def put_object(self, Bucket: str, Key: str, Body, ContentType: str | None = None):
        if isinstance(Body, str):
            body_bytes = Body.encode("utf-8")
        elif hasattr(Body, "read"):
            body_bytes = Body.read()
        else:
            body_bytes = Body
        metadata = {
            "Body": body_bytes,
            "LastModified": datetime.now(timezone.utc),
            "Size": len(body_bytes),
            "ContentType": ContentType,
            "ETag": hashlib.md5(body_bytes).hexdigest(),
        }
        self._bucket(Bucket)[Key] = metadata
        return {"ResponseMetadata": {"HTTPStatusCode": 200}}

    def get_object(self, Bucket: str, Key: str):
        bucket = self._bucket(Bucket)
        if Key not in bucket:
            raise _client_error("NoSuchKey", "GetObject")
        metadata = bucket[Key]
        return {
            "Body": io.BytesIO(metadata["Body"]),
            "ContentLength": metadata["Size"],
            "ETag": metadata["ETag"],
            "LastModified": metadata["LastModified"],
        }

    def keys(self, bucket: str) -> list[str]:
        return sorted(self._bucket(bucket))


class FailingS3(InMemoryS3):
    def put_object(self, Bucket: str, Key: str, Body, ContentType: str | None = None):
        raise _client_error("ServiceUnavailable", "PutObject")


class FakeDynamoTable:
    def __init__(self):
        self._items: dict[tuple[str, str], dict] = {}

    def put_item(self, Item: dict, ConditionExpression: str | None = None):
        key = (Item["pk"], Item["sk"])
        if ConditionExpression and key in self._items:
            raise _client_error("ConditionalCheckFailedException", "PutItem")
        self._items[key] = dict(Item)
        return {"ResponseMetadata": {"HTTPStatusCode": 200}}

    def get_item(self, Key: dict):
        key = (Key["pk"], Key["sk"])
        item = self._items.get(key)
        return {"Item": dict(item)} if item else {}

    def update_item(self, Key: dict, UpdateExpression: str, ExpressionAttributeNames: dict, ExpressionAttributeValues: dict):
        key = (Key["pk"], Key["sk"])
        if key not in self._items:
            raise _client_error("ResourceNotFoundException", "UpdateItem")
        item = self._items[key]
        expression = UpdateExpression.replace("SET", "").strip()
        for part in expression.split(","):
            name_alias, value_alias = [segment.strip() for segment in part.split("=", 1)]
            attribute_name = ExpressionAttributeNames.get(name_alias, name_alias)
            value = ExpressionAttributeValues[value_alias]
            item[attribute_name] = value
        self._items[key] = item
        return {"Attributes": dict(item)}

    def scan(self, FilterExpression: str, ExpressionAttributeNames: dict, ExpressionAttributeValues: dict, ExclusiveStartKey: dict | None = None):
        conditions = []
        for clause in FilterExpression.split(" AND "):
            name_alias, value_alias = [segment.strip() for segment in clause.split("=", 1)]
            conditions.append((ExpressionAttributeNames[name_alias], ExpressionAttributeValues[value_alias]))
        items = [
            dict(item)
            for item in self._items.values()
            if all(item.get(name) == value for name, value in conditions)
        ]
        return {"Items": items, "Count": len(items)}

    def items_of(self, kind: str) -> list[dict]:
        return [dict(item) for item in self._items.values() if item.get("kind") == kind]


class FakeCloudWatch:
    def __init__(self):
        self.metric_calls = []

    def put_metric_data(self, Namespace, MetricData):
        self.metric_calls.append({"Namespace": Namespace, "MetricData": MetricData})
        return {"ResponseMetadata": {"HTTPStatusCode": 200}}


class FakeStepFunctions:
    def __init__(self):
        self.executions = []
        self._error = None

    def fail_with(self, error: Exception) -> None:
        self._error = error

    def start_execution(self, **kwargs):
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        self.executions.append(dict(kwargs))
        return {"executionArn": f"arn:aws:states:local:execution:{kwargs.get('name', 'execution')}"}


class FakeCompletionClient:
    def __init__(self, text: str = "Revenue grew steadily; focus on the East region."):
        self.text = text
        self.prompts = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.text


@pytest.fixture()
def api_app(monkeypatch):
    monkeypatch.setenv("BUCKET_NAME", "reporting-uploads")
    monkeypatch.setenv("TABLE_NAME", "reporting-records")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("FOLDER_PREFIX", raising=False)
    monkeypatch.delenv("COMPLETION_API_URL", raising=False)
    monkeypatch.delenv("MAX_UPLOAD_BYTES", raising=False)
    monkeypatch.delenv("STATE_MACHINE_ARN", raising=False)

    from services.api import app as app_module

    importlib.reload(app_module)

    fake_s3 = InMemoryS3()
    fake_table = FakeDynamoTable()
    fake_cw = FakeCloudWatch()
    fake_sfn = FakeStepFunctions()

    app_module.s3 = fake_s3
    app_module.table = fake_table
    app_module.cloudwatch = fake_cw
    app_module.sfn = fake_sfn

    transport = httpx.ASGITransport(app=app_module.app)
    async_client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    class SyncClient:
        def request(self, method: str, url: str, **kwargs):
            return anyio.run(lambda: async_client.request(method, url, **kwargs))

        def get(self, url: str, **kwargs):
            return self.request("GET", url, **kwargs)

        def post(self, url: str, **kwargs):
            return self.request("POST", url, **kwargs)

    try:
        yield {
            "client": SyncClient(),
            "module": app_module,
            "s3": fake_s3,
            "table": fake_table,
            "cloudwatch": fake_cw,
            "sfn": fake_sfn,
        }
    finally:
        anyio.run(async_client.aclose)
