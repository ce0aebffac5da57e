"""DynamoDB-backed persistence for files, analyses and chat history.

Every record lives under ``pk = "<kind>#<id>"`` / ``sk = "meta"`` and carries
its ``kind`` so listings can filter a single-table scan.
"""
from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

KIND_FILE = "file"
KIND_ANALYSIS = "analysis"
KIND_CHAT_SESSION = "chatsession"
KIND_CHAT_MESSAGE = "chatmessage"

_KEY_FIELDS = ("pk", "sk")


def epoch() -> int:
    return int(time.time())


def to_dynamo(value: Any) -> Any:
    """Floats are not accepted by the DynamoDB resource API."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {str(key): to_dynamo(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(item) for item in value]
    return value


def from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, Mapping):
        return {key: from_dynamo(item) for key, item in value.items()}
    if isinstance(value, list):
        return [from_dynamo(item) for item in value]
    return value


def record_key(kind: str, record_id: str) -> Dict[str, str]:
    return {"pk": f"{kind}#{record_id}", "sk": "meta"}


class RecordStore:
    def __init__(self, table) -> None:
        self.table = table

    def _public(self, item: Mapping[str, Any]) -> Dict[str, Any]:
        return {key: from_dynamo(value) for key, value in item.items() if key not in _KEY_FIELDS}

    def create(self, kind: str, record_id: str, attrs: Mapping[str, Any]) -> Dict[str, Any]:
        now = epoch()
        item: Dict[str, Any] = {
            **record_key(kind, record_id),
            "id": record_id,
            "kind": kind,
            "createdAt": now,
            "updatedAt": now,
        }
        item.update(to_dynamo(dict(attrs)))
        self.table.put_item(Item=item, ConditionExpression="attribute_not_exists(pk) AND attribute_not_exists(sk)")
        return self._public(item)

    def get(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        res = self.table.get_item(Key=record_key(kind, record_id))
        item = res.get("Item")
        return self._public(item) if item else None

    def update(self, kind: str, record_id: str, **attrs: Any) -> None:
        expr_names = {"#u": "updatedAt"}
        expr_vals: Dict[str, Any] = {":u": epoch()}
        set_parts = ["#u = :u"]

        for key, value in attrs.items():
            placeholder = f":{key}"
            expr_vals[placeholder] = to_dynamo(value)
            expr_name = f"#{key}"
            expr_names[expr_name] = key
            set_parts.append(f"{expr_name} = {placeholder}")

        self.table.update_item(
            Key=record_key(kind, record_id),
            UpdateExpression="SET " + ", ".join(set_parts),
            ExpressionAttributeNames=expr_names,
            ExpressionAttributeValues=expr_vals,
        )

    def list(self, kind: str, *, limit: Optional[int] = None, **filters: Any) -> List[Dict[str, Any]]:
        """Records of one kind, newest first, optionally filtered by attribute equality."""
        expr_names = {"#k": "kind"}
        expr_vals: Dict[str, Any] = {":k": kind}
        conditions = ["#k = :k"]
        for key, value in filters.items():
            expr_names[f"#{key}"] = key
            expr_vals[f":{key}"] = to_dynamo(value)
            conditions.append(f"#{key} = :{key}")

        kwargs: Dict[str, Any] = {
            "FilterExpression": " AND ".join(conditions),
            "ExpressionAttributeNames": expr_names,
            "ExpressionAttributeValues": expr_vals,
        }
        items: List[Dict[str, Any]] = []
        while True:
            res = self.table.scan(**kwargs)
            items.extend(self._public(item) for item in res.get("Items", []))
            last_key = res.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key

        items.sort(key=lambda item: item.get("createdAt") or 0, reverse=True)
        return items[:limit] if limit is not None else items

    def count(self, kind: str, **filters: Any) -> int:
        return len(self.list(kind, **filters))
