"""S3-backed storage for uploaded files."""
from __future__ import annotations

import logging
import re
import time
from typing import Optional

from botocore.exceptions import ClientError

logger = logging.getLogger("reportingagent.jobs")

_MISSING_CODES = ("404", "NotFound", "NoSuchKey")
_PATH_SEPARATORS = re.compile(r"[\\/]+")


class BlobNotFoundError(LookupError):
    """Raised when a storage path does not resolve to an object."""


def upload_key_for(name: str, now_ms: Optional[int] = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    safe = _PATH_SEPARATORS.sub("_", name.strip()) or "upload"
    return f"uploads/{now_ms}-{safe}"


class BlobStore:
    def __init__(self, client, bucket: str, prefix: str = "") -> None:
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")

    def put(self, body: bytes, name: str, content_type: str = "application/octet-stream") -> str:
        """Store ``body`` under a fresh upload key and return its storage path."""
        key = upload_key_for(name)
        path = f"{self.prefix}/{key}" if self.prefix else key
        self.client.put_object(Bucket=self.bucket, Key=path, Body=body, ContentType=content_type)
        logger.info("blob stored", extra={"bucket": self.bucket, "key": path, "bytes": len(body)})
        return path

    def get(self, path: str) -> bytes:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in _MISSING_CODES:
                raise BlobNotFoundError(f"no object stored at {path}") from e
            raise
        return obj["Body"].read()
