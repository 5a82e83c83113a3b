"""
Object storage for order assets.

The storage interface is small: store bytes at a key, read them
back. Two backends:

  - ``SpacesObjectStore`` — DigitalOcean Spaces (S3 API) through boto3. The
    bucket is private, so objects are served back through the service's
    ``/upload/spaces/{key}`` proxy instead of a public bucket URL.
  - ``LocalObjectStore`` — files under a local directory. Used when no Spaces
    credentials are configured (standalone / dev / tests).

All methods are blocking; async callers offload them to the thread pool.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from shared.files import ensure_dir, normalize_key

logger = logging.getLogger(__name__)

CACHE_CONTROL = "max-age=31536000"


class ObjectNotFoundError(Exception):
    """Raised when a requested object key does not exist."""


@dataclass
class StoredObject:
    key: str
    data: bytes
    content_type: str = "application/octet-stream"


class ObjectStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> None: ...

    def get(self, key: str) -> StoredObject: ...


# ---------------------------------------------------------------------------
# DigitalOcean Spaces (S3 compatible)
# ---------------------------------------------------------------------------

class SpacesObjectStore:
    def __init__(
        self,
        endpoint: str,
        region: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        max_attempts: int = 3,
        client: Any | None = None,
    ):
        self.bucket = bucket
        if client is not None:
            self._client = client
            return
        session = boto3.session.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
        config = Config(
            region_name=region,
            retries={"max_attempts": max_attempts, "mode": "standard"},
        )
        self._client = session.client("s3", endpoint_url=endpoint, config=config)

    def put(self, key: str, data: bytes, content_type: str) -> None:
        key = normalize_key(key)
        logger.info("Uploading to: %s/%s (%d bytes)", self.bucket, key, len(data))
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            CacheControl=CACHE_CONTROL,
        )

    def get(self, key: str) -> StoredObject:
        key = normalize_key(key)
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code")
            if error_code in {"404", "NoSuchKey", "NotFound"}:
                raise ObjectNotFoundError(f"{self.bucket}/{key}") from exc
            raise
        body = response["Body"].read()
        return StoredObject(
            key=key,
            data=body,
            content_type=response.get("ContentType") or "image/png",
        )


# ---------------------------------------------------------------------------
# Local filesystem
# ---------------------------------------------------------------------------

class LocalObjectStore:
    """Stores each object as a file plus a ``.meta.json`` sidecar."""

    def __init__(self, root: Path):
        self.root = ensure_dir(root)

    def _path(self, key: str) -> Path:
        return self.root / normalize_key(key)

    def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        ensure_dir(path.parent)
        path.write_bytes(data)
        path.with_name(path.name + ".meta.json").write_text(
            json.dumps({"content_type": content_type})
        )
        logger.info("Stored locally: %s (%d bytes)", path, len(data))

    def get(self, key: str) -> StoredObject:
        path = self._path(key)
        if not path.is_file():
            raise ObjectNotFoundError(key)
        meta_path = path.with_name(path.name + ".meta.json")
        content_type = "application/octet-stream"
        if meta_path.is_file():
            content_type = json.loads(meta_path.read_text()).get("content_type", content_type)
        return StoredObject(key=normalize_key(key), data=path.read_bytes(), content_type=content_type)


def build_object_store(
    local_root: Path,
    endpoint: str | None = None,
    region: str = "fra1",
    access_key: str | None = None,
    secret_key: str | None = None,
    bucket: str = "",
) -> ObjectStore:
    """Spaces when fully configured, otherwise the local fallback."""
    if endpoint and access_key and secret_key and bucket:
        logger.info("Object store: Spaces bucket=%s endpoint=%s", bucket, endpoint)
        return SpacesObjectStore(
            endpoint=endpoint,
            region=region,
            access_key=access_key,
            secret_key=secret_key,
            bucket=bucket,
        )
    logger.info("Object store: local directory %s (Spaces not configured)", local_root)
    return LocalObjectStore(local_root)
