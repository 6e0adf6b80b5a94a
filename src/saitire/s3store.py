from __future__ import annotations

import logging

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from .blobstore import DEFAULT_PAGE_SIZE, BlobObject, BlobStore, ListResult, RevisionConflict
from .utils import log_event

logger = logging.getLogger("saitire.blobstore")


class S3BlobStore(BlobStore):
    """S3 or S3-compatible bucket; revision tags are object ETags."""

    name = "s3"

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("s3_bucket_required")
        self._bucket = bucket
        self._prefix = prefix.strip("/") + "/" if prefix.strip("/") else ""
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            config=BotoConfig(
                retries={"max_attempts": 3, "mode": "adaptive"},
                connect_timeout=5,
                read_timeout=30,
            ),
        )

    def _full_key(self, key: str) -> str:
        return self._prefix + key

    def _strip_key(self, full_key: str) -> str:
        return full_key[len(self._prefix) :]

    def get(self, key: str) -> bytes | None:
        data, _ = self.get_with_revision(key)
        return data

    def get_with_revision(self, key: str) -> tuple[bytes | None, str]:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=self._full_key(key))
        except ClientError as exc:
            if _error_code(exc) in {"NoSuchKey", "404"}:
                return None, ""
            raise
        return response["Body"].read(), str(response.get("ETag") or "")

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        if_revision: str | None = None,
    ) -> str:
        kwargs = {
            "Bucket": self._bucket,
            "Key": self._full_key(key),
            "Body": data,
            "ContentType": content_type,
        }
        if if_revision == "":
            kwargs["IfNoneMatch"] = "*"
        elif if_revision is not None:
            kwargs["IfMatch"] = if_revision
        try:
            response = self._client.put_object(**kwargs)
        except ClientError as exc:
            if _error_code(exc) in {"PreconditionFailed", "412", "ConditionalRequestConflict"}:
                raise RevisionConflict(f"revision_conflict: {key}") from exc
            raise
        log_event(logger, logging.DEBUG, "blob_put", store=self.name, key=key, size=len(data))
        return str(response.get("ETag") or "")

    def list(
        self, prefix: str = "", cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> ListResult:
        kwargs = {
            "Bucket": self._bucket,
            "Prefix": self._full_key(prefix),
            "MaxKeys": limit,
        }
        if cursor:
            kwargs["ContinuationToken"] = cursor
        response = self._client.list_objects_v2(**kwargs)
        objects = [
            BlobObject(key=self._strip_key(item["Key"]), size=int(item.get("Size") or 0))
            for item in response.get("Contents") or []
        ]
        truncated = bool(response.get("IsTruncated"))
        return ListResult(
            objects=objects,
            truncated=truncated,
            cursor=response.get("NextContinuationToken") if truncated else None,
        )

    def delete(self, key: str) -> bool:
        if self.revision(key) is None:
            return False
        self._client.delete_object(Bucket=self._bucket, Key=self._full_key(key))
        return True

    def revision(self, key: str) -> str | None:
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=self._full_key(key))
        except ClientError as exc:
            if _error_code(exc) in {"NoSuchKey", "404", "NotFound"}:
                return None
            raise
        return str(response.get("ETag") or "")


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))
