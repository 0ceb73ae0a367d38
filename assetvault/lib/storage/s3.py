"""S3-compatible storage backend (requires ``pip install assetvault[s3]``)."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

try:
    import aioboto3
    from botocore.exceptions import ClientError
except ImportError as exc:
    raise ImportError(
        "S3 storage backend requires aioboto3. Install it with: pip install assetvault[s3]"
    ) from exc

from assetvault.lib.exceptions import NotFound
from assetvault.lib.keys import checksum
from assetvault.lib.storage.base import (
    REMOTE,
    ObjectInfo,
    PresignOptions,
    StoredObject,
    content_disposition,
)

if TYPE_CHECKING:
    from assetvault.config import S3Config

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_missing(exc: ClientError) -> bool:
    return str(exc.response.get("Error", {}).get("Code")) in _MISSING_CODES


class S3StorageBackend:
    """Store files in an S3-compatible bucket."""

    backend_id = REMOTE

    def __init__(self, config: S3Config, cdn_url: str | None = None) -> None:
        self._config = config
        self._cdn_url = cdn_url.rstrip("/") if cdn_url else None
        self._session = aioboto3.Session()

    def _client_kwargs(self) -> dict:
        kwargs: dict = {
            "region_name": self._config.region,
            "aws_access_key_id": self._config.access_key_id,
            "aws_secret_access_key": self._config.secret_access_key,
        }
        if self._config.endpoint_url:
            kwargs["endpoint_url"] = self._config.endpoint_url
        return kwargs

    def _client(self):
        return self._session.client("s3", **self._client_kwargs())

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        digest = checksum(data)
        object_metadata = {**(metadata or {}), "checksum": digest}

        async with self._client() as s3:
            await s3.put_object(
                Bucket=self._config.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=object_metadata,
            )

        return StoredObject(
            key=key,
            backend=REMOTE,
            url=self.public_url(key),
            content_type=content_type,
            size=len(data),
            checksum=digest,
        )

    async def get(self, key: str) -> bytes:
        async with self._client() as s3:
            try:
                response = await s3.get_object(Bucket=self._config.bucket, Key=key)
            except ClientError as exc:
                if _is_missing(exc):
                    raise NotFound(key) from exc
                raise
            return await response["Body"].read()

    async def delete(self, key: str) -> None:
        # DeleteObject succeeds for missing keys.
        async with self._client() as s3:
            await s3.delete_object(Bucket=self._config.bucket, Key=key)

    async def exists(self, key: str) -> bool:
        async with self._client() as s3:
            try:
                await s3.head_object(Bucket=self._config.bucket, Key=key)
                return True
            except ClientError as exc:
                if _is_missing(exc):
                    return False
                raise

    async def presign(self, key: str, options: PresignOptions) -> str:
        params = {"Bucket": self._config.bucket, "Key": key}
        disposition = content_disposition(options)
        if disposition:
            params["ResponseContentDisposition"] = disposition

        async with self._client() as s3:
            url = await s3.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=options.expires_in,
            )
        return self._rewrite_to_cdn(url)

    def public_url(self, key: str) -> str:
        if self._cdn_url:
            return f"{self._cdn_url}/{key}"
        if self._config.endpoint_url:
            base = self._config.endpoint_url.rstrip("/")
            return f"{base}/{self._config.bucket}/{key}"
        return f"https://{self._config.bucket}.s3.{self._config.region}.amazonaws.com/{key}"

    async def copy(self, source_key: str, destination_key: str) -> None:
        async with self._client() as s3:
            await s3.copy_object(
                Bucket=self._config.bucket,
                CopySource={"Bucket": self._config.bucket, "Key": source_key},
                Key=destination_key,
            )

    async def head(self, key: str) -> ObjectInfo:
        async with self._client() as s3:
            try:
                response = await s3.head_object(Bucket=self._config.bucket, Key=key)
            except ClientError as exc:
                if _is_missing(exc):
                    raise NotFound(key) from exc
                raise
        return ObjectInfo(
            key=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType", "application/octet-stream"),
            last_modified=response.get("LastModified") or datetime.now(UTC),
            metadata=response.get("Metadata", {}),
        )

    async def list_keys(self, prefix: str = "", max_keys: int = 1000) -> list[str]:
        keys: list[str] = []
        async with self._client() as s3:
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self._config.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    keys.append(obj["Key"])
                    if len(keys) >= max_keys:
                        return keys
        return keys

    async def presign_upload(self, key: str, content_type: str, expires_in: int = 300) -> str:
        async with self._client() as s3:
            return await s3.generate_presigned_url(
                "put_object",
                Params={"Bucket": self._config.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expires_in,
            )

    async def close(self) -> None:
        """No persistent resources to clean up."""

    def _rewrite_to_cdn(self, url: str) -> str:
        """Swap the bucket origin for the CDN edge host, keeping path and query."""
        if not self._cdn_url:
            return url
        signed = urlsplit(url)
        edge = urlsplit(self._cdn_url)
        path = signed.path
        bucket_prefix = f"/{self._config.bucket}/"
        if path.startswith(bucket_prefix):
            path = path[len(bucket_prefix) - 1:]
        return urlunsplit((edge.scheme, edge.netloc, edge.path.rstrip("/") + path, signed.query, ""))
