"""S3 artifact store (boto3).

Archives are stored under ``<prefix>/<filename>``.  ``get()`` accepts the
plain key, an ``s3://bucket/key`` URI, or the bucket's https URL.  boto3 is
blocking, so every call runs in a worker thread.
"""

import asyncio
from typing import Any
from urllib.parse import unquote, urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from db_backups.config.models import StoreConfig
from db_backups.store.base import StoredArtifact


class S3ArtifactStore:
    """Artifact store backed by an S3 bucket.

    Args:
        bucket: Bucket name.
        region: AWS region of the bucket.
        prefix: Key prefix for archives.
        client: Optional pre-built boto3 S3 client (tests inject a stub).
        **client_kwargs: Forwarded to ``boto3.client("s3", ...)``.
    """

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        prefix: str = "db_backups",
        client: Any = None,
        **client_kwargs: Any,
    ) -> None:
        self._bucket = bucket
        self._region = region or "us-east-1"
        self._prefix = prefix.strip("/")
        self._client = client or boto3.client("s3", region_name=self._region, **client_kwargs)

    @classmethod
    def from_config(cls, config: StoreConfig) -> "S3ArtifactStore":
        """Build a store from the ``[store]`` configuration."""
        if not config.s3_bucket:
            raise ValueError("S3 store requires s3_bucket (S3_BUCKET)")
        kwargs: dict[str, Any] = {}
        if config.s3_access_key_id and config.s3_secret_access_key:
            kwargs["aws_access_key_id"] = config.s3_access_key_id
            kwargs["aws_secret_access_key"] = config.s3_secret_access_key
        return cls(config.s3_bucket, region=config.s3_region, prefix=config.s3_prefix, **kwargs)

    def url_for(self, key: str) -> str:
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def key_for(self, ref: str) -> str:
        """Resolve a key, ``s3://`` URI, or bucket https URL to an object key."""
        parsed = urlparse(ref)
        if parsed.scheme == "s3":
            if parsed.netloc != self._bucket:
                raise ValueError(f"Artifact {ref} is not in bucket {self._bucket}")
            return unquote(parsed.path.lstrip("/"))
        if parsed.scheme in ("http", "https"):
            if not parsed.netloc.startswith(f"{self._bucket}."):
                raise ValueError(f"Artifact {ref} is not in bucket {self._bucket}")
            return unquote(parsed.path.lstrip("/"))
        return ref

    async def put(self, data: bytes, filename: str, mime_type: str) -> StoredArtifact:
        key = f"{self._prefix}/{filename}" if self._prefix else filename
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=mime_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise OSError(f"Failed to upload {key}: {e}") from e
        return StoredArtifact(artifact_id=key, artifact_url=self.url_for(key))

    async def get(self, ref: str) -> bytes:
        key = self.key_for(ref)
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self._bucket, Key=key
            )
            body = response.get("Body")
            if body is None:
                raise OSError("No data found in S3 object response.")
            return await asyncio.to_thread(body.read)
        except (BotoCoreError, ClientError) as e:
            raise OSError(f"Failed to download {key}: {e}") from e
