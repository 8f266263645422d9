"""S3 (and S3-compatible) object store plugin."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from pixelpipe.interfaces import ObjectStore
from pixelpipe.models.config import S3StorageConfig
from pixelpipe.models.storage import ObjectStream, StoredObject
from pixelpipe.models.upload import WriteCredential
from pixelpipe.plugins.registry import PluginType, plugin

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


@plugin(plugin_type=PluginType.STORAGE, name="s3")
class S3ObjectStore(ObjectStore):
    """Object store backed by boto3.

    Uses boto3 credential resolution (instance role, env, profile) unless
    `access_key_id_env` / `secret_access_key_env` name explicit env vars.
    Blocking client calls run in a worker thread.
    """

    config_cls = S3StorageConfig

    @classmethod
    def create(cls, config: S3StorageConfig) -> ObjectStore:
        return cls(config)

    def __init__(self, config: S3StorageConfig, *, client: Any | None = None) -> None:
        self._region = config.region
        self._endpoint_url = config.endpoint_url
        self._public_url_template = config.public_url_template
        self._client = client if client is not None else self._create_client(config)
        self._shutdown_called = False
        logger.info(
            "S3ObjectStore initialized: region=%s endpoint=%s",
            self._region or "default",
            self._endpoint_url or "aws",
        )

    def _create_client(self, config: S3StorageConfig) -> Any:
        boto_config = BotoConfig(
            retries={"max_attempts": config.max_attempts, "mode": "standard"},
            region_name=config.region,
            signature_version="s3v4",
        )
        kwargs: dict[str, Any] = {"config": boto_config}
        if config.endpoint_url:
            kwargs["endpoint_url"] = config.endpoint_url

        if config.access_key_id_env and config.secret_access_key_env:
            access_key = os.getenv(config.access_key_id_env)
            secret_key = os.getenv(config.secret_access_key_env)
            if not access_key or not secret_key:
                raise ValueError(
                    f"Missing S3 credentials. Set {config.access_key_id_env} and "
                    f"{config.secret_access_key_env}."
                )
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key

        return boto3.client("s3", **kwargs)

    async def open_read(self, bucket: str, key: str) -> ObjectStream:
        self._ensure_open()
        response = await asyncio.to_thread(self._client.get_object, Bucket=bucket, Key=key)
        return ObjectStream(
            body=response["Body"],
            content_length=response.get("ContentLength"),
            content_type=response.get("ContentType"),
        )

    async def put_bytes(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        *,
        cache_control: str | None = None,
    ) -> StoredObject:
        self._ensure_open()
        kwargs: dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            kwargs["CacheControl"] = cache_control
        # S3 PUT replaces the whole object atomically.
        await asyncio.to_thread(self._client.put_object, **kwargs)
        return StoredObject(
            bucket=bucket, key=key, content_type=content_type, byte_length=len(data)
        )

    def issue_write_credential(
        self,
        bucket: str,
        key: str,
        content_type: str,
        expires_in_s: int,
        *,
        now: datetime,
    ) -> WriteCredential:
        # ContentType is part of the signature, so S3 rejects any other type.
        url = self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={"Bucket": bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_in_s,
        )
        return WriteCredential(
            url=url,
            method="PUT",
            headers={"Content-Type": content_type},
            expires_at=now + timedelta(seconds=expires_in_s),
        )

    def public_url(self, bucket: str, key: str) -> str:
        quoted_key = quote(key, safe="/")
        if self._public_url_template:
            return self._public_url_template.format(bucket=bucket, key=quoted_key)
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{bucket}/{quoted_key}"
        if self._region:
            return f"https://{bucket}.s3.{self._region}.amazonaws.com/{quoted_key}"
        return f"https://{bucket}.s3.amazonaws.com/{quoted_key}"

    async def exists(self, bucket: str, key: str) -> bool:
        self._ensure_open()
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return False
            raise
        return True

    async def ping(self) -> bool:
        try:
            await asyncio.to_thread(self._client.list_buckets)
        except Exception as exc:
            logger.warning("S3 ping failed: %s", exc)
            return False
        return True

    async def shutdown(self, timeout: float | None = None) -> None:
        _ = timeout
        if self._shutdown_called:
            return
        self._shutdown_called = True
        close = getattr(self._client, "close", None)
        if callable(close):
            close()

    def _ensure_open(self) -> None:
        if self._shutdown_called:
            raise RuntimeError("Object store has been shut down")
