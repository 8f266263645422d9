"""Local filesystem object store plugin."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
import tempfile
from collections.abc import Mapping
from datetime import datetime, timedelta
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import quote

from pixelpipe.credentials import WRITE_SCOPE, issue_token, verify_token
from pixelpipe.interfaces import ObjectStore
from pixelpipe.models.config import LocalStorageConfig
from pixelpipe.models.storage import ObjectStream, StoredObject
from pixelpipe.models.upload import WriteCredential
from pixelpipe.naming import normalize_content_type
from pixelpipe.plugins.registry import PluginType, plugin

logger = logging.getLogger(__name__)

_WRITE_CONTEXT = b"pixelpipe-object-write:v1"


@plugin(plugin_type=PluginType.STORAGE, name="local")
class LocalObjectStore(ObjectStore):
    """Filesystem store for development and tests.

    Objects live at `<root>/<bucket>/<key>`. Write credentials are HMAC
    tokens checked by the API's object upload route, and public URLs point
    at the API's media route.
    """

    config_cls = LocalStorageConfig

    @classmethod
    def create(cls, config: LocalStorageConfig) -> ObjectStore:
        return cls(config)

    def __init__(self, config: LocalStorageConfig, *, signing_secret: str | None = None) -> None:
        self.root = Path(config.root).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = config.public_base_url.rstrip("/")
        secret = signing_secret or os.getenv(config.signing_secret_env)
        if not secret:
            raise ValueError(
                f"Missing local store signing secret. Set {config.signing_secret_env}."
            )
        self._secret = secret
        self._shutdown_called = False

    async def open_read(self, bucket: str, key: str) -> ObjectStream:
        self._ensure_open()
        path = self.object_path(bucket, key)
        handle = await asyncio.to_thread(path.open, "rb")
        return ObjectStream(
            body=handle,
            content_length=os.fstat(handle.fileno()).st_size,
            content_type=mimetypes.guess_type(path.name)[0],
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
        _ = cache_control
        dest = self.object_path(bucket, key)
        await asyncio.to_thread(_atomic_write, dest, data)
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
        expires_at = now + timedelta(seconds=expires_in_s)
        token = issue_token(
            secret=self._secret,
            context=_WRITE_CONTEXT,
            scope=WRITE_SCOPE,
            expires_at=expires_at,
            claims={
                "bucket": bucket,
                "key": key,
                "content_type": normalize_content_type(content_type),
            },
        )
        url = (
            f"{self._public_base_url}/api/v1/objects/{bucket}/{quote(key, safe='/')}"
            f"?credential={token}"
        )
        return WriteCredential(
            url=url,
            method="PUT",
            headers={"Content-Type": content_type},
            expires_at=expires_at,
        )

    def verify_write_credential(
        self,
        token: str,
        *,
        bucket: str,
        key: str,
        content_type: str,
        now: datetime | None = None,
    ) -> Mapping[str, Any]:
        """Check a credential authorizes this exact write.

        Raises:
            TokenError: If the token is forged, expired, or for another object/type.
        """
        return verify_token(
            secret=self._secret,
            context=_WRITE_CONTEXT,
            token=token,
            scope=WRITE_SCOPE,
            expected={
                "bucket": bucket,
                "key": key,
                "content_type": normalize_content_type(content_type),
            },
            now=now,
        )

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self._public_base_url}/media/{bucket}/{quote(key, safe='/')}"

    async def exists(self, bucket: str, key: str) -> bool:
        self._ensure_open()
        try:
            path = self.object_path(bucket, key)
        except ValueError:
            return False
        return await asyncio.to_thread(path.is_file)

    async def ping(self) -> bool:
        return self.root.exists() and self.root.is_dir()

    async def shutdown(self, timeout: float | None = None) -> None:
        _ = timeout
        self._shutdown_called = True

    def object_path(self, bucket: str, key: str) -> Path:
        """Filesystem path of `bucket/key`, rejecting anything escaping the root."""
        for label, value in (("bucket", bucket), ("key", key)):
            if not value or "\\" in value:
                raise ValueError(f"Invalid {label}: {value!r}")
            path = PurePosixPath(value)
            if path.is_absolute() or ".." in path.parts:
                raise ValueError(f"Invalid {label}: {value!r}")
        if "/" in bucket:
            raise ValueError(f"Invalid bucket: {bucket!r}")
        return self.root / bucket / Path(*PurePosixPath(key).parts)

    def _ensure_open(self) -> None:
        if self._shutdown_called:
            raise RuntimeError("Object store has been shut down")


def _atomic_write(dest: Path, data: bytes) -> None:
    """Write to a temp file in the same directory, then rename over `dest`."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, dest)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
