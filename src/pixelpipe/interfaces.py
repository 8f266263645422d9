"""Interface definitions for pixelpipe components."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pixelpipe.models.storage import ObjectStream, StoredObject
    from pixelpipe.models.upload import WriteCredential


class Shutdownable(ABC):
    """Async shutdown interface for managed components."""

    @abstractmethod
    async def shutdown(self, timeout: float | None = None) -> None:
        """Release resources and stop background work."""
        raise NotImplementedError


class ObjectStore(Shutdownable, ABC):
    """Holds originals and derived artifacts, and issues direct-write credentials.

    The store arbitrates concurrent writers to the same key; callers never lock.
    """

    @abstractmethod
    async def open_read(self, bucket: str, key: str) -> ObjectStream:
        """Open a read stream on an object. Raises if it cannot be opened."""
        raise NotImplementedError

    @abstractmethod
    async def put_bytes(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        *,
        cache_control: str | None = None,
    ) -> StoredObject:
        """Write an object atomically, overwriting any previous content.

        Readers see either the previous content or the new content, never a
        partial write.
        """
        raise NotImplementedError

    @abstractmethod
    def issue_write_credential(
        self,
        bucket: str,
        key: str,
        content_type: str,
        expires_in_s: int,
        *,
        now: datetime,
    ) -> WriteCredential:
        """Return a credential allowing exactly one key/content type until expiry.

        The constraints are encoded in the credential itself; the store
        enforces them without session state on our side.
        """
        raise NotImplementedError

    @abstractmethod
    def public_url(self, bucket: str, key: str) -> str:
        """Return the read URL an object has (or will have) once written."""
        raise NotImplementedError

    @abstractmethod
    async def exists(self, bucket: str, key: str) -> bool:
        """Check if an object exists."""
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Health check. Returns True if the store is reachable."""
        raise NotImplementedError


class IdentityVerifier(Shutdownable, ABC):
    """Resolves the verified owner id of an incoming request.

    Identity and session management live outside this service; plugins only
    check the proof the caller presents.
    """

    @abstractmethod
    async def resolve_owner(self, headers: Mapping[str, str]) -> str | None:
        """Return the verified owner id, or None if the request is unauthenticated."""
        raise NotImplementedError

    async def shutdown(self, timeout: float | None = None) -> None:
        _ = timeout
