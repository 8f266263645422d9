"""Storage-related data models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

from pydantic import BaseModel


class StoredObject(BaseModel):
    """Result of a successful object write."""

    bucket: str
    key: str
    content_type: str
    byte_length: int


@dataclass
class ObjectStream:
    """Open read handle on a stored object.

    `body` only needs `read(n)` and `close()`, which both boto3's
    StreamingBody and regular binary files provide.
    """

    body: BinaryIO
    content_length: int | None = None
    content_type: str | None = None

    def close(self) -> None:
        self.body.close()
