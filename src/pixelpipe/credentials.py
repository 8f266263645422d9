"""Signed token creation and verification helpers.

Tokens look like `v1.<payload>.<signature>` where the payload is a compact
JSON object of claims and the signature is an HMAC-SHA256 under a key
derived from the shared secret and a per-purpose signing context. Claims
always include `scope` and `exp` (epoch seconds).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

TOKEN_VERSION = "v1"
WRITE_SCOPE = "object_write"


class TokenErrorCode(StrEnum):
    MALFORMED = "MALFORMED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    SCOPE_MISMATCH = "SCOPE_MISMATCH"
    CLAIM_MISMATCH = "CLAIM_MISMATCH"
    EXPIRED = "EXPIRED"


class TokenError(ValueError):
    """Raised when token validation fails."""

    def __init__(self, code: TokenErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code


def issue_token(
    *,
    secret: str,
    context: bytes,
    scope: str,
    expires_at: datetime,
    claims: Mapping[str, Any] | None = None,
) -> str:
    """Sign `claims` plus scope/expiry into a token."""
    body: dict[str, Any] = dict(claims or {})
    body["scope"] = scope
    body["exp"] = int(expires_at.timestamp())
    payload_json = json.dumps(
        body,
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=True,
    ).encode("utf-8")
    payload_segment = _base64url_encode(payload_json)
    signature = _base64url_encode(_sign(secret, context, _signing_input(payload_segment)))
    return f"{TOKEN_VERSION}.{payload_segment}.{signature}"


def verify_token(
    *,
    secret: str,
    context: bytes,
    token: str,
    scope: str,
    expected: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Validate a token and return its claims.

    Every item of `expected` must equal the corresponding claim.

    Raises:
        TokenError: On any validation failure.
    """
    token_parts = token.split(".")
    if len(token_parts) != 3:
        raise TokenError(TokenErrorCode.MALFORMED, "Token format is invalid")

    version, payload_segment, signature_segment = token_parts
    if version != TOKEN_VERSION:
        raise TokenError(TokenErrorCode.MALFORMED, "Token version is invalid")

    expected_signature = _base64url_encode(
        _sign(secret, context, _signing_input(payload_segment))
    )
    if not hmac.compare_digest(signature_segment, expected_signature):
        raise TokenError(TokenErrorCode.INVALID_SIGNATURE, "Token signature is invalid")

    claims = _decode_payload(payload_segment)
    if claims.get("scope") != scope:
        raise TokenError(TokenErrorCode.SCOPE_MISMATCH, "Token scope is invalid")
    for name, value in (expected or {}).items():
        if claims.get(name) != value:
            raise TokenError(TokenErrorCode.CLAIM_MISMATCH, f"Token claim '{name}' is invalid")

    now_ts = int((now or datetime.now(UTC)).timestamp())
    if claims["exp"] <= now_ts:
        raise TokenError(TokenErrorCode.EXPIRED, "Token has expired")
    return claims


def _decode_payload(payload_segment: str) -> dict[str, Any]:
    try:
        raw_payload = _base64url_decode(payload_segment)
        payload_obj = json.loads(raw_payload.decode("utf-8"))
    except Exception as exc:
        raise TokenError(TokenErrorCode.MALFORMED, "Token payload is malformed") from exc

    if not isinstance(payload_obj, dict):
        raise TokenError(TokenErrorCode.MALFORMED, "Token payload is malformed")
    if not isinstance(payload_obj.get("scope"), str) or not isinstance(
        payload_obj.get("exp"), int
    ):
        raise TokenError(TokenErrorCode.MALFORMED, "Token payload is malformed")
    return payload_obj


def _derive_signing_key(secret: str, context: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), context, hashlib.sha256).digest()


def _sign(secret: str, context: bytes, message: bytes) -> bytes:
    return hmac.new(_derive_signing_key(secret, context), message, hashlib.sha256).digest()


def _signing_input(payload_segment: str) -> bytes:
    return f"{TOKEN_VERSION}.{payload_segment}".encode()


def _base64url_encode(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).rstrip(b"=").decode("ascii")


def _base64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("ascii"))
