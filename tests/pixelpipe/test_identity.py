"""Tests for identity verifier plugins."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from pixelpipe.models.config import SignedTokenIdentityConfig, TrustedHeaderIdentityConfig
from pixelpipe.plugins.identity import header_value
from pixelpipe.plugins.identity.signed_token import SignedTokenIdentity, issue_owner_token
from pixelpipe.plugins.identity.trusted_header import TrustedHeaderIdentity

SECRET = "identity-secret"


@pytest.fixture
def verifier() -> SignedTokenIdentity:
    return SignedTokenIdentity(SignedTokenIdentityConfig(), secret=SECRET)


class TestSignedTokenIdentity:
    """Tests for bearer-token identity."""

    @pytest.mark.asyncio
    async def test_valid_token_resolves_subject(self, verifier: SignedTokenIdentity) -> None:
        # Given: A token issued for u1
        token = issue_owner_token(secret=SECRET, owner_id="u1")

        # When: Resolving the owner
        owner = await verifier.resolve_owner({"authorization": f"Bearer {token}"})

        # Then: Subject is returned
        assert owner == "u1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": ""},
            {"Authorization": "Basic dTE6cGFzcw=="},
            {"Authorization": "Bearer "},
            {"Authorization": "Bearer not-a-token"},
        ],
    )
    async def test_missing_or_malformed_header(
        self, verifier: SignedTokenIdentity, headers: dict[str, str]
    ) -> None:
        assert await verifier.resolve_owner(headers) is None

    @pytest.mark.asyncio
    async def test_token_signed_with_other_secret(self, verifier: SignedTokenIdentity) -> None:
        token = issue_owner_token(secret="someone-else", owner_id="u1")

        assert await verifier.resolve_owner({"Authorization": f"Bearer {token}"}) is None

    @pytest.mark.asyncio
    async def test_expired_token(self, verifier: SignedTokenIdentity) -> None:
        token = issue_owner_token(
            secret=SECRET,
            owner_id="u1",
            ttl_s=60,
            now=datetime.now(UTC) - timedelta(hours=2),
        )

        assert await verifier.resolve_owner({"Authorization": f"Bearer {token}"}) is None

    @pytest.mark.asyncio
    async def test_wrong_scope(self, verifier: SignedTokenIdentity) -> None:
        token = issue_owner_token(secret=SECRET, owner_id="u1", scope="admin")

        assert await verifier.resolve_owner({"Authorization": f"Bearer {token}"}) is None

    def test_secret_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PIXELPIPE_IDENTITY_SECRET", SECRET)

        SignedTokenIdentity.create(SignedTokenIdentityConfig())

    def test_missing_secret_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PIXELPIPE_IDENTITY_SECRET", raising=False)

        with pytest.raises(ValueError, match="PIXELPIPE_IDENTITY_SECRET"):
            SignedTokenIdentity(SignedTokenIdentityConfig())


class TestTrustedHeaderIdentity:
    """Tests for gateway-header identity."""

    @pytest.mark.asyncio
    async def test_reads_configured_header(self) -> None:
        verifier = TrustedHeaderIdentity(TrustedHeaderIdentityConfig(header_name="X-User"))

        assert await verifier.resolve_owner({"x-user": " u7 "}) == "u7"
        assert await verifier.resolve_owner({"X-User": "   "}) is None
        assert await verifier.resolve_owner({}) is None


def test_header_value_is_case_insensitive() -> None:
    headers = {"Content-Type": "image/png"}

    assert header_value(headers, "content-type") == "image/png"
    assert header_value(headers, "Content-Type") == "image/png"
    assert header_value(headers, "Accept") is None
