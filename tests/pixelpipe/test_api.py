"""Tests for the FastAPI routes."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from pixelpipe.api.server import create_app
from pixelpipe.app import Application
from pixelpipe.models.config import FastAPIServerConfig, LocalStorageConfig, StorageConfig
from pixelpipe.models.events import ProcessingNotification
from pixelpipe.plugins.storage.local import LocalObjectStore
from tests.pixelpipe.mocks import (
    DERIVED,
    ORIGIN,
    MockIdentityVerifier,
    MockObjectStore,
    make_config,
    make_image,
)

AUTH = {"Authorization": "Bearer good-token"}


def _event(key: str, bucket: str = ORIGIN) -> dict[str, Any]:
    return {
        "Records": [
            {
                "eventName": "ObjectCreated:Put",
                "s3": {"bucket": {"name": bucket}, "object": {"key": key, "sequencer": f"s-{key}"}},
            }
        ]
    }


def _client(
    store: Any | None = None, **config_overrides: object
) -> tuple[TestClient, Application, Any]:
    store = store if store is not None else MockObjectStore()
    app = Application(config=make_config(**config_overrides))
    app.build(store=store, identity=MockIdentityVerifier())
    return TestClient(create_app(app)), app, store


def _grant(client: TestClient, content_type: str) -> dict[str, Any]:
    response = client.post("/api/v1/uploads", json={"contentType": content_type}, headers=AUTH)
    assert response.status_code == 200
    return response.json()


class TestUploads:
    """Tests for POST /api/v1/uploads."""

    def test_grant_response(self) -> None:
        """Authenticated JPEG request returns the upload contract."""
        # Given: An authenticated client
        client, _, _ = _client()

        # When: Requesting an upload
        response = client.post("/api/v1/uploads", json={"contentType": "image/jpeg"}, headers=AUTH)

        # Then: camelCase response with predicted URLs
        assert response.status_code == 200
        body = response.json()
        key = body["key"]
        assert key.startswith("u1/") and key.endswith(".jpg")
        stem = key.removesuffix(".jpg")
        assert body["uploadUrl"].startswith(f"https://store.example.com/{ORIGIN}/{key}")
        assert body["url"] == f"https://cdn.example.com/{ORIGIN}/{key}"
        assert body["thumbnail"] == f"https://cdn.example.com/{DERIVED}/{stem}_thumb_300.jpg"
        assert body["metadata"] == {
            "size": 0,
            "dimensions": {"width": 0, "height": 0},
            "format": "JPEG",
        }
        assert body["uploadMethod"] == "PUT"
        assert body["uploadHeaders"] == {"Content-Type": "image/jpeg"}
        assert body["variants"]["webp"] == f"https://cdn.example.com/{DERIVED}/{stem}.webp"
        assert body["uploadId"] in key

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}])
    def test_unauthenticated(self, headers: dict[str, str]) -> None:
        client, _, _ = _client()

        response = client.post(
            "/api/v1/uploads", json={"contentType": "image/jpeg"}, headers=headers
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHENTICATED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_unsupported_content_type(self) -> None:
        client, _, _ = _client()

        response = client.post("/api/v1/uploads", json={"contentType": "text/plain"}, headers=AUTH)

        assert response.status_code == 415
        body = response.json()
        assert body["error_code"] == "UNSUPPORTED_CONTENT_TYPE"
        assert "image/png" in body["supported_content_types"]

    def test_missing_body_field(self) -> None:
        client, _, _ = _client()

        response = client.post("/api/v1/uploads", json={}, headers=AUTH)

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "REQUEST_VALIDATION_FAILED"
        assert body["validation_errors"][0]["loc"] == ["body", "contentType"]


class TestEvents:
    """Tests for POST /api/v1/events."""

    def test_processes_created_objects(self) -> None:
        """A successful batch returns its summary."""
        # Given: An uploaded original
        client, _, store = _client()
        store.seed(ORIGIN, "u1/a.jpg", make_image(500, 400))

        # When: Posting its creation event
        response = client.post("/api/v1/events", json=_event("u1/a.jpg"))

        # Then: Handled and artifacts written
        assert response.status_code == 200
        assert response.json() == {
            "handled": 1,
            "ignored": 0,
            "failed": 0,
            "batchItemFailures": [],
        }
        assert len(store.keys_in(DERIVED)) == 4

    def test_derived_bucket_events_are_ignored(self) -> None:
        client, _, store = _client()

        response = client.post("/api/v1/events", json=_event("u1/a_thumb_150.jpg", bucket=DERIVED))

        assert response.status_code == 200
        assert response.json()["ignored"] == 1
        assert store.read_calls == []

    def test_failed_batch_asks_for_redelivery(self) -> None:
        """A failed unit yields 503 with the items to redeliver."""
        client, _, store = _client()
        store.seed(ORIGIN, "u1/bad.jpg", b"not an image")

        response = client.post("/api/v1/events", json=_event("u1/bad.jpg"))

        assert response.status_code == 503
        body = response.json()
        assert body["error_code"] == "PROCESSING_FAILED"
        assert body["batchItemFailures"] == [{"itemIdentifier": "s-u1/bad.jpg"}]

    def test_invalid_document(self) -> None:
        client, _, _ = _client()

        response = client.post(
            "/api/v1/events", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "EVENT_PAYLOAD_INVALID"

    def test_api_key_required_when_configured(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # Given: Webhook guarded by an API key
        monkeypatch.setenv("PIXELPIPE_TEST_API_KEY", "hook-secret")
        client, _, _ = _client(server=FastAPIServerConfig(api_key_env="PIXELPIPE_TEST_API_KEY"))

        # When: Posting without, then with, the key
        denied = client.post("/api/v1/events", json={"Records": []})
        allowed = client.post(
            "/api/v1/events",
            json={"Records": []},
            headers={"Authorization": "Bearer hook-secret"},
        )

        # Then: Only the keyed request is accepted
        assert denied.status_code == 401
        assert denied.json()["error_code"] == "UNAUTHORIZED"
        assert allowed.status_code == 200

    def test_api_key_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PIXELPIPE_TEST_API_KEY", raising=False)
        client, _, _ = _client(server=FastAPIServerConfig(api_key_env="PIXELPIPE_TEST_API_KEY"))

        response = client.post("/api/v1/events", json={"Records": []})

        assert response.status_code == 500
        assert response.json()["error_code"] == "API_KEY_NOT_CONFIGURED"


class TestHealth:
    """Tests for GET /health."""

    def test_healthy(self) -> None:
        client, _, _ = _client()

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "storage": "reachable",
            "queue": "disabled",
            "batches_in_flight": 0,
        }

    def test_unreachable_store(self) -> None:
        store = MockObjectStore()
        store.shutdown_called = True
        client, _, _ = _client(store)

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["storage"] == "unavailable"


class TestLocalObjectRoutes:
    """Tests for the direct-write and media routes of the local store."""

    @pytest.fixture
    def local(self, tmp_path: Path) -> tuple[TestClient, Application, LocalObjectStore, list[Any]]:
        store = LocalObjectStore(
            LocalStorageConfig(root=str(tmp_path), public_base_url="http://testserver"),
            signing_secret="local-secret",
        )
        client, app, _ = _client(store, storage=StorageConfig(backend="local"))
        submitted: list[Any] = []
        # Record notifications instead of processing in the background.
        app.dispatcher.submit = submitted.append  # type: ignore[method-assign]
        return client, app, store, submitted

    def test_upload_flow(
        self, local: tuple[TestClient, Application, LocalObjectStore, list[Any]]
    ) -> None:
        """Grant, direct PUT, then the object is stored and announced."""
        client, _, store, submitted = local
        # Given: A grant
        grant = _grant(client, "image/png")
        data = make_image(64, 48, fmt="PNG")

        # When: Uploading with the granted credential and headers
        response = client.put(grant["uploadUrl"], content=data, headers=grant["uploadHeaders"])

        # Then: Stored, readable through the media route, and announced
        assert response.status_code == 200
        assert response.json()["byte_length"] == len(data)
        assert (store.root / ORIGIN / grant["key"]).read_bytes() == data
        media = client.get(grant["url"])
        assert media.status_code == 200
        assert media.content == data
        expected = ProcessingNotification(
            bucket=ORIGIN, key=grant["key"], event_kind="ObjectCreated:Put"
        )
        assert submitted == [[expected]]

    def test_wrong_content_type_rejected(
        self, local: tuple[TestClient, Application, LocalObjectStore, list[Any]]
    ) -> None:
        client, _, store, submitted = local
        grant = _grant(client, "image/png")

        response = client.put(
            grant["uploadUrl"], content=b"x", headers={"Content-Type": "image/jpeg"}
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "CREDENTIAL_REJECTED"
        assert not (store.root / ORIGIN / grant["key"]).exists()
        assert submitted == []

    def test_credential_for_other_key_rejected(
        self, local: tuple[TestClient, Application, LocalObjectStore, list[Any]]
    ) -> None:
        client, _, _, _ = local
        grant = _grant(client, "image/png")
        credential = grant["uploadUrl"].split("?credential=", 1)[1]

        response = client.put(
            f"/api/v1/objects/{ORIGIN}/u1/someone-else.png?credential={credential}",
            content=b"x",
            headers=grant["uploadHeaders"],
        )

        assert response.status_code == 403

    def test_oversized_upload_rejected(
        self, local: tuple[TestClient, Application, LocalObjectStore, list[Any]]
    ) -> None:
        client, app, store, _ = local
        app.config.processing.max_upload_bytes = 10
        grant = _grant(client, "image/png")

        response = client.put(grant["uploadUrl"], content=b"x" * 11, headers=grant["uploadHeaders"])

        assert response.status_code == 413
        assert response.json()["error_code"] == "OBJECT_TOO_LARGE"
        assert not (store.root / ORIGIN / grant["key"]).exists()

    def test_missing_media(
        self, local: tuple[TestClient, Application, LocalObjectStore, list[Any]]
    ) -> None:
        client, _, _, _ = local

        response = client.get(f"/media/{DERIVED}/u1/nothing.webp")

        assert response.status_code == 404
        assert response.json()["error_code"] == "OBJECT_NOT_FOUND"

    def test_routes_absent_for_remote_store(self) -> None:
        client, _, _ = _client()

        response = client.put(f"/api/v1/objects/{ORIGIN}/u1/a.jpg?credential=x", content=b"x")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


def test_openapi_lists_routes() -> None:
    client, _, _ = _client()

    paths = json.loads(client.get("/openapi.json").text)["paths"]

    assert {"/health", "/api/v1/uploads", "/api/v1/events"} <= set(paths)
