"""HTTP tests for the ingestion and health endpoints."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from fcm_worker.adapters.rate_limit.in_memory import InMemoryWindowStore
from fcm_worker.core.app_factory import create_app
from fcm_worker.core.config import settings
from fcm_worker.core.errors import StoreUnavailableError

API_KEY = "test-api-key-123"
TOPIC_BODY = {"type": "topic", "title": "test", "body": "test", "topic": "all"}


def _payload(*bodies) -> dict:
    return {
        "Records": [
            {"messageId": f"m-{i}", "body": json.dumps(b), "attributes": {"ApproximateReceiveCount": "1"}}
            for i, b in enumerate(bodies)
        ]
    }


@pytest.fixture
def client():
    with TestClient(create_app(store=InMemoryWindowStore())) as test_client:
        yield test_client


def test_health_is_public(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_readiness_pings_store(client: TestClient) -> None:
    resp = client.get("/health/ready")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "store": "ok"}


def test_readiness_returns_503_when_store_down() -> None:
    store = MagicMock()
    store.ping = AsyncMock(
        side_effect=StoreUnavailableError(code="store_unavailable", message="Shared store did not answer ping")
    )

    with TestClient(create_app(store=store)) as client:
        resp = client.get("/health/ready")

    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "store_unavailable"


def test_events_require_api_key(client: TestClient) -> None:
    resp = client.post("/v1/events", json=_payload(TOPIC_BODY))

    assert resp.status_code == 403


def test_events_reject_unknown_api_key(client: TestClient) -> None:
    resp = client.post("/v1/events", json=_payload(TOPIC_BODY), headers={"X-API-Key": "nope"})

    assert resp.status_code == 403


def test_events_are_dispatched(client: TestClient) -> None:
    resp = client.post(
        "/v1/events",
        json=_payload(TOPIC_BODY, TOPIC_BODY),
        headers={"X-API-Key": API_KEY},
    )

    assert resp.status_code == 200
    assert resp.json() == {"processed": 2, "stopped_reason": None}
    assert resp.headers.get("X-Request-ID")


def test_invalid_message_reports_stop_reason(client: TestClient) -> None:
    payload = _payload(TOPIC_BODY)
    payload["Records"][0]["body"] = "{not json"

    resp = client.post("/v1/events", json=payload, headers={"X-API-Key": API_KEY})

    assert resp.status_code == 200
    assert resp.json() == {"processed": 0, "stopped_reason": "invalid_message"}


def test_push_throttle_returns_429(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.throttle, "max_per_window", 1)
    monkeypatch.setattr(settings.throttle, "block_seconds", 0)

    resp = client.post(
        "/v1/events",
        json=_payload(TOPIC_BODY, TOPIC_BODY),
        headers={"X-API-Key": API_KEY},
    )

    assert resp.status_code == 429
    body = resp.json()
    assert body["error"]["code"] == "fcm_throttled"
    assert int(resp.headers["Retry-After"]) >= 0


def test_throttled_batch_error_keeps_request_id(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.throttle, "max_per_window", 1)
    monkeypatch.setattr(settings.throttle, "block_seconds", 0)

    resp = client.post(
        "/v1/events",
        json=_payload(TOPIC_BODY, TOPIC_BODY),
        headers={"X-API-Key": API_KEY, "X-Request-ID": "req-42"},
    )

    assert resp.status_code == 429
    assert resp.headers["X-Request-ID"] == "req-42"
    assert resp.json()["error"]["request_id"] == "req-42"


def test_ingress_rate_limit_returns_429(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_requests", 2)
    monkeypatch.setattr(settings.app, "rate_limit_window_seconds", 60)

    headers = {"X-API-Key": API_KEY}
    assert client.post("/v1/events", json=_payload(), headers=headers).status_code == 200
    assert client.post("/v1/events", json=_payload(), headers=headers).status_code == 200

    blocked = client.post("/v1/events", json=_payload(), headers=headers)

    assert blocked.status_code == 429
    assert blocked.headers["X-RateLimit-Limit"] == "2"
    assert blocked.headers["X-RateLimit-Remaining"] == "0"
    assert "Retry-After" in blocked.headers


def test_ingress_rate_limit_is_per_api_key(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_requests", 1)

    first = client.post("/v1/events", json=_payload(), headers={"X-API-Key": API_KEY})
    other = client.post("/v1/events", json=_payload(), headers={"X-API-Key": "test-api-key-456"})

    assert first.status_code == 200
    assert other.status_code == 200


def test_store_failure_on_ingest_returns_503(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_enabled", False)
    store = MagicMock()
    store.evaluate_window = AsyncMock(
        side_effect=StoreUnavailableError(code="store_unavailable", message="down")
    )

    with TestClient(create_app(store=store)) as client:
        resp = client.post("/v1/events", json=_payload(TOPIC_BODY), headers={"X-API-Key": API_KEY})

    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "store_unavailable"


def test_openapi_exempts_health_from_auth(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    assert "ApiKeyAuth" in schema["components"]["securitySchemes"]
    assert schema["paths"]["/health"]["get"]["security"] == []
    assert "security" not in schema["paths"]["/v1/events"]["post"]


def test_app_uses_injected_empty_store() -> None:
    store = InMemoryWindowStore()

    with TestClient(create_app(store=store)) as test_client:
        assert test_client.app.state.store is store
