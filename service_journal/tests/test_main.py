"""
Route tests for the journal gateway service.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from service_journal.app.auth import Identity
from service_journal.app.completion import Reflection
from service_journal.app.main import create_app
from shared.config import ServiceConfig
from shared.errors import AuthenticationError, UpstreamError
from shared.test_helpers import TEST_JWKS_URL, TEST_PROJECT_ID, FakeCollection, FakeRedis

ENTRY_KEY = "65f000000000000000000001"


def _config(**overrides):
    values = dict(
        env="test",
        firebase_project_id=TEST_PROJECT_ID,
        firebase_jwks_url=TEST_JWKS_URL,
        mongodb_uri="mongodb://localhost:27017",
        rate_limit_redis_url="redis://localhost:6379/0",
        openrouter_api_key="sk-test",
    )
    values.update(overrides)
    return ServiceConfig(**values)


class TestJournalService:
    """Test cases for JournalService routes."""

    @pytest.fixture
    def app(self):
        """Create FastAPI app instance."""
        return create_app(_config())

    @pytest.fixture
    def service(self, app):
        return app.state.journal_service

    @pytest.fixture
    def fake_redis(self, service):
        fake = FakeRedis()
        service.gateway.rate_limiter.rate_limiter._redis = fake
        return fake

    @pytest.fixture
    def collection(self, service):
        fake = FakeCollection()
        service.gateway.store._collection = fake
        return fake

    @pytest.fixture
    def verify(self, service):
        mock = AsyncMock(return_value=Identity(uid="user-1", claims={"sub": "user-1"}))
        service.gateway.verifier.verify = mock
        return mock

    @pytest.fixture
    def oracle(self, service):
        mock = AsyncMock(
            return_value=Reflection(content="I hear you.\nQ1: What helped?", questions=["What helped?"])
        )
        service.gateway.oracle.reflect = mock
        return mock

    @pytest.fixture
    def client(self, app, fake_redis, collection, verify, oracle):
        """Create test client."""
        return TestClient(app, raise_server_exceptions=False)

    def _seed(self, collection, owner, text, key=None):
        collection.docs.append({
            "_id": ObjectId(key) if key else ObjectId(),
            "userId": owner,
            "entry": text,
            "createdAt": datetime.now(timezone.utc),
        })

    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["service"] == "journal-gateway"
        assert data["dependencies"]["store"] == "configured"
        assert data["dependencies"]["service_account"] == "missing"

    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200

    def test_reflection_success(self, client, collection, oracle):
        response = client.post(
            "/api/ai-journal",
            json={"entry": "Today was hard.", "tone": "gentle"},
            headers={"X-Forwarded-For": "203.0.113.7"},
        )

        assert response.status_code == 200
        assert response.json() == {"content": "I hear you.\nQ1: What helped?", "questions": ["What helped?"]}
        assert response.headers["X-RateLimit-Limit"] == "30"
        assert response.headers["X-RateLimit-Remaining"] == "29"
        oracle.assert_awaited_once_with("Today was hard.", "gentle")

        stored = collection.find_by_owner("user-1")
        assert len(stored) == 1
        assert stored[0]["entry"] == "Today was hard."
        assert stored[0]["ai"]["questions"] == ["What helped?"]

    def test_reflection_returned_when_persistence_fails(self, client, service):
        service.gateway.store._collection = FakeCollection(fail_with=lambda: RuntimeError("write failed"))

        response = client.post("/api/ai-journal", json={"entry": "Still here."})

        assert response.status_code == 200
        assert response.json()["content"] == "I hear you.\nQ1: What helped?"

    @pytest.mark.parametrize(
        "body",
        [{"entry": ""}, {"entry": "   "}, {"entry": "a" * 4001}, {"tone": "warm"}],
    )
    def test_invalid_reflection_spends_no_budget(self, client, fake_redis, oracle, collection, body):
        response = client.post("/api/ai-journal", json=body)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert fake_redis.calls == []
        oracle.assert_not_awaited()
        assert collection.docs == []

    def test_malformed_json_is_invalid(self, client, fake_redis):
        response = client.post(
            "/api/ai-journal",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert fake_redis.calls == []

    def test_rate_limited_reflection(self, client, fake_redis, oracle):
        key = "ai:user-1:203.0.113.7"
        fake_redis.values[key] = 30
        fake_redis.expiries[key] = 42

        response = client.post(
            "/api/ai-journal",
            json={"entry": "One more."},
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )

        assert response.status_code == 429
        assert response.json()["code"] == "RATE_LIMIT_ERROR"
        assert 1 <= int(response.headers["Retry-After"]) <= 42
        assert response.headers["X-RateLimit-Limit"] == "30"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        oracle.assert_not_awaited()

    def test_upstream_failure_is_bad_gateway(self, client, oracle, collection):
        oracle.side_effect = UpstreamError(upstream_status=429, body='{"error":"quota"}')

        response = client.post("/api/ai-journal", json={"entry": "Today was hard."})

        assert response.status_code == 502
        assert response.json() == {
            "code": "UPSTREAM_ERROR",
            "error": "Upstream AI error",
            "details": {"status": 429, "body": '{"error":"quota"}'},
        }
        assert collection.docs == []

    @pytest.mark.parametrize(
        "method, path, kwargs",
        [
            ("POST", "/api/ai-journal", {"json": {"entry": "hello"}}),
            ("GET", "/api/journal-entries", {}),
            ("PATCH", f"/api/journal-entries/{ENTRY_KEY}", {"json": {"entry": "edited"}}),
            ("DELETE", f"/api/journal-entries/{ENTRY_KEY}", {}),
        ],
    )
    def test_unauthenticated_requests_touch_nothing(
        self, client, verify, fake_redis, collection, oracle, method, path, kwargs
    ):
        verify.side_effect = AuthenticationError()
        self._seed(collection, "user-1", "original", ENTRY_KEY)

        response = client.request(method, path, **kwargs)

        assert response.status_code == 401
        assert response.json() == {"code": "AUTHENTICATION_ERROR", "error": "Unauthorized", "details": {}}
        assert fake_redis.calls == []
        oracle.assert_not_awaited()
        assert collection.docs[0]["entry"] == "original"

    def test_list_entries_is_owner_scoped(self, client, collection):
        self._seed(collection, "user-1", "mine")
        self._seed(collection, "user-2", "theirs")

        response = client.get("/api/journal-entries")

        assert response.status_code == 200
        entries = response.json()["entries"]
        assert [e["entry"] for e in entries] == ["mine"]
        assert entries[0]["userId"] == "user-1"
        assert response.headers["X-RateLimit-Limit"] == "60"

    @pytest.mark.parametrize(
        "query, expected",
        [("", 20), ("?limit=5", 5), ("?limit=500", 100), ("?limit=0", 1), ("?limit=abc", 20)],
    )
    def test_list_limit_is_clamped(self, client, service, query, expected):
        with patch.object(service.gateway.store, "list", new_callable=AsyncMock) as mock_list:
            mock_list.return_value = []
            response = client.get(f"/api/journal-entries{query}")

        assert response.status_code == 200
        assert response.json() == {"entries": []}
        mock_list.assert_awaited_once_with("user-1", expected)

    def test_update_entry(self, client, collection):
        self._seed(collection, "user-1", "original", ENTRY_KEY)

        response = client.patch(f"/api/journal-entries/{ENTRY_KEY}", json={"entry": "  edited  "})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert collection.docs[0]["entry"] == "edited"
        assert "updatedAt" in collection.docs[0]

    def test_update_foreign_entry_is_not_found(self, client, collection):
        self._seed(collection, "user-2", "theirs", ENTRY_KEY)

        response = client.patch(f"/api/journal-entries/{ENTRY_KEY}", json={"entry": "mine now"})

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
        assert collection.docs[0]["entry"] == "theirs"

    def test_update_missing_text_is_invalid(self, client, fake_redis):
        response = client.patch(f"/api/journal-entries/{ENTRY_KEY}", json={"entry": "   "})

        assert response.status_code == 400
        assert fake_redis.calls == []

    def test_update_malformed_key_is_not_found(self, client):
        response = client.patch("/api/journal-entries/not-a-key", json={"entry": "text"})
        assert response.status_code == 404

    def test_delete_entry(self, client, collection):
        self._seed(collection, "user-1", "bye", ENTRY_KEY)

        response = client.delete(f"/api/journal-entries/{ENTRY_KEY}")

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert collection.docs == []

    def test_delete_foreign_entry_is_not_found(self, client, collection):
        self._seed(collection, "user-2", "theirs", ENTRY_KEY)

        response = client.delete(f"/api/journal-entries/{ENTRY_KEY}")

        assert response.status_code == 404
        assert len(collection.docs) == 1

    def test_store_unavailable_is_server_error(self, client, service):
        service.gateway.store._collection = None
        service.gateway.store.uri = None

        response = client.get("/api/journal-entries")

        assert response.status_code == 500
        assert response.json() == {"code": "STORE_UNAVAILABLE", "error": "Server error", "details": {}}

    def test_unexpected_failure_is_server_error(self, client, service):
        with patch.object(service.gateway.store, "list", new_callable=AsyncMock) as mock_list:
            mock_list.side_effect = RuntimeError("boom")
            response = client.get("/api/journal-entries")

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"

    def test_rate_limiter_outage_fails_open(self, client, fake_redis):
        fake_redis.incr = AsyncMock(side_effect=ConnectionError("redis down"))

        response = client.get("/api/journal-entries")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "60"

    @pytest.mark.parametrize(
        "method, path",
        [
            ("GET", "/api/ai-journal"),
            ("PUT", "/api/ai-journal"),
            ("POST", "/api/journal-entries"),
            ("PUT", f"/api/journal-entries/{ENTRY_KEY}"),
            ("GET", f"/api/journal-entries/{ENTRY_KEY}"),
        ],
    )
    def test_wrong_method_is_rejected(self, client, verify, method, path):
        response = client.request(method, path)

        assert response.status_code == 405
        verify.assert_not_awaited()

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-abc"})
        assert response.headers["X-Request-ID"] == "req-abc"

    def test_cors_allows_frontend_origin(self):
        app = create_app(_config(frontend_origin="https://homi.example"))
        client = TestClient(app)

        response = client.options(
            "/api/journal-entries",
            headers={
                "Origin": "https://homi.example",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "Authorization",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://homi.example"

    def _endpoint_labels(self, service, method):
        counter = service.metrics.get_metric("http_requests_total")
        return {
            sample.labels["endpoint"]
            for metric in counter.collect()
            for sample in metric.samples
            if sample.name == "http_requests_total" and sample.labels["method"] == method
        }

    def test_http_metrics_use_route_templates(self, client, service, collection):
        for _ in range(5):
            key = str(ObjectId())
            self._seed(collection, "user-1", "bye", key)
            assert client.delete(f"/api/journal-entries/{key}").status_code == 200
            assert client.patch(f"/api/journal-entries/{ObjectId()}", json={"entry": "x"}).status_code == 404

        assert self._endpoint_labels(service, "DELETE") == {"/api/journal-entries/{entry_id}"}
        assert self._endpoint_labels(service, "PATCH") == {"/api/journal-entries/{entry_id}"}

    def test_unmatched_paths_share_one_metric_label(self, client, service):
        for n in range(3):
            assert client.put(f"/no-such-route/{n}").status_code == 404

        labels = self._endpoint_labels(service, "PUT")
        assert "unmatched" in labels
        assert not any(label.startswith("/no-such-route") for label in labels)
