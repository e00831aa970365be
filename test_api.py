"""
HTTP surface tests.

The app is built with an in-memory link store and a scripted Bitrix client,
then driven through FastAPI's TestClient.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from api.rate_limit import RateLimitExceeded, SlidingWindowRateLimiter
from api.server import create_app
from conftest import RecordingBXClient, product_rows
from core.config import BridgeSettings
from core.errors import RemoteCallError
from core.security.link_store import InMemoryLinkStore


BASE = "/gch_robs_itcomed"


@pytest.fixture
def bx_client():
    return RecordingBXClient()


@pytest.fixture
def link_store():
    return InMemoryLinkStore()


@pytest.fixture
def make_client(bx_client, link_store):
    def factory(**settings):
        app = create_app(BridgeSettings(**settings), link_store=link_store, bx_client=bx_client)
        return TestClient(app)
    return factory


@pytest.fixture
def client(make_client):
    with make_client() as c:
        yield c


class TestInit:
    """POST /init"""

    def test_init_stores_link(self, client, link_store):
        response = client.post(f"{BASE}/init", json={"bx_link": "https://portal.example.kz/rest/1/token"})

        assert response.status_code == 200
        assert response.json() == {
            "status": True,
            "status_msg": "success",
            "message": "The system is ready to work with your Bitrix24!",
        }

    def test_init_then_health_reports_configured(self, client):
        assert client.get("/health").json()["services"]["bitrix_webhook"] == "not_configured"

        client.post(f"{BASE}/init", json={"bx_link": "https://portal.example.kz/rest/1/token"})

        assert client.get("/health").json()["services"]["bitrix_webhook"] == "configured"

    @pytest.mark.parametrize("body", [{"bx_link": ""}, {"bx_link": "   "}, {}])
    def test_missing_link(self, client, body):
        response = client.post(f"{BASE}/init", json=body)

        assert response.status_code == 400
        assert response.json() == {
            "status": False,
            "status_msg": "error",
            "message": "An inbound webhook link must be provided!",
        }

    def test_storage_failure_is_server_error(self, client, link_store):
        broken_save = AsyncMock(side_effect=OSError("read-only file system"))

        with patch.object(link_store, "save", broken_save):
            response = client.post(f"{BASE}/init", json={"bx_link": "https://portal.example.kz/rest/1/token"})

        broken_save.assert_awaited_once()

        assert response.status_code == 500
        assert response.json()["message"] == "Server error"

    def test_rate_limited(self, make_client):
        with make_client(init_rate_limit=2) as client:
            for _ in range(2):
                assert client.post(f"{BASE}/init", json={"bx_link": "https://p/rest/1/t"}).status_code == 200

            response = client.post(f"{BASE}/init", json={"bx_link": "https://p/rest/1/t"})

        assert response.status_code == 429
        assert response.json()["status"] is False
        assert int(response.headers["Retry-After"]) >= 1

    def test_custom_base_path(self, make_client):
        with make_client(base_path="/bridge") as client:
            assert client.post("/bridge/init", json={"bx_link": "https://p/rest/1/t"}).status_code == 200
            assert client.post(f"{BASE}/init", json={"bx_link": "https://p/rest/1/t"}).status_code == 404


class TestProcessDocs:
    """POST /process_docs"""

    def test_dry_run(self, client, bx_client):
        bx_client.responses["crm.item.productrow.list"] = product_rows(
            {"PRODUCT_ID": 1, "QUANTITY": 3},
            {"PRODUCT_ID": 2, "QUANTITY": 0},
        )

        response = client.post(
            f"{BASE}/process_docs",
            params={"elemId": "42", "docType": "S", "storeId": "7", "ownerType": "D", "dryRun": "true"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["dryRun"] is True
        assert body["rows"] == [{"productId": 1, "quantity": 3.0}]
        assert body["stores"] == {"storeTo": 7}
        assert bx_client.mutation_calls() == []

    def test_document_created(self, client, bx_client):
        bx_client.responses["crm.item.productrow.list"] = product_rows({"PRODUCT_ID": 1, "QUANTITY": 3})

        response = client.post(
            f"{BASE}/process_docs",
            params={"elemId": "42", "docType": "S", "storeId": "7", "spaTypeId": "1068"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "docId": 1001,
            "conducted": True,
            "rowsAdded": 1,
            "rowsSkipped": 0,
            "failedRows": [],
        }

    def test_validation_error(self, client, bx_client):
        response = client.post(f"{BASE}/process_docs", params={"elemId": "42", "docType": "S", "ownerType": "D"})

        assert response.status_code == 400
        assert "storeId" in response.json()["error"]
        assert bx_client.calls == []

    def test_transfer_unresolved_includes_got(self, client, bx_client):
        bx_client.responses["crm.item.productrow.list"] = product_rows({"PRODUCT_ID": 1, "QUANTITY": 3})
        bx_client.responses["crm.item.get"] = {"result": {"item": {}}}

        response = client.post(
            f"{BASE}/process_docs",
            params={"elemId": "42", "docType": "M", "storeFrom": "3", "ownerType": "D"},
        )

        assert response.status_code == 400
        assert response.json()["got"] == {"storeFrom": 3, "storeTo": None}

    def test_no_rows_is_not_found(self, client, bx_client):
        bx_client.responses["crm.item.productrow.list"] = product_rows()

        response = client.post(
            f"{BASE}/process_docs",
            params={"elemId": "42", "docType": "D", "storeId": "7", "ownerType": "D"},
        )

        assert response.status_code == 404
        assert response.json() == {
            "error": "The element has no product rows",
            "elemId": 42,
            "ownerTypeShort": "D",
        }

    def test_remote_failure_is_server_error(self, client, bx_client):
        bx_client.responses["crm.item.productrow.list"] = RemoteCallError(
            "crm.item.productrow.list: ACCESS_DENIED - Access denied.",
            method="crm.item.productrow.list",
        )

        response = client.post(
            f"{BASE}/process_docs",
            params={"elemId": "42", "docType": "S", "storeId": "7", "ownerType": "D"},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "crm.item.productrow.list: ACCESS_DENIED - Access denied."}


class TestHealth:
    """Health probes are mounted at the root."""

    def test_probes(self, client):
        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["base_path"] == BASE
        assert health["version"] == "1.0.0"
        assert client.get("/ready").json() == {"status": "ready"}
        assert client.get("/live").json() == {"status": "alive"}


class TestSlidingWindowRateLimiter:
    """Limiter behaviour with an injected clock."""

    def make_limiter(self, max_calls=2, window_seconds=60.0):
        now = {"t": 1000.0}
        limiter = SlidingWindowRateLimiter(max_calls, window_seconds, clock=lambda: now["t"])
        return limiter, now

    def test_budget_per_key(self):
        limiter, _ = self.make_limiter()

        limiter.hit("10.0.0.1")
        limiter.hit("10.0.0.1")
        limiter.hit("10.0.0.2")

        assert limiter.remaining("10.0.0.1") == 0
        assert limiter.remaining("10.0.0.2") == 1
        with pytest.raises(RateLimitExceeded):
            limiter.hit("10.0.0.1")

    def test_window_slides(self):
        limiter, now = self.make_limiter()
        limiter.hit("a")
        now["t"] += 30
        limiter.hit("a")

        now["t"] += 20
        with pytest.raises(RateLimitExceeded) as exc:
            limiter.hit("a")
        assert exc.value.retry_after == pytest.approx(10.0)

        now["t"] += 10
        limiter.hit("a")
        assert limiter.remaining("a") == 0

    def test_idle_clients_are_forgotten(self):
        limiter, now = self.make_limiter()
        for i in range(50):
            limiter.hit(f"10.0.0.{i}")
        assert limiter.tracked_keys() == 50

        now["t"] += 61
        limiter.hit("10.0.1.1")

        assert limiter.tracked_keys() == 1
        assert limiter.remaining("10.0.0.1") == 2

    def test_active_clients_survive_sweep(self):
        limiter, now = self.make_limiter()
        limiter.hit("idle")
        now["t"] += 40
        limiter.hit("busy")
        now["t"] += 30
        limiter.hit("new")

        assert limiter.tracked_keys() == 2
        assert limiter.remaining("busy") == 1

    def test_reset(self):
        limiter, _ = self.make_limiter(max_calls=1)
        limiter.hit("a")
        limiter.reset()
        limiter.hit("a")
