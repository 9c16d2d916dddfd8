"""Tests for the HTTP surface (FastAPI routes)."""

import base64
import json
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import pytest_asyncio

from adapters.db.database import get_db_session
from adapters.factory import get_adapter_factory
from web_server import create_app


@pytest.fixture
def app(test_config, factory, database):
    app = create_app(test_config)

    async def override_db_session():
        async with database.get_session() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_adapter_factory] = lambda: factory
    return app


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as client:
        yield client


async def start_handshake(client) -> str:
    response = await client.get(
        "/auth/start",
        params={"email": "owner@example.com", "name": "홍길동", "company": "Example"},
    )
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("https://accounts.google.com/")
    return parse_qs(urlparse(location).query)["state"][0]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_full_handshake_redirects_to_success(client, repository, task_runner):
    state = await start_handshake(client)

    response = await client.get("/auth/callback", params={"code": "auth-code", "state": state})

    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    assert location.path == "/success"
    assert parse_qs(location.query)["gmail"] == ["mailbox@gmail.com"]

    accounts = await repository.list_all()
    assert [a.mailbox_address for a in accounts] == ["mailbox@gmail.com"]
    assert len(task_runner.spawned) == 2


@pytest.mark.asyncio
async def test_callback_state_cannot_be_replayed(client, repository):
    state = await start_handshake(client)
    first = await client.get("/auth/callback", params={"code": "auth-code", "state": state})
    assert first.status_code == 302

    replay = await client.get("/auth/callback", params={"code": "auth-code", "state": state})

    assert replay.status_code == 400
    assert len(await repository.list_all()) == 1


@pytest.mark.asyncio
async def test_callback_with_wrong_state_fails(client, repository):
    await start_handshake(client)

    response = await client.get("/auth/callback", params={"code": "auth-code", "state": "forged"})

    assert response.status_code == 400
    assert "보안 검증 실패" in response.text
    assert await repository.list_all() == []


@pytest.mark.asyncio
async def test_callback_without_session_fails(client, repository):
    response = await client.get("/auth/callback", params={"code": "auth-code", "state": "anything"})

    assert response.status_code == 400
    assert await repository.list_all() == []


@pytest.mark.asyncio
async def test_callback_with_provider_error(client):
    await start_handshake(client)

    response = await client.get("/auth/callback", params={"error": "access_denied"})

    assert response.status_code == 400
    assert "인증이 거부되었습니다" in response.text


@pytest.mark.asyncio
async def test_callback_exchange_failure_is_bad_gateway(client, google_client):
    google_client.fail_exchange = True
    state = await start_handshake(client)

    response = await client.get("/auth/callback", params={"code": "auth-code", "state": state})

    assert response.status_code == 502
    assert "exchanged-access-token" not in response.text


@pytest.mark.asyncio
async def test_success_page_escapes_query(client):
    response = await client.get("/success", params={"gmail": "<script>x</script>", "timestamp": "t"})

    assert response.status_code == 200
    assert "<script>x</script>" not in response.text
    assert "&lt;script&gt;" in response.text


@pytest.mark.asyncio
async def test_refresh_requires_account_id(client):
    response = await client.post("/auth/refresh", json={})

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_refresh_unknown_account_is_not_found(client):
    response = await client.post("/auth/refresh", json={"accountId": "missing"})

    assert response.status_code == 404
    body = response.json()
    assert body == {
        "success": False,
        "error": "AccountNotFoundError",
        "message": "계정을 찾을 수 없습니다: missing",
    }


@pytest.mark.asyncio
async def test_refresh_without_offline_grant_is_conflict(client, repository, make_account):
    account = make_account(refresh_token=None)
    await repository.upsert(account)

    response = await client.post("/auth/refresh", json={"accountId": account.id})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_refresh_returns_new_expiry(client, repository, make_account):
    account = make_account()
    await repository.upsert(account)

    response = await client.post("/auth/refresh", json={"accountId": account.id})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["expiry"] is not None

    loaded = await repository.get_by_id(account.id)
    assert loaded.credentials.access_token == "refreshed-access-token"


@pytest.mark.asyncio
async def test_revoke_keeps_account(client, repository, google_client, make_account):
    account = make_account()
    await repository.upsert(account)

    response = await client.post("/auth/revoke", json={"accountId": account.id})

    assert response.json() == {"success": True}
    assert google_client.calls_to("revoke_token") == [{"token": "access-token"}]
    assert await repository.get_by_id(account.id) is not None


@pytest.mark.asyncio
async def test_subscription_setup(client, repository, make_account):
    account = make_account()
    await repository.upsert(account)

    response = await client.post("/subscription/setup", json={"accountId": account.id})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["channelName"] == f"gmail-watch-{account.id}"


@pytest.mark.asyncio
async def test_subscription_setup_provider_failure(client, repository, google_client, make_account):
    account = make_account(access_token="bad-token")
    google_client.failing_access_tokens.add("bad-token")
    await repository.upsert(account)

    response = await client.post("/subscription/setup", json={"accountId": account.id})

    assert response.status_code == 502
    assert response.json()["error"] == "ProviderError"


@pytest.mark.asyncio
async def test_subscription_stop(client, repository, make_account):
    account = make_account(subscription_expires_in=timedelta(days=2))
    await repository.upsert(account)

    response = await client.post("/subscription/stop", json={"accountId": account.id})

    assert response.json() == {"success": True}


@pytest.mark.asyncio
async def test_push_endpoint_always_acknowledges(client):
    data = base64.b64encode(json.dumps({"emailAddress": "x@gmail.com", "historyId": 1}).encode()).decode()

    valid = await client.post("/push-endpoint", json={"message": {"data": data}})
    malformed = await client.post("/push-endpoint", json={"message": {}})
    not_json = await client.post(
        "/push-endpoint",
        content=b"garbage",
        headers={"Content-Type": "application/json"},
    )

    assert valid.status_code == 200
    assert valid.json()["emailAddress"] == "x@gmail.com"
    assert malformed.status_code == 200
    assert not_json.status_code == 200


@pytest.mark.asyncio
async def test_webhook_status(client):
    response = await client.get("/webhook/status")

    assert response.status_code == 200
    assert "registrationWebhook" in response.json()


@pytest.mark.asyncio
async def test_webhook_test_sends_flagged_event(client, notifier):
    response = await client.post("/webhook/test", json={"webhookType": "renewal"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    event, payload, test = notifier.events[0]
    assert event.value == "watch_renewal_batch"
    assert test is True


@pytest.mark.asyncio
async def test_webhook_test_rejects_unknown_type(client):
    response = await client.post("/webhook/test", json={"webhookType": "other"})

    assert response.status_code == 400
