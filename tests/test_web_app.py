"""End-to-end tests of the HTTP surface using FastAPI's ``TestClient``."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from lunor_dashboard.config import Settings
from lunor_dashboard.core.models import GuildMembership
from lunor_dashboard.core.storage import BOT_SETTINGS, GUILD_CONFIGS, WELCOME_CHANNELS_KEY
from lunor_dashboard.errors import StoreUnavailable
from lunor_dashboard.web.app import create_app


@pytest.fixture
def client(store, provider) -> TestClient:
    app = create_app(Settings(), store=store, provider=provider)
    return TestClient(app)


def login(client: TestClient) -> None:
    response = client.get("/auth/login", follow_redirects=False)
    assert response.status_code == 307
    state = response.headers["location"].rsplit("state=", 1)[1]
    response = client.get(
        "/auth/callback", params={"code": "C", "state": state}, follow_redirects=False
    )
    assert response.status_code == 307
    assert response.headers["location"] == "/dashboard"


def test_health(client) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "Lunor Dashboard is running!"


def test_login_redirects_to_provider_and_sets_cookie(client) -> None:
    response = client.get("/auth/login", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"].startswith("https://provider.test/authorize")
    assert "lunor_session" in response.cookies


def test_failed_callback_redirects_to_landing(client, provider) -> None:
    client.get("/auth/login", follow_redirects=False)
    response = client.get(
        "/auth/callback", params={"code": "C", "state": "forged"}, follow_redirects=False
    )
    assert response.status_code == 307
    assert response.headers["location"] == "/"
    assert provider.calls == []
    assert client.get("/api/user").status_code == 401


def test_current_user_hides_access_token(client) -> None:
    login(client)
    response = client.get("/api/user")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "42"
    assert [g["id"] for g in body["guilds"]] == ["G1", "G2"]
    assert "token" not in response.text


def test_unauthenticated_requests_get_401(client, store) -> None:
    for method, path in [
        ("get", "/api/user"),
        ("get", "/api/guilds"),
        ("get", "/api/guilds/G1/config"),
        ("get", "/api/debug/welcome-channels"),
    ]:
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": "unauthenticated",
            "message": "Not authenticated",
        }
    response = client.post("/api/guilds/G1/config", json={"prefix": "?"})
    assert response.status_code == 401
    response = client.post("/api/guilds/G1/welcome-channel", json={"channelRef": "1"})
    assert response.status_code == 401
    assert asyncio.run(store.find_all(GUILD_CONFIGS)) == []
    assert asyncio.run(store.find_one(BOT_SETTINGS, WELCOME_CHANNELS_KEY)) is None


def test_mutual_guilds(client, provider) -> None:
    login(client)
    response = client.get("/api/guilds")
    assert response.status_code == 200
    assert [g["id"] for g in response.json()] == ["G1"]
    assert response.json()[0]["permissions"] == 0x28


def test_mutual_guilds_upstream_failure(client, provider) -> None:
    login(client)
    provider.fail = True
    response = client.get("/api/guilds")
    assert response.status_code == 500
    assert response.json()["error"] == "upstream_unavailable"


def test_guild_config_get_and_update(client) -> None:
    login(client)
    response = client.get("/api/guilds/G1/config")
    assert response.status_code == 200
    assert response.json()["guildId"] == "G1"
    assert response.json()["settings"]["prefix"] == "!"

    response = client.post("/api/guilds/G1/config", json={"prefix": "?"})
    assert response.json() == {"success": True}
    response = client.post(
        "/api/guilds/G1/config", json={"settings": {"muteRole": "R", "bogus": 1}}
    )
    assert response.status_code == 200

    settings = client.get("/api/guilds/G1/config").json()["settings"]
    assert settings["prefix"] == "?"
    assert settings["muteRole"] == "R"


def test_insufficient_permission_is_403(client, store) -> None:
    login(client)
    response = client.get("/api/guilds/G2/config")
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"
    response = client.post("/api/guilds/G2/config", json={"prefix": "?"})
    assert response.status_code == 403
    assert asyncio.run(store.find_all(GUILD_CONFIGS)) == []


def test_guild_outside_membership_is_404(client) -> None:
    login(client)
    response = client.get("/api/guilds/G9/config")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_guild_channels(client) -> None:
    login(client)
    response = client.get("/api/guilds/G1/channels")
    assert response.status_code == 200
    assert response.json() == [{"id": "100", "name": "welcome", "type": 0}]
    assert client.get("/api/guilds/G2/channels").status_code == 403


def test_welcome_channel_and_drift_report(client, store) -> None:
    login(client)
    client.post("/api/guilds/G1/config", json={"welcomeChannel": "dash"})

    response = client.post("/api/guilds/G1/welcome-channel", json={"channelRef": "12345"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "guildId": "G1", "channelRef": "12345"}
    client.post("/api/guilds/G1/welcome-channel", json={"channelId": "67890"})

    config = client.get("/api/guilds/G1/config").json()
    assert config["settings"]["welcomeChannel"] == "dash"

    report = client.get("/api/debug/welcome-channels").json()
    assert report["legacy"]["channels"] == {"G1": "67890"}
    assert report["dashboard"] == [{"guildId": "G1", "welcomeChannel": "dash"}]
    assert report["drifted"] == ["G1"]


def test_logout_ends_session(client) -> None:
    login(client)
    response = client.post("/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get("/api/user").status_code == 401
    # logging out again still succeeds
    assert client.post("/auth/logout").status_code == 200


def test_logout_store_failure_is_500(client, store) -> None:
    login(client)

    async def broken_delete(collection, key):
        raise StoreUnavailable("Cannot write document store")

    store.delete = broken_delete
    response = client.post("/auth/logout")
    assert response.status_code == 500
    assert response.json()["error"] == "store_unavailable"


def test_membership_snapshot_is_not_refreshed(client, provider) -> None:
    login(client)
    provider.user_guilds = [GuildMembership(guild_id="G3", permissions=0x20)]
    body = client.get("/api/user").json()
    assert [g["id"] for g in body["guilds"]] == ["G1", "G2"]


def test_welcome_channel_requires_a_channel_field(client, store) -> None:
    login(client)
    client.post("/api/guilds/G1/welcome-channel", json={"channelRef": "12345"})

    response = client.post("/api/guilds/G1/welcome-channel", json={})
    assert response.status_code == 422
    response = client.post("/api/guilds/G1/welcome-channel", json={"channel": "999"})
    assert response.status_code == 422
    legacy = asyncio.run(store.find_one(BOT_SETTINGS, WELCOME_CHANNELS_KEY))
    assert legacy == {"channels": {"G1": "12345"}}

    response = client.post("/api/guilds/G1/welcome-channel", json={"channelRef": ""})
    assert response.status_code == 200
    legacy = asyncio.run(store.find_one(BOT_SETTINGS, WELCOME_CHANNELS_KEY))
    assert legacy == {"channels": {"G1": ""}}


def test_logging_in_again_replaces_the_old_session(client, store) -> None:
    login(client)
    first = client.cookies["lunor_session"]
    login(client)
    assert client.cookies["lunor_session"] != first
    assert asyncio.run(store.find_one("sessions", first)) is None
    assert len(asyncio.run(store.find_all("sessions"))) == 1


def test_callback_store_failure_redirects_to_landing(client, store) -> None:
    response = client.get("/auth/login", follow_redirects=False)
    state = response.headers["location"].rsplit("state=", 1)[1]
    original_insert = store.insert_if_absent

    async def rejecting_insert(collection, key, document):
        if document.get("status") == "authenticated":
            raise StoreUnavailable("Cannot write document store")
        return await original_insert(collection, key, document)

    store.insert_if_absent = rejecting_insert
    response = client.get(
        "/auth/callback", params={"code": "C", "state": state}, follow_redirects=False
    )
    assert response.status_code == 307
    assert response.headers["location"] == "/"
    assert client.get("/api/user").status_code == 401
