"""Integration tests for the account session lifecycle over HTTP."""

import pytest
from httpx import ASGITransport, AsyncClient

BASE = "/api/v1/users"


@pytest.fixture
async def api(store, token_service, media):
    """Async client against the app with in-memory services."""
    from vidtube.api.dependencies import get_media_service, get_token_service, get_user_store
    from vidtube.main import app

    app.dependency_overrides[get_user_store] = lambda: store
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_media_service] = lambda: media
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


async def _refresh(api, refresh_token):
    api.cookies.clear()
    return await api.post(f"{BASE}/refresh-token", json={"refresh_token": refresh_token})


async def test_register_login_refresh_and_reuse(api, store):
    """A refresh token works exactly once; replaying it is rejected."""
    register = await api.post(
        f"{BASE}/register",
        data={"username": "neo", "email": "neo@x.com", "full_name": "Neo", "password": "p@ss"},
        files={"avatar": ("a.png", b"\x89PNG", "image/png")},
    )
    assert register.status_code == 201
    user = register.json()["data"]
    assert "password" not in user
    assert "password_hash" not in user
    assert "refresh_token" not in user

    login = await api.post(f"{BASE}/login", json={"username": "neo", "password": "p@ss"})
    assert login.status_code == 200
    first = login.json()["data"]
    assert first["access_token"]
    assert first["refresh_token"]

    rotated = await _refresh(api, first["refresh_token"])
    assert rotated.status_code == 200
    second = rotated.json()["data"]
    assert second["refresh_token"] != first["refresh_token"]

    replay = await _refresh(api, first["refresh_token"])
    assert replay.status_code == 401
    assert replay.json()["message"] == "Refresh token is expired or used"

    # The rotated token still works exactly once
    assert (await _refresh(api, second["refresh_token"])).status_code == 200
    assert (await _refresh(api, second["refresh_token"])).status_code == 401


async def test_logout_ends_session(api):
    await api.post(
        f"{BASE}/register",
        data={"username": "trinity", "email": "t@x.com", "full_name": "Trinity", "password": "pw"},
        files={"avatar": ("t.png", b"\x89PNG", "image/png")},
    )
    tokens = (
        await api.post(f"{BASE}/login", json={"email": "t@x.com", "password": "pw"})
    ).json()["data"]
    api.cookies.clear()

    logout = await api.post(
        f"{BASE}/logout", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert logout.status_code == 200

    assert (await _refresh(api, tokens["refresh_token"])).status_code == 401


async def test_relogin_supersedes_previous_session(api):
    await api.post(
        f"{BASE}/register",
        data={"username": "neo", "email": "neo@x.com", "full_name": "Neo", "password": "p@ss"},
        files={"avatar": ("a.png", b"\x89PNG", "image/png")},
    )
    creds = {"username": "neo", "password": "p@ss"}
    first = (await api.post(f"{BASE}/login", json=creds)).json()["data"]
    second = (await api.post(f"{BASE}/login", json=creds)).json()["data"]

    assert (await _refresh(api, first["refresh_token"])).status_code == 401
    assert (await _refresh(api, second["refresh_token"])).status_code == 200
