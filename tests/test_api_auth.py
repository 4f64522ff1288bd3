import asyncio
import time

import httpx
import pytest

from webflow_bff.config import Settings
from webflow_bff.main import create_app
from webflow_bff.service import auth_service
from webflow_bff.domain.tokens import decode_session_token, issue_session_token

from .conftest import TEST_SECRET

LONG_TOKEN = "wf_" + "x" * 40


def _sites(upstream, count=2):
    upstream.add(
        "GET", "/v2/sites", httpx.Response(200, json={"sites": [{"id": f"S{i}"} for i in range(count)]})
    )


def test_authenticate_issues_session_without_embedding(client, upstream):
    _sites(upstream)
    r = client.post("/api/auth/authenticate", json={"token": LONG_TOKEN, "tokenName": "Main"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["user"]["tokenName"] == "Main"
    claims = decode_session_token(body["token"], secret=TEST_SECRET)
    assert claims.webflowToken is None
    assert claims.name == "Main"
    assert upstream.calls[0].headers["Authorization"] == f"Bearer {LONG_TOKEN}"


def test_session_token_resolves_stored_credential(client, upstream):
    _sites(upstream)
    token = client.post("/api/auth/authenticate", json={"token": LONG_TOKEN}).json()["token"]
    r = client.get("/api/webflow/sites", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert upstream.calls[-1].headers["Authorization"] == f"Bearer {LONG_TOKEN}"


def test_authenticate_embeds_when_configured(make_client, upstream):
    _sites(upstream)
    client = make_client(settings=Settings(jwt_secret=TEST_SECRET, embed_upstream_token=True))
    token = client.post("/api/auth/authenticate", json={"token": LONG_TOKEN}).json()["token"]
    assert decode_session_token(token, secret=TEST_SECRET).webflowToken == LONG_TOKEN


def test_authenticate_requires_token(client, upstream):
    r = client.post("/api/auth/authenticate", json={})
    assert r.status_code == 400
    assert upstream.calls == []


def test_authenticate_rejects_bad_upstream_token(client, upstream):
    upstream.add("GET", "/v2/sites", httpx.Response(401, json={"message": "invalid"}))
    r = client.post("/api/auth/authenticate", json={"token": "bad"})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid Webflow token. Authentication failed."


def test_webflow_alias_for_authenticate(client, upstream):
    _sites(upstream)
    r = client.post("/api/webflow/auth/authenticate", json={"token": LONG_TOKEN})
    assert r.status_code == 200


def test_register_login_profile(client):
    r = client.post("/api/auth/register", json={"username": "ana", "password": "pw"})
    assert r.status_code == 200
    dup = client.post("/api/auth/register", json={"username": "ANA", "password": "pw"})
    assert dup.status_code == 409

    bad = client.post("/api/auth/login", json={"username": "ana", "password": "nope"})
    assert bad.status_code == 401

    token = client.post("/api/auth/login", json={"username": "ana", "password": "pw"}).json()["token"]
    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"}).json()
    assert profile["username"] == "ana"
    assert profile["hasWebflowToken"] is False


def test_profile_requires_session(client):
    assert client.get("/api/auth/profile").status_code == 401


def test_save_and_validate_token(client, upstream):
    _sites(upstream, count=3)
    session = client.post("/api/auth/register", json={"username": "bo", "password": "pw"}).json()["token"]
    auth = {"Authorization": f"Bearer {session}"}

    short = client.post("/api/auth/token", headers=auth, json={"token": "short"})
    assert short.status_code == 400

    saved = client.post("/api/auth/token", headers=auth, json={"token": LONG_TOKEN})
    assert saved.status_code == 200
    assert saved.json()["siteCount"] == 3

    profile = client.get("/api/auth/profile", headers=auth).json()
    assert profile["hasWebflowToken"] is True
    assert LONG_TOKEN not in str(profile)

    valid = client.get("/api/auth/token/validate", headers=auth)
    assert valid.status_code == 200
    assert valid.json() == {"valid": True, "message": "Webflow token is valid", "siteCount": 3}


def test_validate_token_without_credential(client, upstream):
    r = client.get("/api/auth/token/validate")
    assert r.status_code == 401
    assert upstream.calls == []


def test_expired_profile_token(client):
    tok = issue_session_token(secret=TEST_SECRET, subject="s", ttl_seconds=1, now=1_000)
    r = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {tok}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_register_hashes_off_the_event_loop(settings, upstream, monkeypatch):
    real_hash = auth_service.hash_password

    def slow_hash(password, **kwargs):
        time.sleep(0.2)
        return real_hash(password, **kwargs)

    monkeypatch.setattr(auth_service, "hash_password", slow_hash)
    app = create_app(settings, transport=upstream.transport)
    ticks = 0
    done = asyncio.Event()

    async def ticker():
        nonlocal ticks
        while not done.is_set():
            ticks += 1
            await asyncio.sleep(0.01)

    task = asyncio.create_task(ticker())
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as http:
        r = await http.post("/api/auth/register", json={"username": "cy", "password": "pw"})
    done.set()
    await task

    assert r.status_code == 200
    # a blocked loop would only tick once or twice in 200 ms
    assert ticks >= 5


def test_save_token_reissues_session_in_embed_mode(make_client, upstream):
    _sites(upstream)
    client = make_client(settings=Settings(jwt_secret=TEST_SECRET, embed_upstream_token=True))
    old = client.post("/api/auth/authenticate", json={"token": LONG_TOKEN}).json()["token"]

    new_token = "wf_" + "y" * 40
    saved = client.post(
        "/api/auth/token", headers={"Authorization": f"Bearer {old}"}, json={"token": new_token}
    )
    assert saved.status_code == 200
    fresh = saved.json()["token"]
    assert decode_session_token(fresh, secret=TEST_SECRET).webflowToken == new_token

    r = client.get("/api/webflow/sites", headers={"Authorization": f"Bearer {fresh}"})
    assert r.status_code == 200
    assert upstream.calls[-1].headers["Authorization"] == f"Bearer {new_token}"


def test_save_token_keeps_session_without_embedding(client, upstream):
    _sites(upstream)
    session = client.post("/api/auth/register", json={"username": "di", "password": "pw"}).json()["token"]
    saved = client.post(
        "/api/auth/token", headers={"Authorization": f"Bearer {session}"}, json={"token": LONG_TOKEN}
    )
    assert "token" not in saved.json()
