import pytest

from webflow_bff.domain.errors import Unauthorized
from webflow_bff.domain.tokens import issue_session_token
from webflow_bff.service.credentials import (
    InMemorySessionStore,
    SessionRecord,
    bearer_token,
    require_session,
    resolve_credential,
)

SECRET = "unit-secret"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_bearer_token_parsing():
    assert bearer_token({"Authorization": "Bearer abc"}) == "abc"
    assert bearer_token({"authorization": "bearer abc"}) == "abc"
    assert bearer_token({"Authorization": "Basic abc"}) is None
    assert bearer_token({}) is None


def test_header_credential_wins():
    store = InMemorySessionStore()
    cred = resolve_credential({"X-Webflow-Token": "direct"}, secret=SECRET, store=store)
    assert (cred.token, cred.source) == ("direct", "header")


def test_embedded_claim():
    tok = issue_session_token(secret=SECRET, subject="s1", ttl_seconds=60, webflow_token="wf")
    cred = resolve_credential(_bearer(tok), secret=SECRET, store=InMemorySessionStore())
    assert (cred.token, cred.source, cred.subject) == ("wf", "session_claim", "s1")


def test_store_lookup():
    store = InMemorySessionStore()
    store.put("s1", SessionRecord(id="s1", webflow_token="stored"))
    tok = issue_session_token(secret=SECRET, subject="s1", ttl_seconds=60)
    cred = resolve_credential(_bearer(tok), secret=SECRET, store=store)
    assert (cred.token, cred.source) == ("stored", "session_store")


def test_nothing_resolves():
    with pytest.raises(Unauthorized):
        resolve_credential({}, secret=SECRET, store=InMemorySessionStore())
    tok = issue_session_token(secret=SECRET, subject="ghost", ttl_seconds=60)
    with pytest.raises(Unauthorized):
        resolve_credential(_bearer(tok), secret=SECRET, store=InMemorySessionStore())


def test_expired_session_is_unauthorized():
    tok = issue_session_token(secret=SECRET, subject="s1", ttl_seconds=1, now=1_000)
    with pytest.raises(Unauthorized) as ei:
        require_session(_bearer(tok), secret=SECRET)
    assert ei.value.extra["reason"] == "expired_token"


def test_store_stamps_created_at():
    store = InMemorySessionStore()
    store.put("k", SessionRecord(id="k"))
    assert store.get("k").created_at > 0
    assert len(store) == 1
