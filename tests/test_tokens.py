import jwt
import pytest

from webflow_bff.domain.tokens import (
    ExpiredTokenError,
    MalformedTokenError,
    decode_session_token,
    issue_session_token,
)

SECRET = "unit-secret"


def test_issue_and_decode_claims():
    tok = issue_session_token(secret=SECRET, subject="u1", ttl_seconds=60, name="Main", now=1_000)
    # decode against a clock inside the validity window
    data = jwt.decode(tok, SECRET, algorithms=["HS256"], options={"verify_exp": False})
    assert data == {"sub": "u1", "iat": 1_000, "exp": 1_060, "authenticated": True, "name": "Main"}


def test_upstream_token_is_only_embedded_when_given():
    tok = issue_session_token(secret=SECRET, subject="u1", ttl_seconds=60)
    assert decode_session_token(tok, secret=SECRET).webflowToken is None
    tok = issue_session_token(secret=SECRET, subject="u1", ttl_seconds=60, webflow_token="wf")
    assert decode_session_token(tok, secret=SECRET).webflowToken == "wf"


def test_expired_token():
    tok = issue_session_token(secret=SECRET, subject="u1", ttl_seconds=10, now=1_000)
    with pytest.raises(ExpiredTokenError) as ei:
        decode_session_token(tok, secret=SECRET)
    assert ei.value.code == "expired_token"


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_malformed_token(token):
    with pytest.raises(MalformedTokenError):
        decode_session_token(token, secret=SECRET)


def test_wrong_secret_is_malformed():
    tok = issue_session_token(secret=SECRET, subject="u1", ttl_seconds=60)
    with pytest.raises(MalformedTokenError):
        decode_session_token(tok, secret="other")


def test_missing_required_claim():
    tok = jwt.encode({"sub": "u1", "exp": 9_999_999_999}, SECRET, algorithm="HS256")
    with pytest.raises(MalformedTokenError):
        decode_session_token(tok, secret=SECRET)


def test_secret_is_required_to_issue():
    with pytest.raises(ValueError):
        issue_session_token(secret="", subject="u1", ttl_seconds=60)
