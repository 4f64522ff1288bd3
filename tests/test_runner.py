import httpx
import pytest

from runner.cli import parse_args
from runner.smoke import run_smoke
from runner.types import StepResult
from runner.utils import summarize
from webflow_bff.main import create_app

BASE = "http://testserver"


@pytest.fixture
def app_transport(settings, upstream):
    return httpx.ASGITransport(app=create_app(settings, transport=upstream.transport))


def test_summarize_exit_codes():
    ok = [StepResult("health", True, 1.0), StepResult("authenticate", True, 2.0)]
    summary, code = summarize(ok)
    assert code == 0
    assert summary["passed"] == 2

    _, code = summarize(ok + [StepResult("list_sites", False, 1.0, {"error": "x"})])
    assert code == 1
    _, code = summarize([])
    assert code == 1


def test_cli_requires_token(monkeypatch):
    monkeypatch.delenv("WEBFLOW_TOKEN", raising=False)
    with pytest.raises(SystemExit):
        parse_args([])
    monkeypatch.setenv("WEBFLOW_TOKEN", "from-env")
    assert parse_args(["--site-id", "S1"]).webflow_token == "from-env"


@pytest.mark.asyncio
async def test_smoke_run_passes(app_transport, upstream):
    upstream.add("GET", "/v2/sites", httpx.Response(200, json={"sites": [{"id": "S1"}]}))
    upstream.add("GET", "/v2/sites/S1", httpx.Response(200, json={"id": "S1"}))
    upstream.add("GET", "/beta/sites/S1/assets", httpx.Response(200, json={"assets": [{"displayName": "a"}]}))
    code = await run_smoke(base_url=BASE, webflow_token="wf", timeout_s=2.0, transport=app_transport)
    assert code == 0


@pytest.mark.asyncio
async def test_smoke_run_fails_on_bad_token(app_transport, upstream):
    upstream.add("GET", "/v2/sites", httpx.Response(401, json={"message": "invalid"}))
    code = await run_smoke(base_url=BASE, webflow_token="wf", timeout_s=2.0, transport=app_transport)
    assert code == 1
