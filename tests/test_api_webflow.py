import httpx

from webflow_bff.domain.tokens import issue_session_token
from webflow_bff.service import webflow_service

from .conftest import TEST_SECRET

HEADERS = {"X-Webflow-Token": "wf-token"}


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "message": "API is running"}
    assert r.headers["Access-Control-Allow-Origin"] == "*"
    assert "X-Request-ID" in r.headers


def test_request_id_is_propagated(client):
    r = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"


def test_preflight_is_empty_and_unauthenticated(client, upstream):
    r = client.options("/api/webflow/sites/S1/assets/csv")
    assert r.status_code == 200
    assert r.content == b""
    assert r.headers["Access-Control-Allow-Methods"] == "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    assert "X-Webflow-Token" in r.headers["Access-Control-Allow-Headers"]
    assert r.headers["Access-Control-Max-Age"] == "86400"
    assert upstream.calls == []


def test_missing_credential_is_401_without_upstream_calls(client, upstream):
    r = client.get("/api/webflow/sites")
    assert r.status_code == 401
    assert r.json()["message"] == "No Webflow token found"
    assert upstream.calls == []


def test_malformed_session_token_is_401(client, upstream):
    r = client.get("/api/webflow/sites", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["reason"] == "malformed_token"
    assert upstream.calls == []


def test_expired_session_token_is_401(client):
    tok = issue_session_token(secret=TEST_SECRET, subject="s", ttl_seconds=1, now=1_000, webflow_token="wf")
    r = client.get("/api/webflow/sites", headers={"Authorization": f"Bearer {tok}"})
    assert r.status_code == 401
    assert r.json()["reason"] == "expired_token"


def test_unknown_path_is_404(client):
    r = client.get("/api/webflow/nothing", headers=HEADERS)
    assert r.status_code == 404
    assert r.json()["message"] == "Endpoint not found"


def test_wrong_method_is_405(client, upstream):
    r = client.delete("/api/webflow/sites", headers=HEADERS)
    assert r.status_code == 405
    assert r.json()["message"] == "Method Not Allowed"
    assert upstream.calls == []


def test_list_sites(client, upstream):
    upstream.add("GET", "/v2/sites", httpx.Response(200, json={"sites": [{"id": "S1", "shortName": "demo"}]}))
    r = client.get("/api/webflow/sites", headers=HEADERS)
    assert r.status_code == 200
    site = r.json()["sites"][0]
    assert site["url"] == "https://demo.webflow.io"
    assert upstream.calls[0].headers["Authorization"] == "Bearer wf-token"


def test_upstream_failure_is_wrapped(client, upstream):
    upstream.add("GET", "/v2/sites", httpx.Response(403, json={"message": "missing scope"}))
    r = client.get("/api/webflow/sites", headers=HEADERS)
    assert r.status_code == 403
    body = r.json()
    assert body["message"] == "Failed to fetch sites"
    assert body["error"] == "missing scope"
    assert body["webflowError"] == {"message": "missing scope"}


def test_collection_item(client, upstream):
    upstream.add("GET", "/v2/collections/C1/items/I1", httpx.Response(200, json={"id": "I1"}))
    r = client.get("/api/webflow/collections/C1/items/I1", headers=HEADERS)
    assert r.status_code == 200
    assert r.json() == {"id": "I1"}


def test_update_item_validates_before_upstream(client, upstream):
    r = client.patch("/api/webflow/collections/C1/items/I1", headers=HEADERS, json={"isDraft": True})
    assert r.status_code == 400
    assert upstream.calls == []


def test_invalid_json_body_is_400(client, upstream):
    r = client.patch(
        "/api/webflow/collections/C1/items/I1",
        headers={**HEADERS, "Content-Type": "application/json"},
        content=b"{not json",
    )
    assert r.status_code == 400
    assert upstream.calls == []


def test_csv_export(client, upstream):
    upstream.add("GET", "/v2/sites/S1", httpx.Response(200, json={"id": "S1"}))
    upstream.add(
        "GET",
        "/beta/sites/S1/assets",
        httpx.Response(200, json={"assets": [{"displayName": "A,B", "size": 2048}]}),
    )
    r = client.get("/api/webflow/sites/S1/assets/csv", headers=HEADERS)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert r.headers["content-disposition"] == 'attachment; filename="assets-S1.csv"'
    assert r.text.splitlines()[1] == '"A,B",,,2,,,,'


def test_top_level_assets_with_site_query(client, upstream):
    upstream.add("GET", "/v2/sites/S1", httpx.Response(200, json={"id": "S1"}))
    upstream.add("GET", "/beta/sites/S1/assets", httpx.Response(200, json={"assets": []}))
    r = client.get("/api/webflow/assets?siteId=S1", headers=HEADERS)
    assert r.status_code == 200
    assert r.json() == {"assets": []}


def test_publish_retries_with_backoff(client, upstream, delays):
    upstream.add("GET", "/v2/sites/S1/custom_domains", httpx.Response(200, json={"customDomains": []}))
    upstream.add(
        "POST",
        "/v2/sites/S1/publish",
        httpx.Response(429, json={}),
        httpx.Response(429, json={}),
        httpx.Response(429, json={}),
        httpx.Response(200, json={"ok": True}),
    )
    r = client.post("/api/webflow/sites/S1/publish", headers=HEADERS)
    assert r.status_code == 200
    assert delays == [1.0, 2.0, 4.0]


def test_publish_with_site_id_in_body(client, upstream):
    upstream.add("GET", "/v2/sites/S2/custom_domains", httpx.Response(200, json={"customDomains": []}))
    upstream.add("POST", "/v2/sites/S2/publish", httpx.Response(200, json={}))
    r = client.post("/api/webflow/sites/publish", headers=HEADERS, json={"siteId": "S2"})
    assert r.status_code == 200
    assert r.json()["message"] == "Site published successfully"


def test_publish_without_site_id(client, upstream):
    r = client.post("/api/webflow/sites/publish", headers=HEADERS, json={})
    assert r.status_code == 400
    assert upstream.calls == []


def test_publish_rate_limit_message_is_kept(client, upstream):
    upstream.add("GET", "/v2/sites/S1/custom_domains", httpx.Response(200, json={"customDomains": []}))
    upstream.add("POST", "/v2/sites/S1/publish", httpx.Response(429, json={"message": "slow"}))
    r = client.post("/api/webflow/sites/S1/publish", headers=HEADERS)
    assert r.status_code == 429
    assert "1 publish per minute" in r.json()["message"]


def test_get_page_requires_site_query(client, upstream):
    r = client.get("/api/webflow/pages/P1", headers=HEADERS)
    assert r.status_code == 400
    assert r.json()["message"] == "Site ID is required as a query parameter"


def test_debug_masks_secrets(client):
    r = client.get("/api/debug")
    assert r.status_code == 200
    assert TEST_SECRET not in r.text


def test_non_dict_list_items_are_skipped(client, upstream):
    upstream.add("GET", "/v2/sites", httpx.Response(200, json={"sites": ["notadict", {"id": "S1"}]}))
    r = client.get("/api/webflow/sites", headers=HEADERS)
    assert r.status_code == 200
    assert [s["id"] for s in r.json()["sites"]] == ["S1"]


def test_unexpected_failure_is_a_regular_error_response(client, upstream, monkeypatch):
    async def broken(client):
        raise RuntimeError("boom")

    monkeypatch.setattr(webflow_service, "list_sites", broken)
    r = client.get("/api/webflow/sites", headers={**HEADERS, "X-Request-ID": "req-500"})
    assert r.status_code == 500
    assert r.json() == {"message": "Server error", "code": "internal_error"}
    assert r.headers["Access-Control-Allow-Origin"] == "*"
    assert r.headers["X-Request-ID"] == "req-500"
