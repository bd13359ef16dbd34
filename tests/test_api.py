import json

import httpx

from marketing_ai.api import get_completion_client
from marketing_ai.completion_client import CompletionClient
from marketing_ai.main import app

from conftest import completion_envelope


def test_post_action_returns_structured_result(client, upstream):
    content = '{"caption":"Try our new cold brew!","image_prompt":"iced coffee on wood table"}'
    upstream.responses = [httpx.Response(200, json=completion_envelope(content))]

    resp = client.post("/api/ai", json={"action": "post", "payload": {"topic": "cold brew launch"}})

    assert resp.status_code == 200
    data = resp.json()
    assert data["result"] == {
        "caption": "Try our new cold brew!",
        "image_prompt": "iced coffee on wood table",
    }
    assert data["raw"] == content

    sent = upstream.last_json()
    assert sent["messages"][0] == {"role": "system", "content": "You are a helpful marketing assistant."}
    assert "cold brew launch" in sent["messages"][1]["content"]


def test_plain_text_completion_is_passed_through(client, upstream):
    resp = client.post("/api/ai", json={"action": "hashtags", "payload": {"topic": "yoga"}})

    assert resp.status_code == 200
    assert resp.json() == {"result": "plain answer"}


def test_missing_action_is_rejected_without_upstream_call(client, upstream):
    resp = client.post("/api/ai", json={"payload": {"topic": "x"}})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing action"
    assert upstream.call_count == 0


def test_unknown_action_is_rejected_without_upstream_call(client, upstream):
    resp = client.post("/api/ai", json={"action": "tweet"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Unknown action"}
    assert upstream.call_count == 0


def test_invalid_json_body(client, upstream):
    resp = client.post("/api/ai", content="not json", headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert "error" in resp.json()
    assert upstream.call_count == 0


def test_non_object_body(client):
    resp = client.post("/api/ai", json=["caption"])
    assert resp.status_code == 400


def test_invalid_payload_type(client, upstream):
    resp = client.post("/api/ai", json={"action": "post", "payload": "cold brew"})

    assert resp.status_code == 400
    assert "payload" in resp.json()["error"]
    assert upstream.call_count == 0


def test_null_payload_uses_defaults(client, upstream):
    resp = client.post("/api/ai", json={"action": "audit", "payload": None})

    assert resp.status_code == 200
    assert "website: unknown" in upstream.last_json()["messages"][1]["content"]


def test_single_prompt_variant(client, upstream):
    resp = client.post("/api/ai", json={"prompt": "Three reel ideas for a bakery"})

    assert resp.status_code == 200
    assert resp.json() == {"result": "plain answer"}
    assert upstream.last_json()["messages"][1]["content"] == "Three reel ideas for a bakery"


def test_action_wins_over_prompt(client, upstream):
    client.post("/api/ai", json={"action": "message", "payload": {"context": "invoice reminder"},
                                 "prompt": "ignored"})

    user = upstream.last_json()["messages"][1]["content"]
    assert "invoice reminder" in user
    assert "ignored" not in user


def test_wrong_method_is_rejected(client, upstream):
    resp = client.get("/api/ai")

    assert resp.status_code == 405
    assert resp.json() == {"error": "Method not allowed. Use POST."}
    assert resp.headers["allow"] == "POST"
    assert upstream.call_count == 0


def test_missing_api_key(client, settings, upstream):
    settings.openai_api_key = ""

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "OPENAI_API_KEY not configured"}
    assert upstream.call_count == 0


def test_rate_limit_rejects_21st_request(client, upstream, clock):
    for _ in range(20):
        assert client.post("/api/ai", json={"action": "post"}).status_code == 200
        clock.advance(1)

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 429
    assert resp.json() == {"error": "rate_limited", "retryAfter": 40}
    assert resp.headers["retry-after"] == "40"
    assert upstream.call_count == 20


def test_rate_limit_keys_on_forwarded_address(client, rate_limiter):
    rate_limiter.max_requests = 1
    headers = {"X-Forwarded-For": "198.51.100.1"}
    assert client.post("/api/ai", json={"action": "post"}, headers=headers).status_code == 200
    assert client.post("/api/ai", json={"action": "post"}, headers=headers).status_code == 429

    resp = client.post("/api/ai", json={"action": "post"}, headers={"X-Forwarded-For": "198.51.100.2, 10.0.0.1"})

    assert resp.status_code == 200


def test_upstream_unauthorized_passes_through(client, upstream):
    upstream.responses = [httpx.Response(401, text='{"error": "invalid api key"}')]

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 401
    body = resp.json()
    assert body["error"] == "OpenAI error"
    assert body["status"] == 401
    assert "invalid api key" in body["details"]
    assert "sk-test" not in resp.text
    assert upstream.call_count == 1


def test_upstream_rate_limit_passes_through_after_retries(client, upstream, sleeper):
    upstream.responses = [httpx.Response(429, text="quota exceeded", headers={"retry-after": "2"})]

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 429
    body = resp.json()
    assert body["details"] == "quota exceeded"
    assert body["retryAfter"] == "2"
    assert upstream.call_count == 5
    assert len(sleeper.delays) == 4


def test_upstream_server_error_collapses_to_500(client, upstream):
    upstream.responses = [httpx.Response(503, text="overloaded")]

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 500
    assert resp.json()["status"] == 503
    assert resp.json()["details"] == "overloaded"


def test_upstream_bad_request_is_not_retried(client, upstream):
    upstream.responses = [httpx.Response(400, text="bad")]

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 500
    assert upstream.call_count == 1


def test_malformed_envelope(client, upstream):
    upstream.responses = [httpx.Response(200, text="<html>gateway</html>")]

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "Malformed response from completion service"


def test_envelope_with_non_list_choices(client, upstream):
    upstream.responses = [httpx.Response(200, json={"choices": {"0": "x"}})]

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "Malformed response from completion service"


def test_transport_failure_reported_as_500(client, settings, sleeper):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    completion = CompletionClient(settings, transport=httpx.MockTransport(refuse), sleep=sleeper,
                                  jitter=lambda upper: 0.0)
    app.dependency_overrides[get_completion_client] = lambda: completion

    resp = client.post("/api/ai", json={"action": "post"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Completion service unavailable", "details": "ConnectError"}


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert isinstance(data["api_key_configured"], bool)
    assert "sk-" not in json.dumps(data)


def test_root_lists_endpoint(client):
    assert client.get("/").json()["endpoints"]["ai"] == "/api/ai"
