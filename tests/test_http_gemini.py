import json

CONTENTS = [{"role": "user", "parts": [{"text": "hello"}]}]


def test_generate_content_echo(make_app, call):
    resp = call(make_app(), "POST", "/v1beta/models/echo:generateContent", json={"contents": CONTENTS})

    assert resp.status_code == 200
    body = resp.json()
    candidate = body["candidates"][0]
    assert candidate["content"]["parts"][0]["text"] == "hello"
    assert candidate["finishReason"] == "STOP"
    assert body["usageMetadata"] == {"promptTokenCount": 5, "candidatesTokenCount": 5, "totalTokenCount": 10}


def test_trigger_and_usage_override(make_app, call):
    models = {
        "gemini-fake": [
            {"hello": {"content": "Hi there!", "usage": {"output": 999999}}},
            {"_default": {"type": "echo"}},
        ]
    }
    app = make_app(models)

    body = call(app, "POST", "/v1beta/models/gemini-fake:generateContent", json={"contents": CONTENTS}).json()
    assert body["candidates"][0]["content"]["parts"][0]["text"] == "Hi there!"
    assert body["usageMetadata"]["candidatesTokenCount"] == 999999

    other = [{"role": "user", "parts": [{"text": "anything else"}]}]
    body = call(app, "POST", "/v1beta/models/gemini-fake:generateContent", json={"contents": other}).json()
    assert body["candidates"][0]["content"]["parts"][0]["text"] == "anything else"


def test_function_call_is_synthesized(make_app, call):
    body = {
        "contents": CONTENTS,
        "tools": [{"functionDeclarations": [{"name": "get_weather"}, {"name": "other"}]}],
    }
    parts = call(make_app(), "POST", "/v1beta/models/echo:generateContent", json=body).json()["candidates"][0][
        "content"
    ]["parts"]

    calls = [part["functionCall"] for part in parts if "functionCall" in part]
    assert calls == [{"name": "get_weather", "args": {"input": "hello"}}]


def test_stream_sse(make_app, call, sse):
    resp = call(make_app(), "POST", "/v1beta/models/echo:streamGenerateContent", json={"contents": CONTENTS})

    assert resp.headers["content-type"].startswith("text/event-stream")
    events = sse(resp.text)
    assert len(events) == 1
    assert json.loads(events[0][1])["candidates"][0]["content"]["parts"][0]["text"] == "hello"


def test_stream_ndjson(make_app, call):
    resp = call(
        make_app(),
        "POST",
        "/v1beta/models/echo:streamGenerateContent",
        json={"contents": CONTENTS},
        params={"stream_format": "ndjson"},
    )

    assert resp.headers["content-type"].startswith("application/x-ndjson")
    lines = [line for line in resp.text.splitlines() if line]
    assert len(lines) == 1
    assert json.loads(lines[0])["usageMetadata"]["totalTokenCount"] == 10


def test_count_tokens(make_app, call):
    resp = call(make_app(), "POST", "/v1beta/models/echo:countTokens", json={"contents": CONTENTS})
    assert resp.json() == {"totalTokens": 5}

    body = {"generateContentRequest": {"contents": CONTENTS}}
    resp = call(make_app(), "POST", "/v1beta/models/echo:countTokens", json=body)
    assert resp.json() == {"totalTokens": 5}


def test_unknown_action(make_app, call):
    resp = call(make_app(), "POST", "/v1beta/models/echo:embedContent", json={"contents": CONTENTS})
    assert resp.status_code == 404
    assert resp.json() == {"error": {"code": 404, "message": "Unknown action: embedContent", "status": "NOT_FOUND"}}


def test_unknown_model_uses_gemini_envelope(make_app, call):
    resp = call(make_app({"gemini-fake": "hi"}), "POST", "/v1beta/models/other:generateContent", json={"contents": CONTENTS})
    assert resp.status_code == 404
    assert resp.json()["error"]["status"] == "NOT_FOUND"


def test_simulated_error_envelope(make_app, call):
    resp = call(
        make_app(),
        "POST",
        "/v1beta/models/echo:generateContent",
        json={"contents": CONTENTS},
        headers={"x-error": "503"},
    )
    assert resp.status_code == 503
    assert resp.json() == {"error": {"code": 503, "message": "Simulated error (503)", "status": "UNAVAILABLE"}}


def test_strict_validation(make_app, call):
    app = make_app(strict_validation=True)
    body = {"contents": CONTENTS, "generationConfig": {"temperature": 0}}
    assert call(app, "POST", "/v1beta/models/echo:generateContent", json=body).status_code == 200

    body["model"] = "echo"
    resp = call(app, "POST", "/v1beta/models/echo:generateContent", json=body)
    assert resp.status_code == 400
    assert resp.json()["error"]["status"] == "INVALID_ARGUMENT"


def test_list_and_get_models(make_app, call):
    body = call(make_app({"gemini-fake": "hi"}), "GET", "/v1beta/models").json()
    assert body == {"models": [{"name": "models/gemini-fake", "displayName": "gemini-fake"}]}

    body = call(make_app(), "GET", "/v1beta/models/gemini-pro").json()
    assert body == {"name": "models/gemini-pro", "displayName": "gemini-pro"}
