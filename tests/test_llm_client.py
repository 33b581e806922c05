import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from mockinterview.infrastructure.llm.client import RateLimitError, VertexRestClient


def response(status, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text or json.dumps(payload or {})
    resp.json.return_value = payload or {}
    return resp


def model_reply(text):
    return response(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})


def make_client(*responses):
    session = MagicMock()
    session.post.side_effect = list(responses)
    sleeps = []
    client = VertexRestClient(project="demo", session=session, sleep=sleeps.append)
    client._credentials = SimpleNamespace(valid=True, token="token")
    return client, session, sleeps


def test_generate_json_sends_generation_config():
    client, session, _ = make_client(model_reply('{"ok": true}'))
    assert client.generate_json("Assess this", temperature=0.7, max_output_tokens=512) == {"ok": True}

    url = session.post.call_args.args[0]
    body = session.post.call_args.kwargs["json"]
    assert url.endswith("/projects/demo/locations/us-central1/publishers/google/models/gemini-2.5-flash:generateContent")
    assert body["generationConfig"] == {
        "temperature": 0.7, "maxOutputTokens": 512, "responseMimeType": "application/json",
    }
    assert body["contents"][0]["parts"][0]["text"].startswith("Assess this")
    assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer token"


def test_rate_limit_is_retried_with_backoff():
    client, session, sleeps = make_client(response(429), response(429), model_reply('{"score": 1}'))
    assert client.generate_json("prompt") == {"score": 1}
    assert sleeps == [2.0, 4.0]
    assert session.post.call_count == 3


def test_rate_limit_gives_up_after_three_attempts():
    client, session, sleeps = make_client(response(429), response(429), response(429), model_reply("{}"))
    with pytest.raises(RateLimitError):
        client.generate_json("prompt")
    assert sleeps == [2.0, 4.0]
    assert session.post.call_count == 3


def test_server_error_is_not_retried():
    client, session, sleeps = make_client(response(500, text="boom"))
    with pytest.raises(RuntimeError, match="500"):
        client.generate_json("prompt")
    assert sleeps == []
    assert session.post.call_count == 1


def test_json_is_extracted_from_surrounding_text():
    client, _, _ = make_client(model_reply('Sure! {"categoryScores": {}} Let me know.'))
    assert client.generate_json("prompt") == {"categoryScores": {}}


def test_non_json_reply_is_a_value_error():
    client, _, _ = make_client(model_reply("I cannot help with that."))
    with pytest.raises(ValueError):
        client.generate_json("prompt")

    client, _, _ = make_client(model_reply("[1, 2, 3]"))
    with pytest.raises(ValueError):
        client.generate_json("prompt")


class ExpiringCredentials:
    def __init__(self):
        self.valid = False
        self.token = None
        self.refreshes = 0

    def refresh(self, request):
        self.refreshes += 1
        self.token = f"token-{self.refreshes}"
        self.valid = True


def test_expired_credentials_are_refreshed():
    client, session, _ = make_client(model_reply("{}"), model_reply("{}"))
    credentials = ExpiringCredentials()
    client._credentials = credentials

    client.generate_json("first")
    credentials.valid = False
    client.generate_json("second")

    assert credentials.refreshes == 2
    assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer token-2"


def test_reply_without_text_is_an_error():
    client, _, _ = make_client(response(200, {"candidates": [{"finishReason": "SAFETY"}]}))
    with pytest.raises(RuntimeError):
        client.generate_json("prompt")
