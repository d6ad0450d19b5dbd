import types

import pytest

from glimpse import llm_client
from glimpse.errors import (
    PARSE_ERROR_PLACEHOLDER,
    FallbackAlsoFailed,
    ProviderCallFailed,
    UnsupportedFramework,
    UnsupportedProvider,
)


class FakeResp:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _chat_payload(text):
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def _install(monkeypatch, responses):
    calls = []

    def fake_post(url, headers=None, params=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "params": params, "json": json})
        resp = responses[len(calls) - 1]
        if isinstance(resp, Exception):
            raise resp
        return resp

    monkeypatch.setattr(llm_client, "requests", types.SimpleNamespace(post=fake_post))
    return calls


def test_grok_uses_chat_completions_and_extracts_code(monkeypatch):
    calls = _install(monkeypatch, [FakeResp(payload=_chat_payload("explainfiton\n'''\n<p>hi</p>\n'''\nexplanation"))])

    art = llm_client.generate_artifact("a greeting", "classic", "grok", "sk-test")

    assert art.extracted_code == "<p>hi</p>"
    assert art.framework == "classic" and art.provider == "grok"
    assert len(calls) == 1
    assert calls[0]["url"] == llm_client.GROQ_ENDPOINT
    assert calls[0]["headers"]["Authorization"] == "Bearer sk-test"
    assert calls[0]["json"]["model"] == llm_client.GROQ_MODEL
    assert "a greeting" in calls[0]["json"]["messages"][0]["content"]


def test_openai_goes_to_openai_endpoint(monkeypatch):
    calls = _install(monkeypatch, [FakeResp(payload=_chat_payload("```jsx\nfunction App() {}\n```"))])
    assert llm_client.generate_code("x", "react", "openai", "k") == "function App() {}"
    assert calls[0]["url"] == llm_client.OPENAI_ENDPOINT


def test_gemini_sends_key_as_query_param_with_generation_config(monkeypatch):
    calls = _install(monkeypatch, [FakeResp(payload=_gemini_payload("'''function setup() {}'''"))])

    code = llm_client.generate_code("circles", "p5js", "gemini", "g-key")

    assert code == "function setup() {}"
    assert calls[0]["params"] == {"key": "g-key"}
    assert calls[0]["url"] == llm_client.gemini_endpoint(llm_client.GEMINI_MODEL)
    assert calls[0]["json"]["generationConfig"]["topK"] == 40


def test_gemini_failure_retries_once_on_fallback_model(monkeypatch):
    calls = _install(
        monkeypatch,
        [
            FakeResp(status_code=503, text="overloaded"),
            FakeResp(payload=_gemini_payload("'''const fallback = true;'''")),
        ],
    )

    art = llm_client.generate_artifact("p", "react", "gemini", "k")

    assert len(calls) == 2
    assert calls[1]["url"] == llm_client.gemini_endpoint(llm_client.GEMINI_FALLBACK_MODEL)
    assert "generationConfig" not in calls[1]["json"]
    assert art.extracted_code == "const fallback = true;"


def test_gemini_and_fallback_both_failing_raises(monkeypatch):
    calls = _install(monkeypatch, [RuntimeError("network down"), FakeResp(status_code=500, text="boom")])

    with pytest.raises(FallbackAlsoFailed) as excinfo:
        llm_client.generate_artifact("p", "classic", "gemini", "k")

    assert len(calls) == 2
    assert str(excinfo.value).endswith("(Fallback also failed)")
    assert "network down" in str(excinfo.value)


def test_non_gemini_failure_is_not_retried(monkeypatch):
    calls = _install(monkeypatch, [FakeResp(status_code=401, text="bad key"), FakeResp(payload=_chat_payload("x"))])

    with pytest.raises(ProviderCallFailed) as excinfo:
        llm_client.generate_artifact("p", "react", "grok", "k")

    assert len(calls) == 1
    assert not isinstance(excinfo.value, FallbackAlsoFailed)
    assert "401" in str(excinfo.value)


def test_non_json_body_is_a_provider_failure(monkeypatch):
    _install(monkeypatch, [FakeResp(status_code=200, payload=None, text="<html>")])
    with pytest.raises(ProviderCallFailed):
        llm_client.generate_artifact("p", "react", "openai", "k")


@pytest.mark.parametrize(
    "payload",
    [
        {"candidates": []},
        {"candidates": [{"content": ["oops"]}]},
        {"candidates": [{"content": {"parts": "oops"}}]},
    ],
)
def test_malformed_gemini_reply_goes_to_fallback_model(monkeypatch, payload):
    calls = _install(
        monkeypatch,
        [FakeResp(payload=payload), FakeResp(payload=_gemini_payload("'''<p>from fallback</p>'''"))],
    )

    art = llm_client.generate_artifact("p", "classic", "gemini", "k")

    assert len(calls) == 2
    assert calls[1]["url"] == llm_client.gemini_endpoint(llm_client.GEMINI_FALLBACK_MODEL)
    assert art.extracted_code == "<p>from fallback</p>"


def test_malformed_gemini_reply_and_failed_fallback_raise(monkeypatch):
    _install(monkeypatch, [FakeResp(payload={"candidates": [{"content": ["oops"]}]}), FakeResp(status_code=500)])
    with pytest.raises(FallbackAlsoFailed) as excinfo:
        llm_client.generate_artifact("p", "react", "gemini", "k")
    assert llm_client.GEMINI_UNEXPECTED_FORMAT in str(excinfo.value)


def test_unparsable_answer_yields_parse_placeholder(monkeypatch):
    _install(monkeypatch, [FakeResp(payload=_chat_payload("Explanation: nothing here"))])
    assert llm_client.generate_code("p", "react", "grok", "k") == PARSE_ERROR_PLACEHOLDER


def test_analysis_framework_returns_raw_answer(monkeypatch):
    raw = "Summary: fine\n'''\nnot code\n'''"
    calls = _install(monkeypatch, [FakeResp(payload=_chat_payload(raw))])
    assert llm_client.generate_code("review this", "analysis", "grok", "k") == raw
    assert calls[0]["json"]["messages"][0]["content"] == "review this"


def test_unknown_provider_and_framework_fail_before_any_call(monkeypatch):
    calls = _install(monkeypatch, [])
    with pytest.raises(UnsupportedProvider):
        llm_client.generate_artifact("p", "react", "claude", "k")
    with pytest.raises(UnsupportedFramework):
        llm_client.generate_artifact("p", "vue", "grok", "k")
    assert calls == []


def test_status_lists_providers_and_models():
    body = llm_client.status()
    assert body["providers"] == ["grok", "openai", "gemini"]
    assert body["fallback"]["gemini"] == llm_client.GEMINI_FALLBACK_MODEL
