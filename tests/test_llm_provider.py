from types import SimpleNamespace

import pytest
from pydantic import BaseModel

from helpdesk_ai.services.llm_provider import (
    JSON_ONLY_DIRECTIVE,
    LLMProvider,
    LLMProviderError,
    LLMResponse,
    ModelTier,
    StructuredOutputError,
    TierConfig,
    extract_json_text,
    parse_structured,
)


class FakeResponses:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(output_text=reply)


class FakeOpenAI:
    def __init__(self, replies):
        self.responses = FakeResponses(replies)
        self.closed = False

    def close(self):
        self.closed = True


TIERS = {
    ModelTier.standard: TierConfig(model="small-model", temperature=0.7, max_tokens=1000, timeout_seconds=60),
    ModelTier.advanced: TierConfig(model="large-model", temperature=0.5, max_tokens=2000, timeout_seconds=120),
}


def _provider(*replies):
    client = FakeOpenAI(replies)
    return LLMProvider(api_key="test-key", client=client, tiers=TIERS), client


def test_generate_structured_extracts_fenced_json_after_prose():
    provider, client = _provider('here you go: ```json\n{"a":1,"b":2}\n```')

    result = provider.generate_structured("Give me a and b", "Return fields a and b")

    assert result == {"a": 1, "b": 2}
    sent = client.responses.calls[0]["input"][0]["content"][0]["text"]
    assert sent == f"Return fields a and b\n\nGive me a and b\n\n{JSON_ONLY_DIRECTIVE}"


def test_fenced_json_parses_like_its_content():
    fenced = LLMResponse(raw_text='```json\n{"title": "Tulostin", "count": 2}\n```')
    plain = LLMResponse(raw_text='{"title": "Tulostin", "count": 2}')

    assert parse_structured(fenced) == parse_structured(plain)


def test_unfenced_json_is_used_directly():
    assert extract_json_text('  {"ok": true}  ') == '{"ok": true}'


def test_any_fence_is_used_when_no_json_fence_exists():
    response = LLMResponse(raw_text='Result:\n```\n{"ok": true}\n```')

    assert parse_structured(response) == {"ok": True}


@pytest.mark.parametrize("raw", ["not json at all", "{}", "[1, 2]", "```json\n[]\n```", "null"])
def test_non_object_or_empty_replies_raise_parse_error(raw):
    with pytest.raises(StructuredOutputError):
        parse_structured(LLMResponse(raw_text=raw))


def test_parse_error_is_distinct_from_provider_error(caplog):
    provider, _ = _provider("I cannot help with that.")

    with caplog.at_level("ERROR"):
        with pytest.raises(StructuredOutputError) as excinfo:
            provider.generate_structured("prompt", "instructions")

    assert not isinstance(excinfo.value, LLMProviderError)
    assert excinfo.value.raw_text == "I cannot help with that."
    assert any(record.getMessage() == "llm.structured.parse_error" for record in caplog.records)


def test_provider_failures_and_timeouts_raise_provider_error():
    provider, _ = _provider(TimeoutError("read timed out"))

    with pytest.raises(LLMProviderError):
        provider.generate("hello")


def test_tiers_select_model_and_timeout():
    provider, client = _provider("standard answer", "advanced answer")

    assert provider.generate("one") == "standard answer"
    assert provider.generate_advanced("two") == "advanced answer"

    standard, advanced = client.responses.calls
    assert (standard["model"], standard["timeout"], standard["max_output_tokens"]) == ("small-model", 60, 1000)
    assert (advanced["model"], advanced["timeout"], advanced["max_output_tokens"]) == ("large-model", 120, 2000)


def test_missing_api_key_fails_before_any_request():
    provider = LLMProvider(api_key="", tiers=TIERS)
    provider.api_key = None

    with pytest.raises(LLMProviderError):
        provider.generate("hello")


def test_generate_model_validates_schema():
    class Pair(BaseModel):
        a: int
        b: int

    provider, _ = _provider('{"a": 1, "b": 2}', '{"a": "x"}')

    assert provider.generate_model("p", "i", Pair) == Pair(a=1, b=2)
    with pytest.raises(StructuredOutputError):
        provider.generate_model("p", "i", Pair)


def test_close_releases_client():
    provider, client = _provider()

    provider.close()

    assert client.closed is True
