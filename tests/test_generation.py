"""Tests for error classification, content conversion and the Gemini client."""

from types import SimpleNamespace

import pytest

from gemchat.ai.client import GeminiClient
from gemchat.ai.contents import build_contents
from gemchat.ai.errors import (
    ClassifierRule,
    GenerationError,
    classify_error,
    to_generation_error,
)
from gemchat.config import GeminiConfig
from gemchat.core.models import Message
from gemchat.core.types import GenerationErrorKind, Role


@pytest.mark.parametrize(
    "message, kind",
    [
        ("API_KEY_INVALID: API key not valid", GenerationErrorKind.AUTH),
        ("401 Unauthorized", GenerationErrorKind.AUTH),
        ("403 PERMISSION_DENIED", GenerationErrorKind.AUTH),
        ("Resource has been exhausted (e.g. check quota).", GenerationErrorKind.QUOTA),
        ("429 Too Many Requests", GenerationErrorKind.QUOTA),
        ("Rate limit exceeded, slow down", GenerationErrorKind.RATE_LIMIT),
        ("Failed to fetch", GenerationErrorKind.NETWORK),
        ("Network is unreachable", GenerationErrorKind.NETWORK),
        ("Something odd happened", GenerationErrorKind.UNKNOWN),
    ],
)
def test_classify_error(message, kind):
    assert classify_error(message) == kind


def test_custom_rules_take_precedence_in_order():
    rules = (ClassifierRule(GenerationErrorKind.NETWORK, ("timeout",)),)
    assert classify_error("deadline timeout", rules) == GenerationErrorKind.NETWORK
    assert classify_error("401", rules) == GenerationErrorKind.UNKNOWN


def test_to_generation_error_keeps_existing_errors():
    original = GenerationError(GenerationErrorKind.QUOTA, "out")
    assert to_generation_error(original) is original
    wrapped = to_generation_error(ConnectionError("network down"))
    assert wrapped.kind == GenerationErrorKind.NETWORK
    assert wrapped.message == "network down"


def test_build_contents_maps_roles_and_skips_empty_text():
    history = [
        Message(role=Role.USER, text="hello"),
        Message(role=Role.MODEL, text="hi"),
        Message(role=Role.MODEL, text="", is_thinking=True),
        Message(role=Role.USER, text="again"),
    ]
    assert build_contents(history) == [
        {"role": "user", "parts": [{"text": "hello"}]},
        {"role": "model", "parts": [{"text": "hi"}]},
        {"role": "user", "parts": [{"text": "again"}]},
    ]


class _FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return SimpleNamespace(text=self._chunks.pop(0))


class _FakeModels:
    def __init__(self, chunks=(), error=None):
        self.chunks = chunks
        self.error = error
        self.requests = []

    async def generate_content_stream(self, model, contents, config):
        self.requests.append({"model": model, "contents": contents, "config": config})
        if self.error:
            raise self.error
        return _FakeStream(self.chunks)

    async def generate_content(self, model, contents, config):
        self.requests.append({"model": model, "contents": contents, "config": config})
        if self.error:
            raise self.error
        return SimpleNamespace(text="".join(self.chunks))


def _client(models, stream=True):
    client = GeminiClient(GeminiConfig(api_key="test-key", stream=stream))
    client._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return client


def test_gemini_client_requires_api_key():
    with pytest.raises(ValueError):
        GeminiClient(GeminiConfig(api_key=None))


@pytest.mark.asyncio
async def test_gemini_stream_reports_cumulative_text():
    models = _FakeModels(chunks=["Hel", "lo", None, " world"])
    client = _client(models)
    partials = []

    final = await client.generate(
        [Message(role=Role.USER, text="hi")], "gemini-2.0-flash-lite", partials.append, "Be brief."
    )

    assert final == "Hello world"
    assert partials == ["Hel", "Hello", "Hello world"]
    request = models.requests[0]
    assert request["model"] == "gemini-2.0-flash-lite"
    assert request["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
    assert request["config"].system_instruction == "Be brief."


@pytest.mark.asyncio
async def test_gemini_non_stream_calls_partial_once():
    client = _client(_FakeModels(chunks=["whole ", "reply"]), stream=False)
    partials = []
    final = await client.generate([Message(role=Role.USER, text="hi")], "m", partials.append)
    assert final == "whole reply"
    assert partials == ["whole reply"]


@pytest.mark.asyncio
async def test_gemini_errors_are_classified():
    client = _client(_FakeModels(error=RuntimeError("429 RESOURCE_EXHAUSTED quota")))
    with pytest.raises(GenerationError) as exc_info:
        await client.generate([Message(role=Role.USER, text="hi")], "m", lambda _: None)
    assert exc_info.value.kind == GenerationErrorKind.QUOTA


@pytest.mark.asyncio
async def test_gemini_health_check_false_on_error():
    class _Models:
        async def get(self, model):
            raise RuntimeError("network down")

    client = GeminiClient(GeminiConfig(api_key="test-key"))
    client._client = SimpleNamespace(aio=SimpleNamespace(models=_Models()))
    assert await client.health_check() is False
