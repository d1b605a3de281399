"""End-to-end text endpoints over a stub provider, streaming and not."""

from __future__ import annotations

import dataclasses
import json

import httpx
from fastapi.testclient import TestClient

from modelgate.core.deps import get_provider_registry
from modelgate.core.errors import ProviderTransportError
from modelgate.domain.events import STREAMING_UNSUPPORTED_MESSAGE
from modelgate.domain.providers import Capability, ProviderDescriptor
from modelgate.main import create_app
from modelgate.providers.base import DeferredUsage, ProviderAdapter, StructuredResult, TextResult, TextStream
from modelgate.providers.openai_compat import OpenAICompatibleAdapter
from modelgate.providers.registry import ProviderRegistry


class StubAdapter(ProviderAdapter):
    def __init__(self, name: str = "x", *, fail_with: Exception | None = None) -> None:
        super().__init__(ProviderDescriptor(name=name, base_url="http://stub", default_model="stub-default"))
        self.prompts: list[str] = []
        self.fail_with = fail_with

    async def generate_text(self, prompt, model=None, temperature=None) -> TextResult:
        self.prompts.append(prompt)
        if self.fail_with is not None:
            raise self.fail_with
        return TextResult(text="hi", usage={"promptTokens": 1, "completionTokens": 1, "totalTokens": 2})

    async def generate_structured(self, prompt, schema, model=None, temperature=None) -> StructuredResult:
        raise NotImplementedError

    async def generate_text_stream(self, prompt, model=None, temperature=None) -> TextStream:
        self.prompts.append(prompt)
        usage = DeferredUsage()

        async def fragments():
            for fragment in ("a", "b"):
                yield fragment
            usage.resolve({"input_tokens": 1, "output_tokens": 1, "total_tokens": 2})

        return TextStream(fragments=fragments(), usage=usage)

    async def list_models(self) -> list[str]:
        return []


def _client(*adapters: ProviderAdapter) -> TestClient:
    app = create_app()
    registry = ProviderRegistry()
    for adapter in adapters:
        registry.register(adapter)

    def _registry_override(_=None):
        return registry

    app.dependency_overrides[get_provider_registry] = _registry_override
    return TestClient(app)


def _events(text: str) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in text.split("\n") if line.startswith("data: ")]


def test_summarize_returns_envelope() -> None:
    adapter = StubAdapter()
    client = _client(adapter)

    r = client.post("/v1/summarize", json={"payload": {"text": "hello"}, "config": {"provider": "x", "stream": False}})

    assert r.status_code == 200
    assert r.json() == {
        "summary": "hi",
        "provider": "x",
        "model": "stub-default",
        "usage": {"input_tokens": 1, "output_tokens": 1, "total_tokens": 2},
    }
    assert "hello" in adapter.prompts[0]


def test_summarize_stream_emits_three_events() -> None:
    client = _client(StubAdapter())

    r = client.post("/v1/summarize", json={"payload": {"text": "hello"}, "config": {"provider": "x", "stream": True}})

    assert r.status_code == 200
    assert r.headers.get("content-type", "").startswith("text/event-stream")
    events = _events(r.text)
    assert len(events) == 3
    assert events[0] == {"chunk": "a", "provider": "x", "model": "stub-default"}
    assert events[1]["chunk"] == "b"
    assert events[2]["done"] is True
    assert events[2]["usage"] == {"input_tokens": 1, "output_tokens": 1, "total_tokens": 2}


def test_ask_text_uses_question() -> None:
    adapter = StubAdapter()
    client = _client(adapter)

    r = client.post(
        "/v1/ask-text",
        json={"payload": {"text": "The sky is blue.", "question": "What color?"}, "config": {"provider": "x"}},
    )

    assert r.status_code == 200
    assert r.json()["answer"] == "hi"
    assert "What color?" in adapter.prompts[0]


def test_primary_provider_when_config_omitted() -> None:
    client = _client(StubAdapter("ollama"))

    r = client.post("/v1/summarize", json={"payload": {"text": "hello"}})

    assert r.status_code == 200
    assert r.json()["provider"] == "ollama"


def test_unknown_provider_is_400_with_code() -> None:
    client = _client(StubAdapter())

    r = client.post("/v1/summarize", json={"payload": {"text": "hello"}, "config": {"provider": "nope"}})

    assert r.status_code == 400
    assert r.json()["code"] == "provider_not_registered"
    assert "nope" in r.json()["detail"]


def test_transport_errors_map_to_502_and_504() -> None:
    failing = StubAdapter(fail_with=ProviderTransportError("x", "boom", status_code=500))
    r = _client(failing).post("/v1/summarize", json={"payload": {"text": "t"}, "config": {"provider": "x"}})
    assert r.status_code == 502
    assert r.json()["code"] == "provider_transport_error"

    slow = StubAdapter(fail_with=ProviderTransportError("x", "timed out", timeout=True))
    r = _client(slow).post("/v1/summarize", json={"payload": {"text": "t"}, "config": {"provider": "x"}})
    assert r.status_code == 504


def test_empty_text_is_rejected() -> None:
    r = _client(StubAdapter()).post("/v1/summarize", json={"payload": {"text": ""}, "config": {"provider": "x"}})
    assert r.status_code == 422


def test_request_id_is_echoed() -> None:
    r = _client(StubAdapter()).post(
        "/v1/summarize",
        json={"payload": {"text": "t"}, "config": {"provider": "x"}},
        headers={"X-Request-ID": "req-123"},
    )
    assert r.headers["X-Request-ID"] == "req-123"
    assert "X-Response-Time-Ms" in r.headers


def test_stream_on_provider_without_streaming_is_one_error_event() -> None:
    adapter = StubAdapter()
    adapter.descriptor = dataclasses.replace(adapter.descriptor, capabilities=frozenset({Capability.TEXT}))
    client = _client(adapter)

    r = client.post("/v1/summarize", json={"payload": {"text": "hello"}, "config": {"provider": "x", "stream": True}})

    assert r.status_code == 200
    assert _events(r.text) == [{"error": STREAMING_UNSUPPORTED_MESSAGE, "done": True}]
    assert adapter.prompts == []


def test_malformed_provider_body_is_502() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>bad gateway</html>")

    descriptor = ProviderDescriptor(name="openrouter", base_url="https://openrouter.ai/api/v1", default_model="m")
    adapter = OpenAICompatibleAdapter(
        descriptor, client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=descriptor.base_url)
    )

    r = _client(adapter).post("/v1/summarize", json={"payload": {"text": "t"}, "config": {"provider": "openrouter"}})

    assert r.status_code == 502
    assert r.json()["code"] == "provider_transport_error"
    assert "invalid JSON" in r.json()["detail"]
