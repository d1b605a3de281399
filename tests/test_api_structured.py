from __future__ import annotations

from fastapi.testclient import TestClient

from modelgate.core.deps import get_provider_registry
from modelgate.domain.providers import ProviderDescriptor
from modelgate.main import create_app
from modelgate.providers.base import ProviderAdapter, StructuredResult, TextResult, TextStream
from modelgate.providers.registry import ProviderRegistry
from modelgate.structured.validator import validate_structured


class ReplyingAdapter(ProviderAdapter):
    """Answers every structured call with a fixed raw text, run through the validator."""

    def __init__(self, reply: str) -> None:
        super().__init__(ProviderDescriptor(name="openai", base_url="http://stub", default_model="gpt-4.1-nano"))
        self.reply = reply
        self.schemas: list = []

    async def generate_text(self, prompt, model=None, temperature=None) -> TextResult:
        raise NotImplementedError

    async def generate_structured(self, prompt, schema, model=None, temperature=None) -> StructuredResult:
        self.schemas.append(schema)
        return StructuredResult.from_validation(
            validate_structured(self.reply, schema), usage={"prompt_tokens": 5, "completion_tokens": 5}, raw_text=self.reply
        )

    async def generate_text_stream(self, prompt, model=None, temperature=None) -> TextStream:
        raise NotImplementedError

    async def list_models(self) -> list[str]:
        return []


def _client(adapter: ProviderAdapter) -> TestClient:
    app = create_app()
    registry = ProviderRegistry()
    registry.register(adapter)

    def _registry_override(_=None):
        return registry

    app.dependency_overrides[get_provider_registry] = _registry_override
    return TestClient(app)


def test_keywords() -> None:
    client = _client(ReplyingAdapter('```json\n{"keywords": ["llm", "gateway", "sse"]}\n```'))

    r = client.post("/v1/keywords", json={"payload": {"text": "some text", "maxKeywords": 2}, "config": {"provider": "openai"}})

    assert r.status_code == 200
    body = r.json()
    assert body["keywords"] == ["llm", "gateway"]
    assert body["valid"] is True
    assert body["usage"]["total_tokens"] == 10


def test_extract_valid() -> None:
    adapter = ReplyingAdapter('{"name": "Ada", "year": 1815}')
    schema = {"type": "object", "properties": {"name": {"type": "string"}}}

    r = _client(adapter).post(
        "/v1/extract", json={"payload": {"text": "Ada Lovelace, born 1815", "schema": schema}, "config": {"provider": "openai"}}
    )

    assert r.status_code == 200
    body = r.json()
    assert body["data"] == {"name": "Ada", "year": 1815}
    assert body["valid"] is True
    assert body["parseError"] is None
    assert body["provider"] == "openai"
    assert adapter.schemas == [schema]


def test_extract_unparseable_still_200() -> None:
    r = _client(ReplyingAdapter("I could not find anything.")).post(
        "/v1/extract", json={"payload": {"text": "t", "schema": {"type": "object"}}, "config": {"provider": "openai"}}
    )

    assert r.status_code == 200
    body = r.json()
    assert body["valid"] is False
    assert body["data"]["error"]
    assert body["parseError"]


def test_extract_type_mismatch_reports_schema_error() -> None:
    r = _client(ReplyingAdapter("[1, 2]")).post(
        "/v1/extract", json={"payload": {"text": "t", "schema": {"type": "object"}}, "config": {"provider": "openai"}}
    )

    body = r.json()
    assert body["data"] == [1, 2]
    assert body["valid"] is False
    assert body["schemaError"] == "Expected object, got array"
