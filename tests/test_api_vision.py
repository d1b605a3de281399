from __future__ import annotations

import json

from fastapi.testclient import TestClient

from modelgate.core.deps import get_provider_registry
from modelgate.domain.providers import VISION_CAPABILITIES, ProviderDescriptor
from modelgate.main import create_app
from modelgate.providers.base import ProviderAdapter, StructuredResult, TextResult, TextStream, VisionAdapter
from modelgate.providers.registry import ProviderRegistry


class TextOnlyAdapter(ProviderAdapter):
    def __init__(self) -> None:
        super().__init__(ProviderDescriptor(name="openai", base_url="http://stub", default_model="gpt-4.1-nano"))
        self.calls = 0

    async def generate_text(self, prompt, model=None, temperature=None) -> TextResult:
        self.calls += 1
        return TextResult(text="")

    async def generate_structured(self, prompt, schema, model=None, temperature=None) -> StructuredResult:
        self.calls += 1
        return StructuredResult(object={}, valid=True)

    async def generate_text_stream(self, prompt, model=None, temperature=None) -> TextStream:
        raise NotImplementedError

    async def list_models(self) -> list[str]:
        return []


class DummyVisionAdapter(TextOnlyAdapter, VisionAdapter):
    def __init__(self, reply: str = "A dog on a beach.") -> None:
        super().__init__()
        self.descriptor = ProviderDescriptor(
            name="ollama",
            base_url="http://stub",
            default_model="qwen3:4b",
            vision_model="llama3.2-vision:11b",
            capabilities=VISION_CAPABILITIES,
        )
        self.reply = reply
        self.requests: list[dict] = []

    async def describe_image(self, images, model=None, stream=False, temperature=None, instruction_prompt=None):
        self.requests.append(
            {"images": images, "model": model, "stream": stream, "temperature": temperature, "prompt": instruction_prompt}
        )
        return TextResult(text=self.reply, usage={"prompt_eval_count": 100, "eval_count": 6})


def _client(*adapters: ProviderAdapter) -> TestClient:
    app = create_app()
    registry = ProviderRegistry()
    for adapter in adapters:
        registry.register(adapter)

    def _registry_override(_=None):
        return registry

    app.dependency_overrides[get_provider_registry] = _registry_override
    return TestClient(app)


def test_vision_description() -> None:
    adapter = DummyVisionAdapter()
    r = _client(adapter).post(
        "/v1/vision",
        json={"payload": {"imageUrl": "https://example.com/dog.png", "prompt": "What is this?"}, "config": {"provider": "ollama"}},
    )

    assert r.status_code == 200
    assert r.json() == {
        "description": "A dog on a beach.",
        "provider": "ollama",
        "model": "llama3.2-vision:11b",
        "usage": {"input_tokens": 100, "output_tokens": 6, "total_tokens": 106},
    }
    assert adapter.requests[0]["images"] == ["https://example.com/dog.png"]
    assert adapter.requests[0]["prompt"] == "What is this?"


def test_vision_on_text_only_provider_is_400_without_calls() -> None:
    adapter = TextOnlyAdapter()
    r = _client(adapter).post(
        "/v1/vision", json={"payload": {"imageUrl": "https://example.com/dog.png"}, "config": {"provider": "openai"}}
    )

    assert r.status_code == 400
    assert r.json()["code"] == "capability_not_supported"
    assert adapter.calls == 0


def test_vision_requires_an_image() -> None:
    r = _client(DummyVisionAdapter()).post("/v1/vision", json={"payload": {"prompt": "?"}, "config": {"provider": "ollama"}})
    assert r.status_code == 422


def test_vision_stream_on_whole_result_adapter_emits_error_event() -> None:
    r = _client(DummyVisionAdapter()).post(
        "/v1/vision", json={"payload": {"images": ["AAAA"]}, "config": {"provider": "ollama", "stream": True}}
    )

    assert r.status_code == 200
    events = [json.loads(line[6:]) for line in r.text.split("\n") if line.startswith("data: ")]
    assert events == [{"error": "Streaming not supported for this provider/model", "done": True}]


def test_ocr_plain_text() -> None:
    adapter = DummyVisionAdapter(reply="INVOICE 42")
    r = _client(adapter).post("/v1/ocr", json={"payload": {"imageUrl": "https://example.com/inv.png"}, "config": {"provider": "ollama"}})

    assert r.status_code == 200
    assert r.json()["text"] == "INVOICE 42"
    assert adapter.requests[0]["temperature"] == 0
    assert "Extract all text" in adapter.requests[0]["prompt"]


def test_ocr_with_schema_returns_validated_data() -> None:
    adapter = DummyVisionAdapter(reply='```json\n{"invoice": "42", "total": 10}\n```')
    r = _client(adapter).post(
        "/v1/ocr",
        json={
            "payload": {"imageUrl": "https://example.com/inv.png", "schema": {"type": "object"}},
            "config": {"provider": "ollama", "stream": True},
        },
    )

    assert r.status_code == 200
    body = r.json()
    assert body["data"] == {"invoice": "42", "total": 10}
    assert body["valid"] is True
    assert adapter.requests[0]["stream"] is False
