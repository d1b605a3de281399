from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


class ProviderName(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    OPENROUTER = "openrouter"
    LMSTUDIO = "lmstudio"
    AIGATEWAY = "aigateway"
    LLAMACPP = "llamacpp"
    GOOGLE = "google"
    BASETEN = "baseten"
    LLMGATEWAY = "llmgateway"
    ZAI = "zai"


class Capability(str, Enum):
    TEXT = "text"
    STRUCTURED = "structured"
    STREAMING = "streaming"
    VISION = "vision"


TEXT_CAPABILITIES = frozenset({Capability.TEXT, Capability.STRUCTURED, Capability.STREAMING})
VISION_CAPABILITIES = TEXT_CAPABILITIES | {Capability.VISION}

StructuredMode = Literal["json_schema", "json_object", "prompt"]


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static identity and transport settings of one configured backend."""

    name: str
    base_url: str
    default_model: str
    capabilities: frozenset[Capability] = TEXT_CAPABILITIES
    api_key: str | None = None
    vision_model: str | None = None
    timeout_seconds: float = 30.0
    enabled: bool = True
    priority: int = 100  # lower rank wins
    default_temperature: float = 0.7
    structured_mode: StructuredMode = "json_schema"
    headers: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def model_for(self, capability: Capability) -> str:
        if capability is Capability.VISION and self.vision_model:
            return self.vision_model
        return self.default_model
