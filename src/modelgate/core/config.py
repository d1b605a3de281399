from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from modelgate.domain.providers import (
    VISION_CAPABILITIES,
    ProviderDescriptor,
    ProviderName,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    modelgate_log_level: str = "INFO"
    modelgate_request_id_header: str = "X-Request-ID"
    modelgate_default_timeout_seconds: float = 30.0

    # Hosted APIs are enabled by their API key.
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4.1-nano"

    anthropic_api_key: str | None = None
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_model: str = "claude-3-haiku-20240307"

    openrouter_api_key: str | None = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "anthropic/claude-3.5-sonnet"

    google_ai_api_key: str | None = None
    google_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    gemini_model: str = "gemini-2.5-flash-lite"
    gemini_vision_model: str = "gemini-2.5-flash"

    baseten_api_key: str | None = None
    baseten_base_url: str = "https://inference.baseten.co/v1"
    baseten_model: str = "openai/gpt-oss-120b"

    llm_gateway_api_key: str | None = None
    llm_gateway_base_url: str = "https://api.llmgateway.io/v1"
    llm_gateway_model: str = "gpt-oss-20b-free"

    zai_api_key: str | None = None
    zai_base_url: str = "https://api.z.ai/api/paas/v4"
    zai_model: str = "glm-4.5"
    zai_vision_model: str = "glm-4.6v"

    # Self-hosted servers are enabled explicitly or by setting a base URL.
    ollama_enabled: bool = False
    ollama_base_url: str | None = None
    ollama_model: str = "qwen3:4b"
    ollama_vision_model: str = "llama3.2-vision:11b"
    ollama_timeout_seconds: float | None = None

    lmstudio_enabled: bool = False
    lmstudio_base_url: str | None = None
    lmstudio_api_key: str | None = None
    lmstudio_model: str = "gemma-3-270m-it"
    lmstudio_timeout_seconds: float | None = None

    aigateway_enabled: bool = False
    aigateway_base_url: str | None = None
    ai_gateway_api_key: str | None = None
    aigateway_model: str = "openai/gpt-4.1-nano"

    llamacpp_enabled: bool = False
    llamacpp_base_url: str | None = None
    llamacpp_model: str = "default"
    llamacpp_timeout_seconds: float | None = None


@lru_cache
def get_settings() -> Settings:
    return Settings()


def _strip_slash(url: str) -> str:
    return url.rstrip("/")


def _with_v1(url: str) -> str:
    # Local OpenAI-compatible servers are configured without the /v1 suffix.
    base = _strip_slash(url)
    return base if base.endswith("/v1") else f"{base}/v1"


def provider_descriptors(settings: Settings) -> list[ProviderDescriptor]:
    """Descriptors for every known backend, enabled or not, ordered by priority."""
    timeout = settings.modelgate_default_timeout_seconds
    descriptors = [
        ProviderDescriptor(
            name=ProviderName.OPENAI.value,
            base_url=_strip_slash(settings.openai_base_url),
            api_key=settings.openai_api_key,
            default_model=settings.openai_model,
            enabled=bool(settings.openai_api_key),
            priority=1,
            timeout_seconds=timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.ANTHROPIC.value,
            base_url=_strip_slash(settings.anthropic_base_url),
            api_key=settings.anthropic_api_key,
            default_model=settings.anthropic_model,
            enabled=bool(settings.anthropic_api_key),
            priority=2,
            timeout_seconds=timeout,
            structured_mode="prompt",
        ),
        ProviderDescriptor(
            name=ProviderName.OLLAMA.value,
            base_url=_strip_slash(settings.ollama_base_url or "http://localhost:11434"),
            default_model=settings.ollama_model,
            vision_model=settings.ollama_vision_model,
            capabilities=VISION_CAPABILITIES,
            enabled=settings.ollama_enabled or settings.ollama_base_url is not None,
            priority=3,
            timeout_seconds=settings.ollama_timeout_seconds or timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.OPENROUTER.value,
            base_url=_strip_slash(settings.openrouter_base_url),
            api_key=settings.openrouter_api_key,
            default_model=settings.openrouter_model,
            enabled=bool(settings.openrouter_api_key),
            priority=4,
            timeout_seconds=timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.LMSTUDIO.value,
            base_url=_with_v1(settings.lmstudio_base_url or "http://localhost:1234"),
            api_key=settings.lmstudio_api_key or "lm-studio",
            default_model=settings.lmstudio_model,
            enabled=settings.lmstudio_enabled or settings.lmstudio_base_url is not None,
            priority=5,
            timeout_seconds=settings.lmstudio_timeout_seconds or timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.AIGATEWAY.value,
            base_url=_strip_slash(settings.aigateway_base_url or "https://ai-gateway.vercel.sh/v1"),
            api_key=settings.ai_gateway_api_key,
            default_model=settings.aigateway_model,
            enabled=settings.aigateway_enabled or settings.aigateway_base_url is not None,
            priority=6,
            timeout_seconds=timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.LLAMACPP.value,
            base_url=_with_v1(settings.llamacpp_base_url or "http://localhost:8080"),
            default_model=settings.llamacpp_model,
            enabled=settings.llamacpp_enabled or settings.llamacpp_base_url is not None,
            priority=7,
            timeout_seconds=settings.llamacpp_timeout_seconds or timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.GOOGLE.value,
            base_url=_strip_slash(settings.google_base_url),
            api_key=settings.google_ai_api_key,
            default_model=settings.gemini_model,
            vision_model=settings.gemini_vision_model,
            capabilities=VISION_CAPABILITIES,
            enabled=bool(settings.google_ai_api_key),
            priority=8,
            timeout_seconds=timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.BASETEN.value,
            base_url=_strip_slash(settings.baseten_base_url),
            api_key=settings.baseten_api_key,
            default_model=settings.baseten_model,
            enabled=bool(settings.baseten_api_key),
            priority=9,
            timeout_seconds=timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.LLMGATEWAY.value,
            base_url=_strip_slash(settings.llm_gateway_base_url),
            api_key=settings.llm_gateway_api_key,
            default_model=settings.llm_gateway_model,
            enabled=bool(settings.llm_gateway_api_key),
            priority=10,
            timeout_seconds=timeout,
        ),
        ProviderDescriptor(
            name=ProviderName.ZAI.value,
            base_url=_strip_slash(settings.zai_base_url),
            api_key=settings.zai_api_key,
            default_model=settings.zai_model,
            vision_model=settings.zai_vision_model,
            capabilities=VISION_CAPABILITIES,
            enabled=bool(settings.zai_api_key),
            priority=11,
            timeout_seconds=timeout,
            structured_mode="json_object",
        ),
    ]
    return descriptors
