from __future__ import annotations

from modelgate.core.config import Settings, provider_descriptors
from modelgate.domain.providers import Capability


def _by_name(settings: Settings) -> dict:
    return {d.name: d for d in provider_descriptors(settings)}


def test_hosted_providers_enabled_by_api_key() -> None:
    descriptors = _by_name(Settings(_env_file=None, openai_api_key="sk-test", anthropic_api_key=None))

    assert descriptors["openai"].enabled is True
    assert descriptors["anthropic"].enabled is False
    assert descriptors["openai"].api_key == "sk-test"


def test_local_servers_enabled_by_flag_or_base_url() -> None:
    descriptors = _by_name(
        Settings(
            _env_file=None,
            ollama_enabled=True,
            ollama_base_url=None,
            lmstudio_base_url="http://127.0.0.1:1234/",
            llamacpp_enabled=False,
            llamacpp_base_url=None,
        )
    )

    assert descriptors["ollama"].enabled is True
    assert descriptors["ollama"].base_url == "http://localhost:11434"
    assert descriptors["lmstudio"].enabled is True
    assert descriptors["lmstudio"].base_url == "http://127.0.0.1:1234/v1"
    assert descriptors["llamacpp"].enabled is False


def test_vision_providers_and_structured_modes() -> None:
    descriptors = _by_name(Settings(_env_file=None))

    vision = {name for name, d in descriptors.items() if d.supports(Capability.VISION)}
    assert vision == {"ollama", "google", "zai"}
    assert descriptors["anthropic"].structured_mode == "prompt"
    assert descriptors["zai"].structured_mode == "json_object"
    assert descriptors["ollama"].model_for(Capability.VISION) == "llama3.2-vision:11b"
    assert descriptors["ollama"].model_for(Capability.TEXT) == "qwen3:4b"


def test_priorities_are_unique_and_ordered() -> None:
    priorities = [d.priority for d in provider_descriptors(Settings(_env_file=None))]
    assert priorities == sorted(priorities)
    assert len(set(priorities)) == len(priorities)


def test_default_timeout_applies_unless_overridden() -> None:
    descriptors = _by_name(
        Settings(_env_file=None, modelgate_default_timeout_seconds=12, ollama_timeout_seconds=120)
    )
    assert descriptors["openai"].timeout_seconds == 12
    assert descriptors["ollama"].timeout_seconds == 120
