from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Generator
from dataclasses import dataclass, field
from typing import Any

from modelgate.core.errors import ProviderTransportError
from modelgate.domain.providers import Capability, ProviderDescriptor
from modelgate.structured.validator import ValidationResult

# Vision description runs cooler than free text; OCR callers pass 0 explicitly.
DESCRIBE_TEMPERATURE = 0.3


def as_data_url(image: str, mime_type: str = "image/jpeg") -> str:
    """Accept a URL, a data URL or bare base64 and return something an image_url part accepts."""
    if image.startswith(("data:", "http://", "https://")):
        return image
    return f"data:{mime_type};base64,{image}"


def strip_data_url(image: str) -> str:
    if image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Decode one JSON object (a response body or a stream line); anything else is None."""
    try:
        obj = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return obj if isinstance(obj, dict) else None


@dataclass
class TextResult:
    text: str
    usage: Any = None  # provider-native counters, normalized by the dispatcher


@dataclass
class StructuredResult:
    object: Any
    valid: bool
    usage: Any = None
    parse_error: str | None = None
    schema_error: str | None = None
    raw_text: str | None = None

    @classmethod
    def from_validation(cls, validation: ValidationResult, *, usage: Any, raw_text: str) -> StructuredResult:
        return cls(
            object=validation.data,
            valid=validation.valid,
            usage=usage,
            parse_error=validation.parse_error,
            schema_error=validation.schema_error,
            raw_text=raw_text,
        )


class DeferredUsage:
    """Usage of a streamed completion; resolved once the last fragment has been read."""

    def __init__(self) -> None:
        self._future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def resolve(self, native: Any) -> None:
        if not self._future.done():
            self._future.set_result(native)

    def __await__(self) -> Generator[Any, None, Any]:
        return self._future.__await__()


@dataclass
class TextStream:
    fragments: AsyncIterator[str]
    usage: Awaitable[Any] | None = field(default=None)


class ProviderAdapter(ABC):
    """Text, structured and streaming generation over one backend."""

    def __init__(self, descriptor: ProviderDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def capabilities(self) -> frozenset[Capability]:
        return self.descriptor.capabilities

    @property
    def enabled(self) -> bool:
        return self.descriptor.enabled

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def default_model_for(self, capability: Capability) -> str:
        return self.descriptor.model_for(capability)

    def _temperature(self, temperature: float | None) -> float:
        return self.descriptor.default_temperature if temperature is None else temperature

    def _transport_error(
        self, cause: BaseException | str, *, status_code: int | None = None, timeout: bool = False
    ) -> ProviderTransportError:
        return ProviderTransportError(self.name, cause, status_code=status_code, timeout=timeout)

    def _json_body(self, text: str) -> dict[str, Any]:
        data = parse_json_object(text)
        if data is None:
            detail = text if len(text) <= 200 else text[:200] + "..."
            raise self._transport_error(f"returned invalid JSON: {detail}")
        return data

    @abstractmethod
    async def generate_text(
        self, prompt: str, model: str | None = None, temperature: float | None = None
    ) -> TextResult:
        raise NotImplementedError

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any] | None,
        model: str | None = None,
        temperature: float | None = None,
    ) -> StructuredResult:
        raise NotImplementedError

    @abstractmethod
    async def generate_text_stream(
        self, prompt: str, model: str | None = None, temperature: float | None = None
    ) -> TextStream:
        """Return fragments lazily; transport errors surface while iterating."""
        raise NotImplementedError

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Advisory listing; returns [] when discovery fails."""
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class VisionAdapter(ProviderAdapter):
    """Adapter for backends that accept images."""

    @abstractmethod
    async def describe_image(
        self,
        images: list[str],
        model: str | None = None,
        stream: bool = False,
        temperature: float | None = None,
        instruction_prompt: str | None = None,
    ) -> TextResult | TextStream:
        raise NotImplementedError
