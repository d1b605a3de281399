from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, model_validator

from modelgate.api.common import EnvelopeRequest, respond
from modelgate.api.structured import validation_body
from modelgate.core.deps import get_dispatcher
from modelgate.domain.envelope import DispatchPayload, RequestEnvelope, StreamEnvelope
from modelgate.domain.providers import Capability
from modelgate.routing.dispatcher import Dispatcher

router = APIRouter()


class ImagePayload(BaseModel):
    """One image as `imageUrl` (URL, data URL or bare base64), or several as `images`."""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str | None = Field(default=None, alias="imageUrl")
    images: list[str] = Field(default_factory=list)
    prompt: str | None = None

    @model_validator(mode="after")
    def _require_image(self) -> ImagePayload:
        if not self.image_url and not self.images:
            raise ValueError("imageUrl or images is required")
        return self

    def all_images(self) -> tuple[str, ...]:
        head = (self.image_url,) if self.image_url else ()
        return head + tuple(self.images)


class VisionRequest(EnvelopeRequest):
    payload: ImagePayload


class OCRPayload(ImagePayload):
    json_schema: dict[str, Any] | None = Field(default=None, alias="schema")


class OCRRequest(EnvelopeRequest):
    payload: OCRPayload


@router.post("/vision")
async def vision(body: VisionRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    payload = DispatchPayload(images=body.payload.all_images(), instruction_prompt=body.payload.prompt)
    response = await dispatcher.invoke(Capability.VISION, RequestEnvelope(payload=payload, config=body.config))
    return respond(response, "description")


@router.post("/ocr")
async def ocr(body: OCRRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    payload = DispatchPayload(
        images=body.payload.all_images(),
        instruction_prompt=body.payload.prompt,
        json_schema=body.payload.json_schema,
        task="ocr",
    )
    response = await dispatcher.invoke(Capability.VISION, RequestEnvelope(payload=payload, config=body.config))
    if body.payload.json_schema is not None and not isinstance(response, StreamEnvelope):
        return validation_body(response)
    return respond(response, "text")
