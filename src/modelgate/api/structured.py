from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from modelgate.api.common import EnvelopeRequest
from modelgate.core.deps import get_dispatcher
from modelgate.domain.envelope import ResponseEnvelope
from modelgate.prompts import extract_prompt, keywords_prompt
from modelgate.routing.dispatcher import Dispatcher
from modelgate.structured.validator import ValidationResult

router = APIRouter()

KEYWORDS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"keywords": {"type": "array", "items": {"type": "string"}}},
    "required": ["keywords"],
}


class KeywordsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    max_keywords: int = Field(default=10, ge=1, le=50, alias="maxKeywords")


class KeywordsRequest(EnvelopeRequest):
    payload: KeywordsPayload


class ExtractPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    json_schema: dict[str, Any] | None = Field(default=None, alias="schema")
    instructions: str | None = None


class ExtractRequest(EnvelopeRequest):
    payload: ExtractPayload


def validation_body(response: ResponseEnvelope) -> dict[str, Any]:
    """Flatten a validated result into `data`, `valid`, `parseError` and `schemaError` next to the envelope fields."""
    validation: ValidationResult = response.result
    flags = validation.model_dump(by_alias=True, exclude={"data"})
    return response.model_copy(update={"result": validation.data}).to_body("data", **flags)


def _keywords(data: Any) -> list[str]:
    if isinstance(data, dict):
        data = data.get("keywords")
    if isinstance(data, list):
        return [str(k) for k in data if isinstance(k, (str, int, float))]
    return []


@router.post("/keywords")
async def keywords(body: KeywordsRequest, dispatcher: Dispatcher = Depends(get_dispatcher)) -> dict[str, Any]:
    prompt = keywords_prompt(body.payload.text, body.payload.max_keywords)
    response = await dispatcher.generate_structured(prompt, KEYWORDS_SCHEMA, body.config)
    validation: ValidationResult = response.result
    words = _keywords(validation.data)[: body.payload.max_keywords]
    return response.model_copy(update={"result": words}).to_body("keywords", valid=validation.valid)


@router.post("/extract")
async def extract(body: ExtractRequest, dispatcher: Dispatcher = Depends(get_dispatcher)) -> dict[str, Any]:
    prompt = extract_prompt(body.payload.text, body.payload.instructions)
    response = await dispatcher.generate_structured(prompt, body.payload.json_schema, body.config)
    return validation_body(response)
