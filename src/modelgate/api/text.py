from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from modelgate.api.common import EnvelopeRequest, respond
from modelgate.core.deps import get_dispatcher
from modelgate.domain.envelope import DispatchPayload, RequestEnvelope
from modelgate.domain.providers import Capability
from modelgate.prompts import ask_text_prompt, summarize_prompt
from modelgate.routing.dispatcher import Dispatcher

router = APIRouter()


class SummarizePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    max_length: int | None = Field(default=None, ge=0, alias="maxLength")


class SummarizeRequest(EnvelopeRequest):
    payload: SummarizePayload


class AskTextPayload(BaseModel):
    text: str = Field(min_length=1)
    question: str = Field(min_length=1)


class AskTextRequest(EnvelopeRequest):
    payload: AskTextPayload


@router.post("/summarize")
async def summarize(body: SummarizeRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    prompt = summarize_prompt(body.payload.text, body.payload.max_length)
    response = await dispatcher.invoke(
        Capability.TEXT, RequestEnvelope(payload=DispatchPayload(prompt=prompt), config=body.config)
    )
    return respond(response, "summary")


@router.post("/ask-text")
async def ask_text(body: AskTextRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    prompt = ask_text_prompt(body.payload.text, body.payload.question)
    response = await dispatcher.invoke(
        Capability.TEXT, RequestEnvelope(payload=DispatchPayload(prompt=prompt), config=body.config)
    )
    return respond(response, "answer")
