"""Token usage accounting shared by every provider."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

log = logging.getLogger(__name__)

# Provider-native field names, most common first.
INPUT_FIELDS = (
    "input_tokens",
    "prompt_tokens",
    "inputTokens",
    "promptTokens",
    "prompt_eval_count",
    "promptTokenCount",
)
OUTPUT_FIELDS = (
    "output_tokens",
    "completion_tokens",
    "outputTokens",
    "completionTokens",
    "eval_count",
    "candidatesTokenCount",
)
TOTAL_FIELDS = ("total_tokens", "totalTokens", "totalTokenCount")


class UsageRecord(BaseModel):
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


def _as_count(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value < 0:
        return None
    return int(value)


def _first_count(fields: Mapping[str, Any], names: tuple[str, ...]) -> int | None:
    for name in names:
        count = _as_count(fields.get(name))
        if count is not None:
            return count
    return None


def _as_mapping(native: Any) -> Mapping[str, Any]:
    if isinstance(native, Mapping):
        return native
    if isinstance(native, BaseModel):
        return native.model_dump()
    return {name: getattr(native, name) for name in INPUT_FIELDS + OUTPUT_FIELDS + TOTAL_FIELDS if hasattr(native, name)}


def normalize_usage(native: Any) -> UsageRecord:
    """
    Convert provider-native token counters into a UsageRecord.

    When input and output are both reported the total is their sum; otherwise the
    provider's own total is trusted. Missing usage yields an all-zero record.
    """
    if native is None:
        return UsageRecord()
    if isinstance(native, UsageRecord):
        return native

    fields = _as_mapping(native)
    input_tokens = _first_count(fields, INPUT_FIELDS)
    output_tokens = _first_count(fields, OUTPUT_FIELDS)
    reported_total = _first_count(fields, TOTAL_FIELDS)

    if input_tokens is not None and output_tokens is not None:
        total = input_tokens + output_tokens
        if reported_total is not None and reported_total != total:
            log.debug(
                "usage.total_mismatch",
                extra={"reported_total": reported_total, "computed_total": total},
            )
    elif reported_total is not None:
        total = reported_total
    else:
        total = (input_tokens or 0) + (output_tokens or 0)

    return UsageRecord(
        input_tokens=input_tokens or 0,
        output_tokens=output_tokens or 0,
        total_tokens=total,
    )
