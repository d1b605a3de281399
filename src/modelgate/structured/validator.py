"""
Best-effort JSON recovery for models without constrained decoding.

Each strategy takes raw text and returns `Found(value)` or None; the first match wins.
Only the top-level `type` of a schema is checked here.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_FENCE_RE = re.compile(r"^\s*```[\w+-]*[ \t]*\n?(.*?)\n?```\s*$", re.DOTALL)

_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "null": lambda v: v is None,
}

PARSE_ERROR_MESSAGE = "Could not extract valid JSON from the model response"


@dataclass(frozen=True)
class Found:
    value: Any


Strategy = Callable[[str], "Found | None"]


class ValidationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: Any
    valid: bool
    parse_error: str | None = Field(default=None, serialization_alias="parseError")
    schema_error: str | None = Field(default=None, serialization_alias="schemaError")


def strip_code_fence(text: str) -> str:
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_whole(text: str) -> Found | None:
    try:
        return Found(json.loads(text))
    except (ValueError, RecursionError):
        return None


def _balanced_end(text: str, start: int) -> int | None:
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
    return None


def parse_first_balanced(text: str) -> Found | None:
    resume = 0
    for start, ch in enumerate(text):
        if start < resume or ch not in "{[":
            continue
        end = _balanced_end(text, start)
        if end is None:
            continue
        try:
            return Found(json.loads(text[start : end + 1]))
        except RecursionError:
            # Skip the rest of a span too deep to decode.
            resume = end + 1
        except ValueError:
            continue
    return None


STRATEGIES: tuple[Strategy, ...] = (parse_whole, parse_first_balanced)


def extract_json(text: str, strategies: tuple[Strategy, ...] = STRATEGIES) -> Found | None:
    cleaned = strip_code_fence(text or "")
    for strategy in strategies:
        found = strategy(cleaned)
        if found is not None:
            return found
    return None


def check_schema_type(value: Any, schema: dict[str, Any] | None) -> str | None:
    """Return a mismatch message, or None when the declared top-level type matches."""
    if not schema:
        return None
    declared = schema.get("type")
    if declared is None:
        return None
    types = declared if isinstance(declared, list) else [declared]
    known = [t for t in types if t in _TYPE_CHECKS]
    if not known:
        return None
    if any(_TYPE_CHECKS[t](value) for t in known):
        return None
    return f"Expected {' or '.join(known)}, got {_json_type(value)}"


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, str):
        return "string"
    if isinstance(value, int):
        return "integer"
    return "number"


def validate_structured(text: str, schema: dict[str, Any] | None = None) -> ValidationResult:
    found = extract_json(text)
    if found is None:
        return ValidationResult(
            data={"error": PARSE_ERROR_MESSAGE, "raw": text},
            valid=False,
            parse_error=PARSE_ERROR_MESSAGE,
        )

    schema_error = check_schema_type(found.value, schema)
    return ValidationResult(data=found.value, valid=schema_error is None, schema_error=schema_error)
