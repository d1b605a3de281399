"""Prompt builders for the HTTP endpoints. Plain string templates, no provider knowledge."""

from __future__ import annotations

import json
from typing import Any


def summarize_prompt(text: str, max_length: int | None = None) -> str:
    limit = f" in at most {max_length} characters" if max_length else ""
    return (
        f"Summarize the following text{limit}. "
        "Return only the summary, without preamble.\n\n"
        f"Text:\n{text}"
    )


def ask_text_prompt(text: str, question: str) -> str:
    return (
        "Answer the question using only the information in the text below. "
        "If the text does not contain the answer, say so.\n\n"
        f"Text:\n{text}\n\nQuestion: {question}"
    )


def keywords_prompt(text: str, max_keywords: int = 10) -> str:
    return (
        f"Extract up to {max_keywords} keywords that best describe the text below. "
        'Respond as JSON: {"keywords": ["..."]}.\n\n'
        f"Text:\n{text}"
    )


def extract_prompt(text: str, instructions: str | None = None) -> str:
    task = instructions or "Extract the structured information present in the text."
    return f"{task}\n\nText:\n{text}"


def describe_image_prompt() -> str:
    return "Describe what you see in this image in detail."


def ocr_prompt() -> str:
    return (
        "Extract all text from this image. Preserve the reading order and line breaks. "
        "Return only the extracted text."
    )


def schema_instructions(schema: dict[str, Any] | None) -> str:
    """Instructions appended to a prompt when the backend has no native structured mode."""
    if schema:
        return (
            "Return ONLY a JSON value that conforms to this JSON Schema:\n"
            f"{json.dumps(schema, indent=2)}\n\n"
            "Rules:\n"
            "- Output only the JSON, no markdown and no explanations\n"
            "- Use null for fields you cannot determine"
        )
    return "Return ONLY a valid JSON object, no markdown and no explanations."


def ocr_extraction_prompt(instruction: str, schema: dict[str, Any] | None) -> str:
    return (
        "You are a data extraction assistant. Analyze the image and extract information.\n\n"
        f"Task: {instruction}\n\n{schema_instructions(schema)}"
    )
