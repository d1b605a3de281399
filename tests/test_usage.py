from __future__ import annotations

from types import SimpleNamespace

from pydantic import BaseModel

from modelgate.domain.usage import UsageRecord, normalize_usage


def test_camel_case_counters_are_summed() -> None:
    usage = normalize_usage({"promptTokens": 10, "completionTokens": 5})
    assert usage == UsageRecord(input_tokens=10, output_tokens=5, total_tokens=15)


def test_missing_usage_is_all_zero() -> None:
    assert normalize_usage(None) == UsageRecord()
    assert normalize_usage({}) == UsageRecord(input_tokens=0, output_tokens=0, total_tokens=0)


def test_openai_style_fields() -> None:
    usage = normalize_usage({"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7})
    assert usage.model_dump() == {"input_tokens": 3, "output_tokens": 4, "total_tokens": 7}


def test_sum_wins_over_disagreeing_provider_total() -> None:
    usage = normalize_usage({"input_tokens": 3, "output_tokens": 4, "total_tokens": 99})
    assert usage.total_tokens == 7


def test_provider_total_trusted_when_one_side_missing() -> None:
    usage = normalize_usage({"prompt_tokens": 3, "total_tokens": 10})
    assert usage == UsageRecord(input_tokens=3, output_tokens=0, total_tokens=10)


def test_ollama_counters() -> None:
    usage = normalize_usage({"prompt_eval_count": 12, "eval_count": 30})
    assert usage.total_tokens == 42


def test_attribute_objects_and_models() -> None:
    class Counters(BaseModel):
        prompt_tokens: int
        completion_tokens: int
        total_tokens: int

    assert normalize_usage(Counters(prompt_tokens=1, completion_tokens=2, total_tokens=3)).total_tokens == 3
    assert normalize_usage(SimpleNamespace(input_tokens=2, output_tokens=2)).total_tokens == 4


def test_negative_and_non_numeric_values_are_ignored() -> None:
    usage = normalize_usage({"prompt_tokens": -1, "completion_tokens": "5", "total_tokens": True})
    assert usage == UsageRecord()
