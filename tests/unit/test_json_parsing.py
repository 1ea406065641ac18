"""First-JSON-object extraction from free-form model output."""
from __future__ import annotations

from pydantic import BaseModel

from llm_gateway import extract_json_object, first_balanced_object, parse_or_fallback


class Payload(BaseModel):
    score: int


def test_extracts_object_surrounded_by_prose():
    text = 'Sure! Here it is:\n{"score": 7, "nested": {"a": 1}}\nHope that helps {not json}'
    assert extract_json_object(text) == {"score": 7, "nested": {"a": 1}}


def test_braces_inside_strings_do_not_end_block():
    text = 'prefix {"note": "use } and { freely", "quote": "say \\"hi\\"", "score": 1} suffix'
    assert first_balanced_object(text) == '{"note": "use } and { freely", "quote": "say \\"hi\\"", "score": 1}'
    assert extract_json_object(text)["score"] == 1


def test_missing_or_unbalanced_block():
    assert extract_json_object("no json here") is None
    assert extract_json_object('{"score": 1') is None
    assert extract_json_object("") is None


def test_first_block_invalid_json_is_not_skipped():
    assert extract_json_object('{score: 1} {"score": 2}') is None


def test_parse_or_fallback_uses_fallback_and_logs(caplog):
    result, used_fallback = parse_or_fallback("nothing", Payload, lambda _: Payload(score=0), context="t")
    assert used_fallback is True
    assert result.score == 0
    assert "using fallback" in caplog.text


def test_parse_or_fallback_on_schema_mismatch():
    result, used_fallback = parse_or_fallback('{"score": "high"}', Payload, lambda _: Payload(score=-1))
    assert used_fallback is True
    assert result.score == -1


def test_parse_or_fallback_success():
    result, used_fallback = parse_or_fallback('ok {"score": 3}', Payload, lambda _: Payload(score=0))
    assert used_fallback is False
    assert result.score == 3
