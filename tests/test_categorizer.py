import pytest

from app.config import settings
from app.services import categorizer
from app.services.categorizer import (
    DEFAULT_CATEGORIES,
    fallback_category,
    match_category,
    parse_llm_output,
    suggest_category,
)


def test_fallback_matches_keyword():
    s = fallback_category("Uber ride to the airport", DEFAULT_CATEGORIES)
    assert s.category == "Transportation"
    assert s.confidence == 70
    assert s.ai_generated is False
    assert "uber" in s.reasoning


def test_fallback_defaults_to_other():
    s = fallback_category("zzz unknown thing", DEFAULT_CATEGORIES)
    assert s.category == "Other"
    assert s.confidence == 50


def test_fallback_uses_last_category_without_other():
    s = fallback_category("zzz", ["Food", "Rent"])
    assert s.category == "Rent"


def test_fallback_respects_custom_categories():
    s = fallback_category("Dinner with friends", ["Eating Out", "Food", "Misc"])
    assert s.category == "Food"


def test_match_category_exact_then_partial():
    assert match_category("groceries", DEFAULT_CATEGORIES) == "Groceries"
    assert match_category("Healthcare stuff", DEFAULT_CATEGORIES) == "Healthcare"
    assert match_category("", DEFAULT_CATEGORIES) == "Other"


def test_parse_llm_output_strips_markdown_and_clamps_confidence():
    content = '```json\n{"category": "travel", "confidence": 150, "reasoning": "Flight"}\n```'
    s = parse_llm_output(content, DEFAULT_CATEGORIES)
    assert s.category == "Travel"
    assert s.confidence == 100
    assert s.reasoning == "Flight"
    assert s.ai_generated is True


def test_parse_llm_output_rejects_garbage():
    with pytest.raises(ValueError):
        parse_llm_output("I think it's food", DEFAULT_CATEGORIES)


def test_suggest_without_api_key_uses_fallback(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "")
    s = suggest_category("Netflix subscription")
    assert s.category == "Entertainment"
    assert s.ai_generated is False


def test_suggest_uses_llm_answer(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(
        categorizer,
        "_ask_llm",
        lambda description, amount, categories: '{"category": "Groceries", "confidence": 88, "reasoning": "Store"}',
    )
    s = suggest_category("Trader Joe's", 54.2)
    assert s.category == "Groceries"
    assert s.confidence == 88
    assert s.ai_generated is True


def test_suggest_falls_back_when_llm_fails(monkeypatch):
    def boom(description, amount, categories):
        raise ConnectionError("network down")

    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(categorizer, "_ask_llm", boom)
    s = suggest_category("Pharmacy pickup", categories=["Health", "Other"])
    assert s.category == "Health"
    assert s.ai_generated is False


def test_suggest_falls_back_on_unparseable_answer(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(categorizer, "_ask_llm", lambda d, a, c: "not json at all")
    s = suggest_category("random")
    assert s.category == "Other"
    assert s.ai_generated is False
