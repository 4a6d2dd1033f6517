"""Category suggestions for expense descriptions.

The LLM path is optional: any failure (no API key, missing LangChain packages,
network error, unusable output) falls back to keyword rules over the same
candidate categories. Nothing here raises to the caller.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence

from ..config import settings

logger = logging.getLogger(__name__)


DEFAULT_CATEGORIES = [
    "Food & Dining",
    "Transportation",
    "Entertainment",
    "Shopping",
    "Bills & Utilities",
    "Healthcare",
    "Education",
    "Travel",
    "Groceries",
    "Personal Care",
    "Home & Garden",
    "Insurance",
    "Investments",
    "Gifts & Donations",
    "Other",
]

# (keywords found in the description, fragments looked up in category names)
KEYWORD_RULES = [
    (("restaurant", "cafe", "coffee", "starbucks", "pizza", "lunch", "dinner", "breakfast", "food", "eat", "meal"),
     ("food", "dining")),
    (("uber", "taxi", "lyft", "bus", "train", "metro", "parking", "gas", "fuel", "car", "vehicle"),
     ("transport", "travel", "vehicle")),
    (("grocery", "groceries", "supermarket", "walmart", "trader joe", "whole foods", "vegetables", "fruits"),
     ("grocery", "groceries", "food")),
    (("movie", "cinema", "netflix", "spotify", "concert", "game", "theater", "entertainment"),
     ("entertainment", "leisure")),
    (("electricity", "water", "internet", "phone", "rent", "mortgage", "utility", "bill"),
     ("bill", "utility", "utilities")),
    (("doctor", "hospital", "pharmacy", "medicine", "clinic", "dental", "health", "medical"),
     ("health", "healthcare", "medical")),
    (("amazon", "shopping", "mall", "store", "clothes", "shoes", "purchase"),
     ("shopping", "retail")),
    (("flight", "hotel", "airbnb", "vacation", "travel", "trip", "airline", "tickets"),
     ("travel", "vacation")),
    (("gym", "fitness", "salon", "spa", "haircut", "beauty", "barber", "styling", "personal"),
     ("personal", "care")),
    (("insurance", "premium", "policy"),
     ("insurance",)),
    (("school", "university", "course", "education", "tuition", "books"),
     ("education", "learning")),
]


@dataclass
class Suggestion:
    category: str
    confidence: int
    reasoning: str
    ai_generated: bool

    def to_dict(self) -> dict:
        return asdict(self)


def _default_category(categories: Sequence[str]) -> str:
    for cat in categories:
        if "other" in cat.lower():
            return cat
    return categories[-1]


def fallback_category(description: str, categories: Sequence[str]) -> Suggestion:
    lower_desc = description.lower()
    for keywords, fragments in KEYWORD_RULES:
        for keyword in keywords:
            if keyword not in lower_desc:
                continue
            for cat in categories:
                if any(fragment in cat.lower() for fragment in fragments):
                    return Suggestion(cat, 70, f'Matched keyword: "{keyword}"', False)

    return Suggestion(
        _default_category(categories),
        50,
        "No matching pattern found - using default category",
        False,
    )


def match_category(candidate: str, categories: Sequence[str]) -> str:
    wanted = (candidate or "").strip().lower()
    for cat in categories:
        if cat.lower() == wanted:
            return cat
    if wanted:
        for cat in categories:
            lower_cat = cat.lower()
            if lower_cat in wanted or wanted in lower_cat:
                return cat
    return _default_category(categories)


def parse_llm_output(content: str, categories: Sequence[str]) -> Suggestion:
    """Turn the model's JSON answer into a suggestion; ValueError if unusable."""
    text = re.sub(r"```(?:json)?", "", content or "").strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse LLM output: {e}")
    if not isinstance(data, dict) or not isinstance(data.get("category"), str):
        raise ValueError("LLM output must be a JSON object with a category")

    try:
        confidence = int(data.get("confidence") or 75)
    except (TypeError, ValueError):
        confidence = 75

    return Suggestion(
        category=match_category(data["category"], categories),
        confidence=min(100, max(0, confidence)),
        reasoning=str(data.get("reasoning") or "AI-suggested category"),
        ai_generated=True,
    )


def _ask_llm(description: str, amount: Optional[float], categories: Sequence[str]) -> str:
    from langchain_core.prompts import ChatPromptTemplate
    from langchain_openai import ChatOpenAI

    prompt = ChatPromptTemplate.from_messages(
        [
            (
                "system",
                "You are an expense categorization assistant. "
                "Return only valid JSON. Do not include markdown.",
            ),
            (
                "human",
                "Expense description: {description}\n"
                "Amount: {amount}\n"
                "Available categories: {categories_json}\n\n"
                "Choose the most appropriate category from the list, a confidence score (0-100) "
                "and a brief reason. Output ONLY a JSON object with fields: category, confidence, reasoning.",
            ),
        ]
    )

    llm = ChatOpenAI(
        model=settings.openai_model,
        temperature=0,
        api_key=settings.openai_api_key,
    )

    result = llm.invoke(
        prompt.format_messages(
            description=description,
            amount="unknown" if amount is None else f"{amount:.2f}",
            categories_json=json.dumps(list(categories), ensure_ascii=False),
        )
    )
    content = getattr(result, "content", None)
    if not content or not isinstance(content, str):
        raise ValueError("LLM returned empty response")
    return content


def suggest_category(
    description: str,
    amount: Optional[float] = None,
    categories: Optional[List[str]] = None,
) -> Suggestion:
    candidates = list(categories) if categories else list(DEFAULT_CATEGORIES)

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; using keyword categorization")
        return fallback_category(description, candidates)

    try:
        content = _ask_llm(description, amount, candidates)
        return parse_llm_output(content, candidates)
    except Exception as e:
        logger.warning("AI categorization failed (%s: %s); using keyword categorization", type(e).__name__, e)
        return fallback_category(description, candidates)
