"""Relevance Ranker — deterministic scoring for free-text resource search."""
from typing import List, NamedTuple
import logging
import re

from models.resource import Resource

logger = logging.getLogger(__name__)

CRISIS_CATEGORY_SLUG = "crisis"

# Score applied to hard exclusions and resources with no genuine text match
EXCLUDED_SCORE = -1000
# Anything at or below this is dropped from results
DROP_THRESHOLD = -500

_EXACT_NAME = 1000
_EXACT_DESCRIPTION = 500
_WORD_IN_NAME = 200
_WORD_IN_DESCRIPTION = 100
_ALL_WORDS_IN_NAME = 300
_ALL_WORDS_IN_DESCRIPTION = 150
_NAME_PREFIX = 150
_NAME_TOKEN_PREFIX = 50
_DESCRIPTION_TOKEN_PREFIX = 25
_VERIFIED = 10
_MIN_PREFIX_WORD_LENGTH = 3

CRISIS_QUERY_TERMS = (
    "suicide", "crisis", "mental health", "depression", "anxiety",
    "self-harm", "self harm", "emergency", "hotline", "helpline", "988",
    "crisis line", "mental wellness", "psychological", "therapy",
    "counseling", "counselling", "trauma", "ptsd", "bipolar",
    "schizophrenia", "psychiatric",
)

SHELTER_QUERY_TERMS = (
    "shelter", "shelters", "homeless", "homelessness", "housing",
    "sleeping outside", "sleeping rough", "nowhere to sleep",
    "no place to stay", "need a place", "on the street", "cold", "freezing",
)

_STRIP_RE = re.compile(r"[^\w\s-]")


class ScoredResource(NamedTuple):
    resource: Resource
    score: int


def normalize_query(query: str) -> str:
    """Trim, strip punctuation (keeping hyphens) and lowercase."""
    if not query:
        return ""
    return _STRIP_RE.sub("", query.strip()).strip().lower()


def _contains_any(text: str, terms) -> bool:
    return any(term in text for term in terms)


def is_crisis_query(query: str) -> bool:
    return _contains_any(normalize_query(query), CRISIS_QUERY_TERMS)


def is_shelter_query(query: str) -> bool:
    return _contains_any(normalize_query(query), SHELTER_QUERY_TERMS)


def score_resource(
    resource: Resource,
    query: str,
    words: List[str],
    crisis_query: bool,
) -> int:
    """
    Score one candidate against an already-normalized query.

    ``words`` are the distinct whitespace-separated words of ``query``.
    """
    if not crisis_query and resource.has_category(CRISIS_CATEGORY_SLUG):
        return EXCLUDED_SCORE

    name = (resource.name or "").lower()
    description = (resource.description or "").lower()
    name_tokens = name.split()
    description_tokens = description.split()

    score = 0

    if query in name:
        score += _EXACT_NAME
    if query in description:
        score += _EXACT_DESCRIPTION

    name_hits = sum(1 for w in words if w in name)
    description_hits = sum(1 for w in words if w in description)
    score += name_hits * _WORD_IN_NAME
    score += description_hits * _WORD_IN_DESCRIPTION

    if words and name_hits == len(words):
        score += _ALL_WORDS_IN_NAME
    if words and description_hits == len(words):
        score += _ALL_WORDS_IN_DESCRIPTION

    for word in words:
        if name.startswith(word):
            score += _NAME_PREFIX
        if len(word) >= _MIN_PREFIX_WORD_LENGTH:
            if any(token.startswith(word) for token in name_tokens):
                score += _NAME_TOKEN_PREFIX
            if any(token.startswith(word) for token in description_tokens):
                score += _DESCRIPTION_TOKEN_PREFIX

    if resource.verified:
        score += _VERIFIED

    # Bonuses alone never make a match
    if name_hits == 0 and description_hits == 0:
        return EXCLUDED_SCORE

    return score


def rank(query: str, candidates: List[Resource]) -> List[Resource]:
    """
    Filter, score and order ``candidates`` best-first for ``query``.

    Crisis-category resources are excluded unless the query itself is
    crisis-related. Ties are broken by case-insensitive name.
    """
    cleaned = normalize_query(query)
    if not cleaned or not candidates:
        return []

    # dict.fromkeys keeps first-seen order while de-duplicating
    words = list(dict.fromkeys(cleaned.split()))
    crisis_query = _contains_any(cleaned, CRISIS_QUERY_TERMS)

    scored = [
        ScoredResource(r, score_resource(r, cleaned, words, crisis_query))
        for r in candidates
    ]
    kept = [s for s in scored if s.score > DROP_THRESHOLD]
    kept.sort(key=lambda s: (-s.score, (s.resource.name or "").casefold()))

    logger.debug(
        f"Ranked {len(candidates)} candidates for '{cleaned}' "
        f"(crisis={crisis_query}): {len(kept)} kept"
    )
    return [s.resource for s in kept]
