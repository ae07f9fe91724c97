"""Dialogue State Inferrer — projects a ConversationState from the transcript.

The state is never stored. Every turn re-derives it from the ordered message
list, so it cannot drift from the transcript of record. Classification is
driven by the ordered rule tables below; order is precedence.
"""
from typing import Iterable, List, Optional, Sequence, Tuple
import logging
import re

from models.conversation import (
    Awaiting,
    ChatMessage,
    ConversationState,
    Intent,
    Location,
    LocationKind,
    Role,
    Urgency,
)

logger = logging.getLogger(__name__)


def _compile_word_patterns(keywords: Iterable[str]) -> re.Pattern:
    """
    Build a single compiled regex that matches any of the keywords
    on word boundaries.  This prevents "eat" from matching inside
    "great" and "no" from matching inside "know".
    """
    escaped = [re.escape(kw) for kw in keywords]
    pattern = r"\b(?:" + "|".join(escaped) + r")\b"
    return re.compile(pattern, re.IGNORECASE)


# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

CRISIS_KEYWORDS = (
    "crisis", "suicide", "suicidal", "mental health crisis", "depression",
    "anxiety crisis", "self-harm", "self harm", "hurt myself",
    "want to die", "end my life", "kill myself",
)

INTENT_RULES: Tuple[Tuple[Intent, Tuple[str, ...]], ...] = (
    (Intent.FOOD, (
        "food", "meal", "meals", "hungry", "eat", "eating", "starving",
    )),
    (Intent.SHELTER, (
        "shelter", "homeless", "sleeping outside", "cold", "freezing",
        "nowhere to sleep", "tired", "need a place to sleep", "need to sleep",
    )),
    (Intent.HEALTH, (
        "health", "medical", "clinic", "doctor", "healthcare",
    )),
    (Intent.CRISIS, CRISIS_KEYWORDS),
    (Intent.LEGAL, (
        "legal", "lawyer", "legal aid",
    )),
    (Intent.YOUTH, (
        "youth", "teen", "teens", "young people",
    )),
)

HELP_SEEKING_KEYWORDS = ("need", "help", "looking for", "where can i", "find")

# Per-intent urgency groups, highest urgency first
URGENCY_RULES = {
    Intent.FOOD: (
        (Urgency.IMMEDIATE, (
            "hungry", "hungry now", "starving", "need food now", "need to eat",
            "need a meal", "need food today", "no food", "haven't eaten",
            "havent eaten",
        )),
        (Urgency.SOON, (
            "need food", "looking for food", "food today", "meal today",
        )),
    ),
    Intent.SHELTER: (
        (Urgency.IMMEDIATE, (
            "tired", "cold", "freezing", "need to sleep", "need a place to sleep",
            "nowhere to sleep", "sleeping outside", "on the street", "homeless",
            "need shelter now",
        )),
        (Urgency.SOON, (
            "tonight", "need shelter", "place to stay",
        )),
    ),
}

ADULT_KEYWORDS = (
    "i'm an adult", "i am an adult", "i'm over 18", "i am over 18",
    "adult", "grown", "parent", "mom", "dad",
)
YOUTH_KEYWORDS = (
    "i'm a teen", "i am a teen", "i'm under 18", "i am under 18",
    "teenager", "student", "high school",
)

AFFIRMATIVE_KEYWORDS = (
    "yes", "sure", "okay", "ok", "please", "that would be great",
    "that'd be great", "go ahead", "yes please", "sounds good", "yeah", "yep",
)
NEGATION_KEYWORDS = ("no", "nope", "don't", "dont", "not", "refuse", "decline")

_AREAS = (
    r"downtown|rutland|glenmore|westbank|west\s+kelowna|west\s+side|"
    r"east\s+kelowna|lower\s+mission|upper\s+mission|mission"
)
_STREET_SUFFIXES = (
    r"street|st|avenue|ave|road|rd|boulevard|blvd|drive|dr|way|circle|ct|"
    r"court|place|pl"
)

LOCATION_RULES: Tuple[Tuple[LocationKind, re.Pattern], ...] = (
    # "on the street" describes sleeping rough, not a place
    (LocationKind.STREET, re.compile(
        r"\b(?:near|at|on|around)\s+"
        r"(?!(?:the|a|my|this|that)\s+(?:" + _STREET_SUFFIXES + r")\b)"
        r"([a-z0-9][a-z0-9 ]*?\b(?:" + _STREET_SUFFIXES + r"))\b"
    )),
    (LocationKind.INTERSECTION, re.compile(
        r"\b(?:near|at|around)\s+([a-z0-9 ]+?\b(?:intersection|crossing|crossroads))\b"
    )),
    (LocationKind.AREA, re.compile(
        r"\b(?:in|near|at|around)\s+(" + _AREAS + r")\b"
    )),
    (LocationKind.CITY, re.compile(r"\b(west\s+kelowna|kelowna)\b")),
)

PERMISSION_PROMPT_PHRASES = ("would you like", "can i", "may i", "permission")
LOCATION_PROMPT_PHRASES = (
    "what street", "what area", "where are you", "location", "intersection",
)

_INTENT_PATTERNS = [(intent, _compile_word_patterns(kws)) for intent, kws in INTENT_RULES]
_URGENCY_PATTERNS = {
    intent: [(level, _compile_word_patterns(kws)) for level, kws in groups]
    for intent, groups in URGENCY_RULES.items()
}
_HELP_RE = _compile_word_patterns(HELP_SEEKING_KEYWORDS)
_CRISIS_RE = _compile_word_patterns(CRISIS_KEYWORDS)
_ADULT_RE = _compile_word_patterns(ADULT_KEYWORDS)
_YOUTH_RE = _compile_word_patterns(YOUTH_KEYWORDS)
_AFFIRMATIVE_RE = _compile_word_patterns(AFFIRMATIVE_KEYWORDS)
_NEGATION_RE = _compile_word_patterns(NEGATION_KEYWORDS)
_PERMISSION_PROMPT_RE = _compile_word_patterns(PERMISSION_PROMPT_PHRASES)
_LOCATION_PROMPT_RE = _compile_word_patterns(LOCATION_PROMPT_PHRASES)


# ---------------------------------------------------------------------------
# Individual classifiers
# ---------------------------------------------------------------------------

def _normalize(text: str) -> str:
    return (text or "").replace("’", "'").lower()


def infer_intent(text: str) -> Intent:
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(text):
            return intent
    if _HELP_RE.search(text):
        return Intent.UNKNOWN
    return Intent.NONE


def infer_urgency(intent: Intent, text: str) -> Optional[Urgency]:
    groups = _URGENCY_PATTERNS.get(intent)
    if groups is None:
        return None
    for level, pattern in groups:
        if pattern.search(text):
            return level
    return Urgency.GENERAL


def detect_crisis(text: str) -> bool:
    return bool(_CRISIS_RE.search(text))


def infer_is_adult(text: str) -> Optional[bool]:
    if _ADULT_RE.search(text):
        return True
    if _YOUTH_RE.search(text):
        return False
    return None


def infer_permission(
    latest_user: str,
    latest_is_reply: bool,
    earlier_replies: Sequence[str],
) -> bool:
    """
    Consent is read from the latest user turn first; an explicit negation
    there always wins, over an earlier "yes" and over an "ok" in the same
    turn ("no, I'm ok").

    Affirmatives only count in user turns that answer an assistant turn, so
    an opening message like "I'm not okay" is never taken as consent.
    ``earlier_replies`` holds the earlier user turns that did answer one.
    """
    if _NEGATION_RE.search(latest_user):
        return False
    if latest_is_reply and _AFFIRMATIVE_RE.search(latest_user):
        return True
    return any(_is_consent(reply) for reply in earlier_replies)


def _is_consent(reply: str) -> bool:
    return bool(_AFFIRMATIVE_RE.search(reply)) and not _NEGATION_RE.search(reply)


def extract_location(text: str) -> Optional[Location]:
    for kind, pattern in LOCATION_RULES:
        match = pattern.search(text)
        if match:
            value = re.sub(r"\s+", " ", match.group(1)).strip()
            return Location(kind=kind, value=value)
    return None


def infer_awaiting(
    last_assistant: str,
    permission_granted: bool,
    location: Optional[Location],
) -> Awaiting:
    if _PERMISSION_PROMPT_RE.search(last_assistant) and not permission_granted:
        return Awaiting.PERMISSION
    if _LOCATION_PROMPT_RE.search(last_assistant) and location is None:
        return Awaiting.LOCATION
    return Awaiting.NONE


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def infer_state(messages: List[ChatMessage]) -> ConversationState:
    """
    Reconstruct the dialogue state from the full, chronologically ordered
    transcript. Pure and deterministic.

    Need, urgency, age and location signals are read from what the user
    wrote; the assistant's own wording (which names categories and crisis
    lines) only informs the awaiting slot.
    """
    # (content, answers_assistant) for every user turn, oldest first
    user_turns: List[Tuple[str, bool]] = []
    last_assistant = ""
    seen_assistant = False

    for msg in messages:
        content = _normalize(msg.content)
        if msg.role == Role.USER:
            user_turns.append((content, seen_assistant))
        elif msg.role == Role.ASSISTANT:
            last_assistant = content
            seen_assistant = True

    transcript = "\n".join(content for content, _ in user_turns)
    latest_user, latest_is_reply = user_turns[-1] if user_turns else ("", False)
    earlier_replies = [content for content, answered in user_turns[:-1] if answered]

    intent = infer_intent(transcript)
    permission = infer_permission(latest_user, latest_is_reply, earlier_replies)
    location = extract_location(transcript)

    state = ConversationState(
        intent=intent,
        urgency=infer_urgency(intent, transcript),
        is_crisis=detect_crisis(transcript),
        is_adult=infer_is_adult(transcript),
        permission_granted=permission,
        location=location,
        awaiting=infer_awaiting(last_assistant, permission, location),
    )

    logger.debug(
        f"Inferred state: intent={state.intent.value}, urgency={state.urgency}, "
        f"crisis={state.is_crisis}, permission={state.permission_granted}, "
        f"location={state.location}, awaiting={state.awaiting.value}"
    )
    return state
