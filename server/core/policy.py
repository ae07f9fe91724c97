"""Action Policy — picks exactly one next action from a ConversationState."""
from typing import Callable, Tuple
import logging

from models.conversation import Action, Awaiting, ConversationState, Intent

logger = logging.getLogger(__name__)

Rule = Tuple[str, Callable[[ConversationState], bool], Action]


def _crisis_needs_consent(s: ConversationState) -> bool:
    # Checked before everything else: crisis support is never offered unasked
    return (
        s.is_crisis
        and not s.permission_granted
        and s.awaiting != Awaiting.PERMISSION
    )


def _intent_needs_consent(s: ConversationState) -> bool:
    return (
        s.has_specific_intent
        and not s.permission_granted
        and s.awaiting != Awaiting.PERMISSION
    )


def _needs_location(s: ConversationState) -> bool:
    # Crisis support can be offered without pinpointing the user
    return (
        s.has_specific_intent
        and s.intent != Intent.CRISIS
        and s.permission_granted
        and s.location is None
        and s.awaiting != Awaiting.LOCATION
    )


def _ready_to_fetch(s: ConversationState) -> bool:
    return (
        s.has_specific_intent
        and s.permission_granted
        and s.location is not None
    )


# First match wins
POLICY_RULES: Tuple[Rule, ...] = (
    ("crisis_consent", _crisis_needs_consent, Action.ASK_PERMISSION),
    ("intent_consent", _intent_needs_consent, Action.ASK_PERMISSION),
    ("location", _needs_location, Action.ASK_LOCATION),
    ("fetch", _ready_to_fetch, Action.FETCH_RESOURCES),
)

DEFAULT_ACTION = Action.PRESENT_OPTIONS


def decide(state: ConversationState) -> Action:
    """Return the single action the assistant may take next."""
    for name, predicate, action in POLICY_RULES:
        if predicate(state):
            logger.debug(f"Policy rule '{name}' matched -> {action.value}")
            return action
    return DEFAULT_ACTION
