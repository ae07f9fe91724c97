"""Tests for dialogue state inference with word-boundary rule tables.

Verifies that words like "eat" don't match inside "great", that signals are
read from the user's turns only, and that consent has to answer a question.
"""
import pytest

from core.policy import decide
from core.state import (
    _compile_word_patterns,
    detect_crisis,
    extract_location,
    infer_awaiting,
    infer_intent,
    infer_is_adult,
    infer_permission,
    infer_state,
    infer_urgency,
)
from models.conversation import (
    Action,
    Awaiting,
    ChatMessage,
    Intent,
    Location,
    LocationKind,
    Role,
    Urgency,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _user(text: str) -> ChatMessage:
    return ChatMessage(role=Role.USER, content=text)


def _assistant(text: str) -> ChatMessage:
    return ChatMessage(role=Role.ASSISTANT, content=text)


OFFER = "I can help with that. Would you like me to find places where you can get food right now?"
ASK_WHERE = "What street or area are you near?"


# ---------------------------------------------------------------------------
# _compile_word_patterns
# ---------------------------------------------------------------------------

class TestCompileWordPatterns:
    def test_basic_match(self):
        pat = _compile_word_patterns(["ok", "yes"])
        assert pat.search("ok")
        assert pat.search("yes")

    def test_case_insensitive(self):
        pat = _compile_word_patterns(["ok"])
        assert pat.search("OK")
        assert pat.search("Ok")

    def test_no_match_inside_word(self):
        assert not _compile_word_patterns(["eat"]).search("that's great")
        assert not _compile_word_patterns(["no"]).search("i know")

    def test_multi_word_phrase(self):
        pat = _compile_word_patterns(["need a place to sleep"])
        assert pat.search("I need a place to sleep tonight")
        assert not pat.search("I need a place")

    def test_escapes_regex_characters(self):
        pat = _compile_word_patterns(["self-harm"])
        assert pat.search("thoughts of self-harm")
        assert not pat.search("selfxharm")


# ---------------------------------------------------------------------------
# Individual classifiers
# ---------------------------------------------------------------------------

class TestInferIntent:
    @pytest.mark.parametrize("text, expected", [
        ("i'm hungry", Intent.FOOD),
        ("i'm sleeping outside", Intent.SHELTER),
        ("i need a doctor", Intent.HEALTH),
        ("i want to die", Intent.CRISIS),
        ("i need a lawyer", Intent.LEGAL),
        ("programs for teens", Intent.YOUTH),
        ("can you help me", Intent.UNKNOWN),
        ("hello there", Intent.NONE),
        ("that's great", Intent.NONE),
    ])
    def test_classification(self, text, expected):
        assert infer_intent(text) == expected

    def test_priority_order(self):
        # food outranks shelter, shelter outranks health
        assert infer_intent("i'm cold and hungry") == Intent.FOOD
        assert infer_intent("freezing and need a clinic") == Intent.SHELTER


class TestInferUrgency:
    def test_food_levels(self):
        assert infer_urgency(Intent.FOOD, "i'm hungry now") == Urgency.IMMEDIATE
        assert infer_urgency(Intent.FOOD, "looking for food") == Urgency.SOON
        assert infer_urgency(Intent.FOOD, "where is the food bank") == Urgency.GENERAL

    def test_shelter_levels(self):
        assert infer_urgency(Intent.SHELTER, "i'm freezing") == Urgency.IMMEDIATE
        assert infer_urgency(Intent.SHELTER, "i need shelter tonight") == Urgency.SOON
        assert infer_urgency(Intent.SHELTER, "shelter info") == Urgency.GENERAL

    @pytest.mark.parametrize("intent", [
        Intent.HEALTH, Intent.CRISIS, Intent.LEGAL, Intent.YOUTH, Intent.UNKNOWN, Intent.NONE,
    ])
    def test_only_food_and_shelter_have_urgency(self, intent):
        assert infer_urgency(intent, "i'm hungry now and freezing") is None


class TestSignals:
    def test_crisis_is_independent_of_intent(self):
        text = "i'm hungry and i want to die"
        assert infer_intent(text) == Intent.FOOD
        assert detect_crisis(text)

    def test_is_adult(self):
        assert infer_is_adult("i'm a dad with two kids") is True
        assert infer_is_adult("i'm a teenager") is False
        assert infer_is_adult("hi") is None

    def test_adult_wins_over_youth(self):
        assert infer_is_adult("i'm an adult, not a student") is True


class TestInferPermission:
    def test_affirmative_reply(self):
        assert infer_permission("yes please", True, []) is True

    def test_affirmative_not_answering_anything(self):
        assert infer_permission("okay so i'm hungry", False, []) is False

    def test_latest_negation_wins(self):
        assert infer_permission("no thanks", True, ["yes"]) is False

    def test_negation_beats_ok_in_same_reply(self):
        assert infer_permission("no, i'm ok", True, []) is False

    def test_earlier_refusal_with_ok_is_not_consent(self):
        assert infer_permission("near bernard avenue", True, ["no, i'm ok"]) is False

    def test_earlier_yes_persists(self):
        assert infer_permission("near bernard avenue", True, ["yes"]) is True

    def test_default_false(self):
        assert infer_permission("", False, []) is False


class TestExtractLocation:
    @pytest.mark.parametrize("text, kind, value", [
        ("i'm near bernard avenue", LocationKind.STREET, "bernard avenue"),
        ("at harvey and gordon intersection", LocationKind.INTERSECTION, "harvey and gordon intersection"),
        ("i'm in rutland", LocationKind.AREA, "rutland"),
        ("staying in west kelowna", LocationKind.AREA, "west kelowna"),
        ("somewhere in kelowna", LocationKind.CITY, "kelowna"),
    ])
    def test_location_kinds(self, text, kind, value):
        assert extract_location(text) == Location(kind=kind, value=value)

    def test_street_before_area(self):
        location = extract_location("downtown, near ellis street")
        assert location.kind == LocationKind.STREET

    @pytest.mark.parametrize("text", [
        "i'm sleeping on the street",
        "living on the streets",
        "i sleep on the road",
    ])
    def test_sleeping_rough_is_not_a_street(self, text):
        assert extract_location(text) is None

    def test_named_street_after_on_the_street(self):
        location = extract_location("sleeping on the street near ellis street")
        assert location == Location(kind=LocationKind.STREET, value="ellis street")

    def test_no_location(self):
        assert extract_location("i'm hungry") is None


class TestInferAwaiting:
    def test_permission_prompt(self):
        assert infer_awaiting(OFFER.lower(), False, None) == Awaiting.PERMISSION

    def test_permission_prompt_already_answered(self):
        assert infer_awaiting(OFFER.lower(), True, None) == Awaiting.NONE

    def test_location_prompt(self):
        assert infer_awaiting(ASK_WHERE.lower(), True, None) == Awaiting.LOCATION

    def test_location_already_known(self):
        location = Location(kind=LocationKind.AREA, value="rutland")
        assert infer_awaiting(ASK_WHERE.lower(), True, location) == Awaiting.NONE

    def test_plain_statement(self):
        assert infer_awaiting("here are some options.", False, None) == Awaiting.NONE


# ---------------------------------------------------------------------------
# infer_state
# ---------------------------------------------------------------------------

class TestInferState:
    def test_empty_transcript(self):
        state = infer_state([])
        assert state.intent == Intent.NONE
        assert state.permission_granted is False
        assert state.awaiting == Awaiting.NONE

    def test_hungry_then_yes(self):
        state = infer_state([_user("I'm hungry now"), _assistant(OFFER), _user("yes")])
        assert state.intent == Intent.FOOD
        assert state.urgency == Urgency.IMMEDIATE
        assert state.permission_granted is True
        assert decide(state) == Action.ASK_LOCATION

    def test_hungry_then_yes_then_location_fetches(self):
        state = infer_state([
            _user("I'm hungry now"),
            _assistant(OFFER),
            _user("yes"),
            _assistant(ASK_WHERE),
            _user("I'm near downtown"),
        ])
        assert state.permission_granted is True
        assert state.location == Location(kind=LocationKind.AREA, value="downtown")
        assert state.awaiting == Awaiting.NONE
        assert decide(state) == Action.FETCH_RESOURCES

    def test_opening_message_is_not_consent(self):
        state = infer_state([_user("I'm not okay, I want to die")])
        assert state.is_crisis is True
        assert state.permission_granted is False
        assert decide(state) == Action.ASK_PERMISSION

    def test_assistant_wording_is_not_a_user_signal(self):
        state = infer_state([
            _user("hi"),
            _assistant("For immediate crisis support call the Crisis Line. Need food or shelter?"),
        ])
        assert state.intent == Intent.NONE
        assert state.is_crisis is False

    def test_awaiting_reads_latest_assistant_only(self):
        state = infer_state([
            _user("I need shelter"),
            _assistant(ASK_WHERE),
            _user("ok"),
            _assistant("Would you like me to find shelter options near you?"),
        ])
        assert state.awaiting == Awaiting.NONE  # permission already granted

    def test_negation_revokes_consent(self):
        state = infer_state([
            _user("I'm hungry"),
            _assistant(OFFER),
            _user("yes"),
            _assistant(ASK_WHERE),
            _user("no, I don't want to say"),
        ])
        assert state.permission_granted is False

    def test_no_im_ok_declines_offer(self):
        state = infer_state([_user("I'm hungry now"), _assistant(OFFER), _user("no, I'm ok")])
        assert state.permission_granted is False
        assert decide(state) != Action.ASK_LOCATION

    def test_on_the_street_still_asks_location(self):
        state = infer_state([
            _user("I'm homeless and sleeping on the street"),
            _assistant("Would you like me to find shelter options for you?"),
            _user("yes"),
        ])
        assert state.urgency == Urgency.IMMEDIATE
        assert state.location is None
        assert decide(state) == Action.ASK_LOCATION

    def test_curly_apostrophes(self):
        state = infer_state([_user("I’m over 18 and hungry")])
        assert state.is_adult is True
        assert state.intent == Intent.FOOD

    def test_deterministic(self):
        transcript = [_user("I'm cold"), _assistant(OFFER), _user("sure")]
        assert infer_state(transcript) == infer_state(list(transcript))
