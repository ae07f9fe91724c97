"""Tests for the resource prioritizer and candidate retrieval."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from core.prioritizer import (
    MAX_PRESENTED,
    ResourcePrioritizer,
    is_community_fridge,
    is_meal_program,
    is_round_the_clock,
    is_youth_restricted,
    prioritize,
)
from models.conversation import ConversationState, Intent, Urgency
from models.resource import Category, Resource


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _resource(rid, name, description="", hours=None, verified=True):
    return Resource(id=rid, name=name, description=description, hours=hours, verified=verified)


FOOD_BANK = _resource(1, "Central Food Bank", "Hampers by appointment", hours="Tue 10am-2pm")
FRIDGE = _resource(2, "Downtown Community Fridge", "Take what you need", hours="24/7")
KITCHEN = _resource(3, "St. Paul's Kitchen", "Hot lunch served daily", hours="Mon-Fri 11am-1pm")


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

class TestPredicates:
    def test_round_the_clock(self):
        assert is_round_the_clock(_resource(1, "A", hours="Open 24/7"))
        assert is_round_the_clock(_resource(1, "A", hours="24 Hours"))
        assert not is_round_the_clock(_resource(1, "A", hours="9-5"))
        assert not is_round_the_clock(_resource(1, "A"))

    def test_meal_program(self):
        assert is_meal_program(KITCHEN)
        assert is_meal_program(_resource(1, "Outreach", "free breakfast"))
        assert not is_meal_program(FOOD_BANK)

    def test_community_fridge(self):
        assert is_community_fridge(FRIDGE)
        assert is_community_fridge(_resource(1, "Pantry", "a community fridge outside"))
        assert not is_community_fridge(FOOD_BANK)

    @pytest.mark.parametrize("name, description, expected", [
        ("Youth Hostel", "", True),
        ("Foundry Kelowna", "", True),
        ("Drop-in", "Youth only program", True),
        ("Drop-in", "For ages 13-24", True),
        ("Drop-in", "For ages 16 to 21", True),
        ("Drop-in", "For ages 19-65", False),
        ("Gospel Mission", "Adult men's shelter", False),
    ])
    def test_youth_restricted(self, name, description, expected):
        assert is_youth_restricted(_resource(1, name, description)) is expected


# ---------------------------------------------------------------------------
# prioritize
# ---------------------------------------------------------------------------

class TestPrioritize:
    def test_immediate_food_puts_fridge_first(self):
        result = prioritize(Intent.FOOD, Urgency.IMMEDIATE, None, [FOOD_BANK, FRIDGE])
        assert result[0] == FRIDGE

    def test_soon_food_prefers_meals_over_food_bank(self):
        result = prioritize(Intent.FOOD, Urgency.SOON, None, [FOOD_BANK, KITCHEN])
        assert result == [KITCHEN, FOOD_BANK]

    def test_general_food_keeps_order(self):
        result = prioritize(Intent.FOOD, Urgency.GENERAL, None, [FOOD_BANK, FRIDGE, KITCHEN])
        assert result == [FOOD_BANK, FRIDGE, KITCHEN]

    def test_food_verified_tiebreak_is_stable(self):
        a = _resource(1, "B Pantry", verified=False)
        b = _resource(2, "A Pantry", verified=True)
        c = _resource(3, "C Pantry", verified=True)
        result = prioritize(Intent.FOOD, Urgency.IMMEDIATE, None, [a, b, c])
        assert [r.id for r in result] == [2, 3, 1]

    def test_shelters_24_7_first_then_name(self):
        night = _resource(1, "Alpha Shelter", hours="8pm-8am")
        always = _resource(2, "Zulu Shelter", hours="24/7")
        other = _resource(3, "Bravo Shelter", hours="9pm-7am")
        result = prioritize(Intent.SHELTER, Urgency.GENERAL, None, [night, other, always])
        assert [r.id for r in result] == [2, 1, 3]

    def test_immediate_shelters_prefer_verified(self):
        unverified = _resource(1, "Alpha Shelter", verified=False)
        verified = _resource(2, "Bravo Shelter", verified=True)
        assert prioritize(Intent.SHELTER, Urgency.IMMEDIATE, None, [unverified, verified])[0] == verified
        assert prioritize(Intent.SHELTER, Urgency.SOON, None, [unverified, verified])[0] == unverified

    def test_adult_excludes_youth_shelter_even_if_24_7(self):
        youth = _resource(1, "Drop-in Centre", "For ages 13-24", hours="24/7")
        adult = _resource(2, "Gospel Mission", "Emergency beds", hours="8pm-8am")
        result = prioritize(Intent.SHELTER, Urgency.IMMEDIATE, True, [youth, adult])
        assert result == [adult]

    @pytest.mark.parametrize("is_adult", [None, False])
    def test_youth_kept_unless_adult(self, is_adult):
        youth = _resource(1, "Drop-in Centre", "For ages 13-24", hours="24/7")
        assert prioritize(Intent.SHELTER, None, is_adult, [youth]) == [youth]

    def test_capped_at_five(self):
        many = [_resource(i, f"Clinic {i}") for i in range(1, 9)]
        result = prioritize(Intent.HEALTH, None, None, many)
        assert len(result) == MAX_PRESENTED
        assert [r.id for r in result] == [1, 2, 3, 4, 5]

    def test_empty(self):
        assert prioritize(Intent.FOOD, Urgency.IMMEDIATE, True, []) == []


# ---------------------------------------------------------------------------
# ResourcePrioritizer
# ---------------------------------------------------------------------------

@pytest.fixture
def resource_repo():
    repo = MagicMock()
    repo.list_resources = AsyncMock(return_value=[FOOD_BANK, FRIDGE, KITCHEN])
    return repo


@pytest.fixture
def category_cache():
    cache = MagicMock()
    cache.get = AsyncMock(return_value=Category(id=7, slug="shelters", name="Shelters"))
    return cache


class TestResourcePrioritizer:
    @pytest.mark.asyncio
    async def test_food_uses_text_search(self, resource_repo, category_cache):
        prioritizer = ResourcePrioritizer(resource_repo, category_cache)
        await prioritizer.gather_candidates(Intent.FOOD)
        resource_repo.list_resources.assert_awaited_once_with(search="food")
        category_cache.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_shelter_uses_category(self, resource_repo, category_cache):
        prioritizer = ResourcePrioritizer(resource_repo, category_cache)
        await prioritizer.gather_candidates(Intent.SHELTER)
        category_cache.get.assert_awaited_once_with("shelters")
        resource_repo.list_resources.assert_awaited_once_with(category_id=7)

    @pytest.mark.asyncio
    async def test_missing_category_is_empty(self, resource_repo, category_cache):
        category_cache.get = AsyncMock(return_value=None)
        prioritizer = ResourcePrioritizer(resource_repo, category_cache)
        assert await prioritizer.gather_candidates(Intent.LEGAL) == []
        resource_repo.list_resources.assert_not_called()

    @pytest.mark.asyncio
    async def test_vague_intent_ranks_user_text(self, resource_repo, category_cache):
        prioritizer = ResourcePrioritizer(resource_repo, category_cache)
        result = await prioritizer.gather_candidates(Intent.UNKNOWN, "fridge")
        assert result == [FRIDGE]

    @pytest.mark.asyncio
    async def test_vague_intent_without_text(self, resource_repo, category_cache):
        prioritizer = ResourcePrioritizer(resource_repo, category_cache)
        assert await prioritizer.gather_candidates(Intent.NONE) == []

    @pytest.mark.asyncio
    async def test_for_state(self, resource_repo, category_cache):
        prioritizer = ResourcePrioritizer(resource_repo, category_cache)
        state = ConversationState(intent=Intent.FOOD, urgency=Urgency.IMMEDIATE)
        result = await prioritizer.for_state(state)
        assert result[0] == FRIDGE
