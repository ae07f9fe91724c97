"""Resource Prioritizer — retrieves and orders resources for presentation."""
from typing import List, Optional
import logging
import re

from core.category_cache import CategoryCache
from core.ranking import rank
from models.conversation import ConversationState, Intent, Urgency
from models.resource import Resource

logger = logging.getLogger(__name__)

MAX_PRESENTED = 5

# Category slug each intent pulls candidates from. Food is served by a
# store-side text search because food resources span several categories.
INTENT_CATEGORY_SLUGS = {
    Intent.SHELTER: "shelters",
    Intent.HEALTH: "health",
    Intent.LEGAL: "legal",
    Intent.CRISIS: "crisis",
    Intent.YOUTH: "youth",
}
FOOD_SEARCH_TERM = "food"

ROUND_THE_CLOCK_MARKERS = ("24/7", "24 hours")
MEAL_PROGRAM_MARKERS = ("kitchen", "meal", "hot meal", "lunch", "dinner", "breakfast")
FRIDGE_NAME_MARKERS = ("fridge",)
FRIDGE_DESCRIPTION_MARKERS = ("community fridge",)
YOUTH_NAME_MARKERS = ("youth", "foundry", "kids help")
YOUTH_DESCRIPTION_MARKERS = ("youth only", "youth-only", "ages 13-24", "ages 16-24")
YOUTH_MAX_AGE = 24

_AGE_RANGE_RE = re.compile(r"\bages?\s*(\d{1,2})\s*(?:-|–|to)\s*(\d{1,2})\b")


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


def is_round_the_clock(resource: Resource) -> bool:
    hours = _lower(resource.hours)
    return any(marker in hours for marker in ROUND_THE_CLOCK_MARKERS)


def is_meal_program(resource: Resource) -> bool:
    text = f"{_lower(resource.name)} {_lower(resource.description)}"
    return any(marker in text for marker in MEAL_PROGRAM_MARKERS)


def is_community_fridge(resource: Resource) -> bool:
    return (
        any(m in _lower(resource.name) for m in FRIDGE_NAME_MARKERS)
        or any(m in _lower(resource.description) for m in FRIDGE_DESCRIPTION_MARKERS)
    )


def is_youth_restricted(resource: Resource) -> bool:
    name = _lower(resource.name)
    description = _lower(resource.description)
    if any(m in name for m in YOUTH_NAME_MARKERS):
        return True
    if any(m in description for m in YOUTH_DESCRIPTION_MARKERS):
        return True
    for match in _AGE_RANGE_RE.finditer(description):
        if int(match.group(2)) <= YOUTH_MAX_AGE:
            return True
    return False


def _sort_shelters(resources: List[Resource], urgency: Optional[Urgency]) -> List[Resource]:
    if urgency == Urgency.IMMEDIATE:
        key = lambda r: (not is_round_the_clock(r), not r.verified, r.name.casefold())
    else:
        key = lambda r: (not is_round_the_clock(r), r.name.casefold())
    return sorted(resources, key=key)


def _sort_food(resources: List[Resource], urgency: Optional[Urgency]) -> List[Resource]:
    if urgency not in (Urgency.IMMEDIATE, Urgency.SOON):
        return list(resources)
    # sorted() is stable, so equal tiers keep retrieval order
    return sorted(
        resources,
        key=lambda r: (
            not is_round_the_clock(r),
            not is_meal_program(r),
            not is_community_fridge(r),
            not r.verified,
        ),
    )


def prioritize(
    intent: Intent,
    urgency: Optional[Urgency],
    is_adult: Optional[bool],
    candidates: List[Resource],
) -> List[Resource]:
    """
    Order candidates for presentation and cap the list at five.

    Adults never see youth-restricted resources, whatever their rank.
    """
    resources = list(candidates)
    if is_adult is True:
        resources = [r for r in resources if not is_youth_restricted(r)]

    if intent == Intent.SHELTER:
        resources = _sort_shelters(resources, urgency)
    elif intent == Intent.FOOD:
        resources = _sort_food(resources, urgency)

    return resources[:MAX_PRESENTED]


class ResourcePrioritizer:
    """Pulls candidates for an intent from the store and prioritizes them."""

    def __init__(self, resource_repo, category_cache: CategoryCache):
        self.resource_repo = resource_repo
        self.category_cache = category_cache

    async def gather_candidates(self, intent: Intent, user_text: str = "") -> List[Resource]:
        if intent == Intent.FOOD:
            return await self.resource_repo.list_resources(search=FOOD_SEARCH_TERM)

        slug = INTENT_CATEGORY_SLUGS.get(intent)
        if slug is not None:
            category = await self.category_cache.get(slug)
            if category is None:
                # Missing category is treated as empty, not as a failure
                return []
            return await self.resource_repo.list_resources(category_id=category.id)

        if not user_text:
            return []
        return rank(user_text, await self.resource_repo.list_resources())

    async def for_state(self, state: ConversationState, user_text: str = "") -> List[Resource]:
        candidates = await self.gather_candidates(state.intent, user_text)
        prioritized = prioritize(state.intent, state.urgency, state.is_adult, candidates)
        logger.info(
            f"Prioritized {len(prioritized)} of {len(candidates)} "
            f"{state.intent.value} resources (urgency={state.urgency})"
        )
        return prioritized
