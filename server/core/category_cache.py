"""Read-through category cache keyed by slug."""
from typing import Dict, Optional
import logging

from models.resource import Category

logger = logging.getLogger(__name__)


class CategoryCache:
    """
    Caches category lookups for whoever owns the instance.

    Misses are not cached, so a category created later is picked up on the
    next lookup. Call ``invalidate`` after categories are edited.
    """

    def __init__(self, resource_repo):
        self.resource_repo = resource_repo
        self._by_slug: Dict[str, Category] = {}

    async def get(self, slug: str) -> Optional[Category]:
        cached = self._by_slug.get(slug)
        if cached is not None:
            return cached

        category = await self.resource_repo.get_category_by_slug(slug)
        if category is None:
            logger.warning(f"Category '{slug}' referenced by a rule is missing from the store")
            return None

        self._by_slug[slug] = category
        return category

    def invalidate(self, slug: Optional[str] = None) -> None:
        """Drop one slug, or everything when ``slug`` is None."""
        if slug is None:
            self._by_slug.clear()
        else:
            self._by_slug.pop(slug, None)
