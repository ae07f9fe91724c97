"""Resource and category repository for database operations."""
from asyncio import to_thread
from typing import Optional, List
from supabase import Client
import logging
import re

from models.resource import Category, Resource

logger = logging.getLogger(__name__)

# Resources embed their categories through the resource_categories junction
_RESOURCE_COLUMNS = "*, categories(id, slug, name, description)"

# PostgREST or-filters are comma/paren delimited; keep search terms plain
_UNSAFE_TERM_RE = re.compile(r"[^\w\s-]")


def _row_to_category(row: dict) -> Category:
    return Category(
        id=row["id"],
        slug=row["slug"],
        name=row["name"],
        description=row.get("description"),
    )


def _row_to_resource(row: dict) -> Resource:
    return Resource(
        id=row["id"],
        name=row["name"],
        description=row.get("description") or "",
        address=row.get("address") or "",
        phone=row.get("phone"),
        email=row.get("email"),
        website=row.get("website"),
        hours=row.get("hours"),
        verified=bool(row.get("verified", True)),
        latitude=row.get("latitude"),
        longitude=row.get("longitude"),
        categories=[_row_to_category(c) for c in (row.get("categories") or [])],
    )


class ResourceRepository:
    """Read access to the resource directory."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def get_categories(self) -> List[Category]:
        try:
            response = await to_thread(
                lambda: self.supabase.table("categories")
                .select("*")
                .order("name")
                .execute()
            )
            return [_row_to_category(row) for row in (response.data or [])]
        except Exception as e:
            logger.error(f"Error getting categories: {e}")
            raise

    async def get_category_by_slug(self, slug: str) -> Optional[Category]:
        """Returns None if not found. Raises on database errors."""
        try:
            response = await to_thread(
                lambda: self.supabase.table("categories")
                .select("*")
                .eq("slug", slug)
                .limit(1)
                .execute()
            )
            return _row_to_category(response.data[0]) if response.data else None
        except Exception as e:
            logger.error(f"Error getting category '{slug}': {e}")
            raise

    async def _resource_ids_in_category(self, category_id: int) -> List[int]:
        response = await to_thread(
            lambda: self.supabase.table("resource_categories")
            .select("resource_id")
            .eq("category_id", category_id)
            .execute()
        )
        return [row["resource_id"] for row in (response.data or [])]

    async def list_resources(
        self,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[Resource]:
        """
        List resources, optionally restricted to a category and/or a
        case-insensitive substring of name or description.

        Raises on database errors so callers can distinguish 'no resources'
        from 'database is down'.
        """
        try:
            resource_ids = None
            if category_id is not None:
                resource_ids = await self._resource_ids_in_category(category_id)
                if not resource_ids:
                    return []

            term = _UNSAFE_TERM_RE.sub("", search or "").strip()

            def _query():
                q = self.supabase.table("resources").select(_RESOURCE_COLUMNS)
                if resource_ids is not None:
                    q = q.in_("id", resource_ids)
                if term:
                    q = q.or_(f"name.ilike.%{term}%,description.ilike.%{term}%")
                return q.order("id").execute()

            response = await to_thread(_query)
            return [_row_to_resource(row) for row in (response.data or [])]
        except Exception as e:
            logger.error(f"Error listing resources: {e}")
            raise

    async def get_resource(self, resource_id: int) -> Optional[Resource]:
        """Returns None if not found. Raises on database errors."""
        try:
            response = await to_thread(
                lambda: self.supabase.table("resources")
                .select(_RESOURCE_COLUMNS)
                .eq("id", resource_id)
                .limit(1)
                .execute()
            )
            return _row_to_resource(response.data[0]) if response.data else None
        except Exception as e:
            logger.error(f"Error getting resource {resource_id}: {e}")
            raise
