"""Directory routes — categories, resource browsing and ranked search."""
from fastapi import APIRouter, HTTPException, Depends, Query, status
from typing import List, Optional
import logging

from api.schemas.response_schemas import CategoryResponse, ResourceResponse
from core.dependencies import get_engine
from core.engine import InvalidIdentifierError, ResourceMatchingEngine, parse_identifier

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(engine: ResourceMatchingEngine = Depends(get_engine)):
    try:
        return await engine.list_categories()
    except Exception as e:
        logger.error(f"Error fetching categories: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch categories",
        )


@router.get("/categories/{slug}", response_model=CategoryResponse)
async def get_category(slug: str, engine: ResourceMatchingEngine = Depends(get_engine)):
    try:
        category = await engine.get_category(slug)
    except Exception as e:
        logger.error(f"Error fetching category '{slug}': {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch category",
        )
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


@router.get("/resources", response_model=List[ResourceResponse])
async def list_resources(
    category_id: Optional[str] = Query(None, alias="categoryId"),
    search: Optional[str] = Query(None, max_length=200),
    engine: ResourceMatchingEngine = Depends(get_engine),
):
    """
    Browse resources, optionally within a category.

    With ``search`` the results are relevance-ranked and non-matching
    resources are left out.
    """
    try:
        parsed_category = parse_identifier(category_id) if category_id else None
        if search is not None and search.strip():
            return await engine.search(search, category_id=parsed_category)
        return await engine.browse(category_id=parsed_category)
    except InvalidIdentifierError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid category ID")
    except Exception as e:
        logger.error(f"Error fetching resources: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch resources",
        )


@router.get("/resources/{resource_id}", response_model=ResourceResponse)
async def get_resource(resource_id: str, engine: ResourceMatchingEngine = Depends(get_engine)):
    try:
        resource = await engine.get_resource(resource_id)
    except InvalidIdentifierError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid resource ID")
    except Exception as e:
        logger.error(f"Error fetching resource {resource_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch resource",
        )
    if resource is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")
    return resource
