"""Resource and category data models"""
from pydantic import BaseModel
from typing import Optional


class Category(BaseModel):
    """Resource category (slug is the stable identifier used by rules)"""
    id: int
    slug: str
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class Resource(BaseModel):
    """Community-support service listing"""
    id: int
    name: str
    description: str = ""
    address: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    hours: Optional[str] = None  # free-form schedule text, e.g. "Mon-Fri 9am-5pm"
    verified: bool = True
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    categories: list[Category] = []

    class Config:
        from_attributes = True

    @property
    def category_slugs(self) -> set[str]:
        return {c.slug for c in self.categories}

    def has_category(self, slug: str) -> bool:
        return slug in self.category_slugs
