"""API response schemas"""
from datetime import datetime
from pydantic import BaseModel
from typing import Optional, List

from models.conversation import Role


class CategoryResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class ResourceResponse(BaseModel):
    id: int
    name: str
    description: str
    address: str
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    hours: Optional[str] = None
    verified: bool
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    categories: List[CategoryResponse] = []

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    id: Optional[int] = None
    role: Role
    content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConversationResponse(BaseModel):
    id: int
    title: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConversationDetailResponse(ConversationResponse):
    messages: List[MessageResponse] = []


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
