"""API request schemas"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional

from config.settings import settings


class CreateConversationRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=settings.CHAT_MAX_TITLE_LENGTH)


class SendMessageRequest(BaseModel):
    content: str = Field(..., max_length=settings.CHAT_MAX_MESSAGE_LENGTH)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message content is required")
        return v
