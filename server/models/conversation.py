"""Conversation, message and dialogue-state models"""
from enum import Enum
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from models.resource import Resource


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Intent(str, Enum):
    """Category of need a conversation is about"""
    FOOD = "food"
    SHELTER = "shelter"
    HEALTH = "health"
    CRISIS = "crisis"
    LEGAL = "legal"
    YOUTH = "youth"
    UNKNOWN = "unknown"  # help-seeking, but not specific
    NONE = "none"


class Urgency(str, Enum):
    IMMEDIATE = "immediate"  # needs it now
    SOON = "soon"            # needs it today
    GENERAL = "general"      # planning ahead


class Awaiting(str, Enum):
    """What the assistant's last message was soliciting"""
    PERMISSION = "permission"
    LOCATION = "location"
    CONFIRMATION = "confirmation"
    NONE = "none"


class LocationKind(str, Enum):
    STREET = "street"
    INTERSECTION = "intersection"
    AREA = "area"
    CITY = "city"


class Action(str, Enum):
    """The single next behaviour the dialogue policy authorizes"""
    ASK_PERMISSION = "ask_permission"
    ASK_LOCATION = "ask_location"
    FETCH_RESOURCES = "fetch_resources"
    PRESENT_OPTIONS = "present_options"


class Location(BaseModel):
    kind: LocationKind
    value: str


class ChatMessage(BaseModel):
    """Single transcript entry"""
    id: Optional[int] = None
    conversation_id: Optional[int] = None
    role: Role
    content: str
    created_at: Optional[datetime] = None


class Conversation(BaseModel):
    id: int
    title: str
    created_at: Optional[datetime] = None


class ConversationState(BaseModel):
    """
    Dialogue state projected from the transcript.

    Recomputed from the full message list on every turn and never persisted.
    """
    intent: Intent = Intent.NONE
    urgency: Optional[Urgency] = None  # only set for food/shelter
    is_crisis: bool = False
    is_adult: Optional[bool] = None  # None = unknown
    permission_granted: bool = False
    location: Optional[Location] = None
    awaiting: Awaiting = Awaiting.NONE

    @property
    def has_specific_intent(self) -> bool:
        return self.intent not in (Intent.NONE, Intent.UNKNOWN)


class TurnResult(BaseModel):
    """Outcome of one chat turn, before any text is generated"""
    conversation_id: int
    state: ConversationState
    action: Action
    instruction_context: str
    prioritized_resources: list[Resource] = []
    messages: list[ChatMessage] = []
    user_text: str = ""
