"""
Schémas Pydantic pour la messagerie (conversations privées et de groupe).
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

VALID_CHAT_TYPES = {"private", "group"}
MAX_MESSAGE_LENGTH = 5000


class ChatCreate(BaseModel):
    """
    Corps de POST /chats. Le créateur est ajouté automatiquement aux participants :
    une conversation privée attend donc exactement un autre participant.
    """
    type: str
    participant_ids: List[uuid.UUID]
    name: Optional[str] = None

    @field_validator("type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        if v not in VALID_CHAT_TYPES:
            raise ValueError("Le type doit être 'private' ou 'group'.")
        return v

    @field_validator("participant_ids")
    @classmethod
    def not_empty(cls, v: List[uuid.UUID]) -> List[uuid.UUID]:
        if not v:
            raise ValueError("Au moins un participant est requis.")
        return v

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class MessageCreate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le contenu du message est requis.")
        if len(v) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"Message trop long : maximum {MAX_MESSAGE_LENGTH} caractères.")
        return v.strip()


class ChatMember(BaseModel):
    """Participant ou expéditeur tel qu'affiché dans la messagerie (sans coordonnées)."""
    id: uuid.UUID
    name: str
    avatar: Optional[str] = ""
    role: str

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: uuid.UUID
    chat_id: uuid.UUID
    sender: Optional[ChatMember]
    content: str
    created_at: datetime


class ChatResponse(BaseModel):
    id: uuid.UUID
    name: Optional[str]
    type: str
    participants: List[ChatMember]
    created_by: Optional[uuid.UUID]
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class ChatSummary(ChatResponse):
    """Entrée de la liste des conversations : derniers messages et compteur de non-lus."""
    last_message: Optional[MessageResponse] = None
    last_unread_message: Optional[MessageResponse] = None
    unread_count: int = 0
