"""
Schémas Pydantic pour les notifications dérivées (non persistées côté serveur).
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

MAX_CACHE_SIZE = 500


class Notification(BaseModel):
    """
    Notification recalculée à chaque requête.
    `id` est une clé stable ("chat-<id>" ou "class-<id>") qui permet au client
    de conserver l'état lu/non lu entre deux recalculs.
    """
    id: str
    type: str                     # message, class
    title: str
    message: str
    chat_id: Optional[uuid.UUID] = None
    class_id: Optional[uuid.UUID] = None
    minutes_until_start: Optional[int] = None
    created_at: datetime
    read: bool = False


class NotificationSyncRequest(BaseModel):
    """Cache détenu par le client, à réconcilier avec les notifications fraîches."""
    cache: List[Notification] = []

    @field_validator("cache")
    @classmethod
    def cache_not_too_large(cls, v: List[Notification]) -> List[Notification]:
        if len(v) > MAX_CACHE_SIZE:
            raise ValueError(f"Cache trop grand : maximum {MAX_CACHE_SIZE} notifications.")
        return v


class NotificationList(BaseModel):
    notifications: List[Notification]
    unread_count: int
