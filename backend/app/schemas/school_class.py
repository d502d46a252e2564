"""
Schémas Pydantic pour les cours planifiés.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, field_validator

MIN_DURATION = 15
VALID_CLASS_STATUSES = {"scheduled", "ongoing", "completed", "cancelled"}


def _aware(v: datetime) -> datetime:
    # Un horodatage sans fuseau est interprété comme UTC
    return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)


class ClassCreate(BaseModel):
    title: str
    description: Optional[str] = None
    scheduled_time: datetime          # ISO 8601, passé accepté
    duration: Optional[int] = None    # minutes, valeur par défaut appliquée par le service
    student_ids: List[uuid.UUID] = []

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre du cours ne peut pas être vide.")
        return v.strip()

    @field_validator("scheduled_time")
    @classmethod
    def scheduled_time_aware(cls, v: datetime) -> datetime:
        return _aware(v)

    @field_validator("duration")
    @classmethod
    def duration_minimum(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < MIN_DURATION:
            raise ValueError(f"La durée doit être d'au moins {MIN_DURATION} minutes.")
        return v


class ClassUpdate(BaseModel):
    """Champs modifiables par l'enseignant propriétaire ou un administrateur."""
    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    duration: Optional[int] = None
    status: Optional[str] = None
    student_ids: Optional[List[uuid.UUID]] = None  # Remplace la liste complète

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le titre du cours ne peut pas être vide.")
        return v.strip() if v else v

    @field_validator("scheduled_time")
    @classmethod
    def scheduled_time_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _aware(v) if v is not None else v

    @field_validator("duration")
    @classmethod
    def duration_minimum(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < MIN_DURATION:
            raise ValueError(f"La durée doit être d'au moins {MIN_DURATION} minutes.")
        return v

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_CLASS_STATUSES:
            raise ValueError(f"Statut invalide. Valeurs acceptées : {sorted(VALID_CLASS_STATUSES)}")
        return v


class ClassParticipant(BaseModel):
    """Enseignant ou élève tel qu'affiché dans la fiche d'un cours."""
    id: uuid.UUID
    name: str
    avatar: Optional[str] = ""

    model_config = {"from_attributes": True}


class ClassResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str]
    teacher: Optional[ClassParticipant]
    students: List[ClassParticipant]
    nb_students: int
    scheduled_time: datetime
    duration: int
    end_time: datetime
    status: str                 # Statut persisté, modifié uniquement à la main
    is_active: bool             # Dérivé : fenêtre [début - 5 min, fin] et statut non terminé
    live_status: str            # Dérivé : starting_soon, in_progress, ended
    meeting_room: str
    meeting_link: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
