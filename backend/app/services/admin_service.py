"""
Service d'administration : statistiques de la plateforme et gestion des comptes
(création d'enseignants et d'élèves, activation, suppression).
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.access import STUDENT, TEACHER
from app.exceptions import NotFoundError
from app.models.chat import Chat
from app.models.school_class import SchoolClass
from app.models.user import User
from app.schemas.user import AdminStats, AdminUserCreate, UserProfile
from app.services.user_service import create_account

logger = logging.getLogger(__name__)

STUDENT_FIELDS = ("grade", "school", "father_name", "father_contact", "mother_name", "mother_contact")
TEACHER_FIELDS = ("specialization", "qualification")


def _count(db: Session, model, *criteria) -> int:
    return db.execute(select(func.count()).select_from(model).where(*criteria)).scalar() or 0


def get_stats(db: Session, now: Optional[datetime] = None) -> AdminStats:
    """Compteurs du tableau de bord administrateur."""
    now = now or datetime.now(timezone.utc)
    return AdminStats(
        total_users=_count(db, User),
        total_teachers=_count(db, User, User.role == TEACHER),
        total_students=_count(db, User, User.role == STUDENT),
        total_classes=_count(db, SchoolClass),
        upcoming_classes=_count(
            db, SchoolClass,
            SchoolClass.scheduled_time >= now,
            SchoolClass.status == "scheduled",
        ),
        active_chats=_count(db, Chat, Chat.is_active.is_(True)),
    )


def create_user(db: Session, data: AdminUserCreate) -> UserProfile:
    """
    Crée un enseignant ou un élève.
    Seuls les champs propres au rôle sont enregistrés : les champs élève
    envoyés pour un enseignant (et inversement) sont ignorés.
    """
    fields = {"name": data.name, "email": data.email, "phone": data.phone or "", "role": data.role}
    role_fields = STUDENT_FIELDS if data.role == STUDENT else TEACHER_FIELDS
    for field in role_fields:
        value = getattr(data, field)
        if value:
            fields[field] = value

    subjects = data.enrolled_subjects if data.role == STUDENT else []
    user = create_account(db, fields, data.password, subjects)
    return UserProfile.model_validate(user)


def set_user_status(db: Session, user_id: uuid.UUID, is_active: bool) -> UserProfile:
    """Active ou désactive un compte. Un compte désactivé ne peut plus se connecter."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("Utilisateur introuvable.")
    user.is_active = is_active
    db.commit()
    db.refresh(user)
    logger.info("Compte %s %s", user_id, "activé" if is_active else "désactivé")
    return UserProfile.model_validate(user)


def delete_user(db: Session, user_id: uuid.UUID) -> None:
    """
    Suppression définitive ; cours, participations et accusés de lecture suivent en cascade.
    Les messages envoyés sont conservés sans expéditeur (sender_id à NULL).
    """
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("Utilisateur introuvable.")
    db.delete(user)
    db.commit()
    logger.info("Compte supprimé : %s", user_id)
