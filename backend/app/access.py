"""
Règles d'accès par rôle et par ressource.

Fonctions pures : elles ne touchent pas la base. Les services construisent une
vue minimale de la ressource (ClassResource, ChatResource) et demandent ici si
l'opération est permise. L'existence de la ressource est vérifiée avant par
l'appelant : "introuvable" passe toujours avant "accès refusé".

Visibilité des profils : project_user() retourne un schéma typé par couple
(rôle de l'observateur, rôle de la personne observée) au lieu de supprimer
des champs d'un objet complet.
"""

import uuid
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from pydantic import BaseModel

from app.exceptions import AccessDeniedError
from app.schemas.user import (
    StudentRecordView,
    StudentSummaryView,
    UserContactView,
    UserProfile,
    UserPublicView,
)

ADMIN = "admin"
TEACHER = "teacher"
STUDENT = "student"
ROLES = {ADMIN, TEACHER, STUDENT}

CLASS = "class"
CHAT = "chat"
MESSAGE = "message"

CREATE = "create"
READ = "read"
WRITE = "write"
DELETE = "delete"
JOIN = "join"

PRIVATE_CHAT = "private"
GROUP_CHAT = "group"


@dataclass(frozen=True)
class ClassResource:
    teacher_id: uuid.UUID
    student_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ChatResource:
    type: str
    created_by: Optional[uuid.UUID]
    participant_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)


def _class_rule(actor, resource: Optional[ClassResource], operation: str) -> bool:
    if operation == CREATE:
        return actor.role == TEACHER
    if actor.role == ADMIN:
        return operation != JOIN
    if resource is None:
        return False
    if actor.role == TEACHER:
        return resource.teacher_id == actor.id and operation in {READ, WRITE, DELETE}
    if actor.role == STUDENT:
        if operation == JOIN:
            return True
        return operation == READ and actor.id in resource.student_ids
    return False


def _chat_rule(actor, resource: Optional[ChatResource], operation: str) -> bool:
    if resource is None:
        return False
    if operation == CREATE:
        # Conversations de groupe réservées aux administrateurs
        return resource.type == PRIVATE_CHAT or actor.role == ADMIN
    if actor.role == ADMIN:
        return True
    if operation == DELETE:
        return resource.created_by is not None and resource.created_by == actor.id
    return actor.id in resource.participant_ids


def _message_rule(actor, chat: Optional[ChatResource], operation: str) -> bool:
    # Hérite de la règle de la conversation : lire = lire le fil, écrire = envoyer
    return operation in {READ, WRITE} and _chat_rule(actor, chat, operation)


_RULES = {
    CLASS: _class_rule,
    CHAT: _chat_rule,
    MESSAGE: _message_rule,
}


def can_access(actor, resource_kind: str, resource, operation: str) -> bool:
    """
    Retourne True si `actor` (objet avec .id et .role) peut effectuer
    `operation` sur la ressource. Rôle ou type de ressource inconnu → refus.
    """
    if getattr(actor, "role", None) not in ROLES:
        return False
    rule = _RULES.get(resource_kind)
    if rule is None:
        return False
    return rule(actor, resource, operation)


def ensure_access(actor, resource_kind: str, resource, operation: str, message: Optional[str] = None) -> None:
    """Variante levante de can_access : AccessDeniedError en cas de refus."""
    if not can_access(actor, resource_kind, resource, operation):
        raise AccessDeniedError(message)


def project_user(viewer, subject) -> BaseModel:
    """
    Projette le profil `subject` selon ce que `viewer` a le droit de voir.

    - admin ou soi-même        → UserProfile complet
    - enseignant → élève       → StudentRecordView (sans email ni téléphone)
    - enseignant → enseignant  → UserContactView
    - tout autre cas           → UserPublicView (nom, avatar, rôle)
    """
    if viewer.role == ADMIN or viewer.id == subject.id:
        return UserProfile.model_validate(subject)
    if viewer.role == TEACHER and subject.role == STUDENT:
        return StudentRecordView.model_validate(subject)
    if viewer.role == TEACHER and subject.role == TEACHER:
        return UserContactView.model_validate(subject)
    return UserPublicView.model_validate(subject)


def project_student_summary(viewer, subject) -> BaseModel:
    """
    Variante annuaire de project_user : un enseignant ne reçoit que l'identité
    et le statut de chaque élève, la fiche détaillée passe par project_user.
    """
    if viewer.role == TEACHER and subject.role == STUDENT and viewer.id != subject.id:
        return StudentSummaryView.model_validate(subject)
    return project_user(viewer, subject)
