"""
Service métier pour les cours planifiés : création, consultation filtrée par rôle,
modification, suppression et inscription libre d'un élève.

L'état "actif" d'un cours est dérivé de l'heure courante à chaque lecture.
Le statut persisté (scheduled, ongoing, completed, cancelled) n'est jamais
modifié automatiquement, seulement par une mise à jour explicite.
"""

import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.access import (
    ADMIN, CLASS, CREATE, DELETE, JOIN, READ, STUDENT, TEACHER, WRITE,
    ClassResource, ensure_access,
)
from app.config import settings
from app.exceptions import ConflictError, InvalidInputError, NotFoundError
from app.models.school_class import ClassStudent, SchoolClass
from app.models.user import User
from app.schemas.school_class import ClassCreate, ClassParticipant, ClassResponse, ClassUpdate
from app.services.meeting_provider import MeetingProvider, meeting_provider

logger = logging.getLogger(__name__)

INACTIVE_STATUSES = {"completed", "cancelled"}

STARTING_SOON = "starting_soon"
IN_PROGRESS = "in_progress"
ENDED = "ended"


# --- État dérivé (fonctions pures) ---

def _utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def class_end_time(school_class) -> datetime:
    duration = school_class.duration or settings.DEFAULT_CLASS_DURATION
    return _utc(school_class.scheduled_time) + timedelta(minutes=duration)


def is_class_active(school_class, now: datetime) -> bool:
    """
    Un cours est actif si son statut n'est ni completed ni cancelled et que
    `now` tombe dans [début - 5 min, début + durée], bornes incluses.
    """
    if school_class.status in INACTIVE_STATUSES:
        return False
    now = _utc(now)
    opens_at = _utc(school_class.scheduled_time) - timedelta(minutes=settings.CLASS_EARLY_JOIN_MINUTES)
    return opens_at <= now <= class_end_time(school_class)


def live_status(school_class, now: datetime) -> str:
    """Libellé affiché sur les tableaux de bord : starting_soon, in_progress ou ended."""
    now = _utc(now)
    if now < _utc(school_class.scheduled_time):
        return STARTING_SOON
    if now <= class_end_time(school_class):
        return IN_PROGRESS
    return ENDED


# --- Opérations ---

def create_class(
    db: Session,
    actor: User,
    data: ClassCreate,
    provider: MeetingProvider = meeting_provider,
) -> ClassResponse:
    """
    Crée un cours dont l'acteur (enseignant) est propriétaire.

    Étapes :
    1. Vérifier que les élèves demandés existent tous (sinon InvalidInputError)
    2. Générer la salle de visioconférence, une seule fois pour toute la vie du cours
    3. Insérer le cours puis la liste d'élèves
    """
    ensure_access(actor, CLASS, None, CREATE, "Seuls les enseignants peuvent créer un cours.")
    student_ids = _resolve_students(db, data.student_ids, strict=True)

    room = provider.new_room_name()
    school_class = SchoolClass(
        title=data.title,
        description=data.description,
        teacher_id=actor.id,
        scheduled_time=data.scheduled_time,
        duration=data.duration or settings.DEFAULT_CLASS_DURATION,
        status="scheduled",
        meeting_room=room,
        meeting_link=provider.join_url(room),
    )
    db.add(school_class)
    try:
        db.flush()  # Obtenir l'ID avant d'insérer la liste d'élèves
        if student_ids:
            db.bulk_insert_mappings(ClassStudent, [
                {"class_id": school_class.id, "student_id": sid}
                for sid in student_ids
            ])
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Cette salle de visioconférence existe déjà, veuillez réessayer.")
    db.refresh(school_class)

    logger.info(
        "Cours créé : %s (%s) par %s, %d élèves, salle %s",
        school_class.title, school_class.id, actor.id, len(student_ids), room,
    )
    return _to_response(db, school_class)


def list_classes(db: Session, actor: User, now: Optional[datetime] = None) -> List[ClassResponse]:
    """
    Retourne les cours visibles par l'acteur, du plus récent au plus ancien :
    tous pour un admin, les siens pour un enseignant, ceux où il est inscrit pour un élève.
    """
    query = select(SchoolClass)
    if actor.role == TEACHER:
        query = query.where(SchoolClass.teacher_id == actor.id)
    elif actor.role == STUDENT:
        query = query.join(ClassStudent, ClassStudent.class_id == SchoolClass.id).where(
            ClassStudent.student_id == actor.id
        )
    elif actor.role != ADMIN:
        return []

    classes = db.execute(query.order_by(SchoolClass.scheduled_time.desc())).scalars().all()
    return [_to_response(db, c, now) for c in classes]


def get_class(db: Session, actor: User, class_id: uuid.UUID) -> ClassResponse:
    school_class = _get_or_404(db, class_id)
    ensure_access(actor, CLASS, _resource(db, school_class), READ)
    return _to_response(db, school_class)


def update_class(db: Session, actor: User, class_id: uuid.UUID, data: ClassUpdate) -> ClassResponse:
    """
    Met à jour les champs fournis. La salle de visioconférence n'est jamais régénérée.
    Si student_ids est fourni, la liste d'élèves est remplacée par les IDs qui
    correspondent à des élèves existants (les autres sont ignorés).
    """
    school_class = _get_or_404(db, class_id)
    ensure_access(actor, CLASS, _resource(db, school_class), WRITE)

    update_data = data.model_dump(exclude_unset=True, exclude={"student_ids"})
    for field, value in update_data.items():
        if value is None and field != "description":
            continue
        setattr(school_class, field, value)

    if data.student_ids is not None:
        student_ids = _resolve_students(db, data.student_ids, strict=False)
        db.execute(delete(ClassStudent).where(ClassStudent.class_id == class_id))
        if student_ids:
            db.bulk_insert_mappings(ClassStudent, [
                {"class_id": class_id, "student_id": sid}
                for sid in student_ids
            ])

    db.commit()
    db.refresh(school_class)
    return _to_response(db, school_class)


def delete_class(db: Session, actor: User, class_id: uuid.UUID) -> None:
    """Supprime définitivement un cours (enseignant propriétaire ou admin)."""
    school_class = _get_or_404(db, class_id)
    ensure_access(actor, CLASS, _resource(db, school_class), DELETE)
    db.delete(school_class)
    db.commit()
    logger.info("Cours supprimé : %s par %s", class_id, actor.id)


def join_class(db: Session, actor: User, class_id: uuid.UUID) -> ClassResponse:
    """
    Inscrit l'élève connecté au cours. Idempotent : un élève déjà inscrit
    n'est pas ajouté une seconde fois.
    """
    school_class = _get_or_404(db, class_id)
    roster = _roster(db, class_id)
    ensure_access(actor, CLASS, ClassResource(school_class.teacher_id, frozenset(roster)), JOIN,
                  "Seuls les élèves peuvent rejoindre un cours.")

    if actor.id in roster:
        logger.debug("Élève %s déjà inscrit au cours %s", actor.id, class_id)
    else:
        db.add(ClassStudent(class_id=class_id, student_id=actor.id))
        try:
            db.commit()
        except IntegrityError:
            # Inscription concurrente déjà enregistrée
            db.rollback()

    return _to_response(db, school_class)


# --- Helpers ---

def _get_or_404(db: Session, class_id: uuid.UUID) -> SchoolClass:
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        raise NotFoundError("Cours introuvable.")
    return school_class


def _roster(db: Session, class_id: uuid.UUID) -> set:
    return set(db.execute(
        select(ClassStudent.student_id).where(ClassStudent.class_id == class_id)
    ).scalars().all())


def _resource(db: Session, school_class: SchoolClass) -> ClassResource:
    return ClassResource(
        teacher_id=school_class.teacher_id,
        student_ids=frozenset(_roster(db, school_class.id)),
    )


def _resolve_students(db: Session, student_ids: Iterable[uuid.UUID], strict: bool) -> List[uuid.UUID]:
    """
    Retourne les IDs (dédupliqués) qui correspondent à des élèves existants.
    En mode strict, un seul ID inconnu fait échouer toute la demande.
    """
    requested = list(dict.fromkeys(student_ids))
    if not requested:
        return []

    found = db.execute(
        select(User.id).where(User.id.in_(requested), User.role == STUDENT)
    ).scalars().all()

    if strict and len(set(found)) != len(requested):
        raise InvalidInputError("Certains élèves sont introuvables.")
    return list(found)


def _to_response(db: Session, school_class: SchoolClass, now: Optional[datetime] = None) -> ClassResponse:
    """Construit la réponse avec l'enseignant, les élèves et l'état dérivé à l'instant `now`."""
    now = now or datetime.now(timezone.utc)

    teacher = db.get(User, school_class.teacher_id)
    students = db.execute(
        select(User)
        .join(ClassStudent, ClassStudent.student_id == User.id)
        .where(ClassStudent.class_id == school_class.id)
        .order_by(User.name)
    ).scalars().all()

    return ClassResponse(
        id=school_class.id,
        title=school_class.title,
        description=school_class.description,
        teacher=ClassParticipant.model_validate(teacher) if teacher is not None else None,
        students=[ClassParticipant.model_validate(s) for s in students],
        nb_students=len(students),
        scheduled_time=school_class.scheduled_time,
        duration=school_class.duration,
        end_time=class_end_time(school_class),
        status=school_class.status,
        is_active=is_class_active(school_class, now),
        live_status=live_status(school_class, now),
        meeting_room=school_class.meeting_room,
        meeting_link=school_class.meeting_link,
        created_at=school_class.created_at,
        updated_at=school_class.updated_at,
    )
