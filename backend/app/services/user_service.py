"""
Service métier pour les comptes utilisateurs : inscription, connexion, profil
et annuaires filtrés par rôle.

Toute fiche renvoyée passe par app.access.project_user : ce que l'on voit
d'un autre utilisateur dépend de son rôle et du nôtre.
"""

import uuid
import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.access import ADMIN, STUDENT, TEACHER, project_student_summary, project_user
from app.exceptions import AuthenticationError, ConflictError, InvalidInputError, NotFoundError
from app.models.user import User, UserSubject
from app.schemas.user import (
    EnrolledSubject,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    TokenResponse,
    UserProfile,
)
from app.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


def create_account(
    db: Session,
    fields: dict,
    password: str,
    enrolled_subjects: Iterable[EnrolledSubject] = (),
) -> User:
    """
    Crée un compte après vérification de l'unicité de l'email.
    Lève ConflictError si l'email est déjà utilisé (vérifié avant et garanti par la contrainte unique).
    """
    if _email_taken(db, fields["email"]):
        raise ConflictError("Un utilisateur avec cet email existe déjà.")

    user = User(**fields, password_hash=hash_password(password), is_active=True)
    user.enrolled_subjects = [
        UserSubject(subject=s.subject, classes=s.classes, fees=s.fees) for s in enrolled_subjects
    ]
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Un utilisateur avec cet email existe déjà.")
    db.refresh(user)

    logger.info("Compte %s créé : %s (%s)", user.role, user.id, user.email)
    return user


def register(db: Session, data: RegisterRequest) -> TokenResponse:
    """Inscription libre (élève ou enseignant) suivie d'une connexion immédiate."""
    user = create_account(
        db,
        {"name": data.name, "email": data.email, "phone": data.phone or "", "role": data.role},
        data.password,
    )
    return _token_for(user)


def authenticate(db: Session, data: LoginRequest) -> TokenResponse:
    """
    Vérifie email et mot de passe et émet un jeton d'accès.
    Un compte désactivé ne peut pas se connecter.
    """
    user = db.execute(select(User).where(User.email == data.email)).scalar()
    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Email ou mot de passe incorrect.")
    if not user.is_active:
        raise AuthenticationError("Ce compte est désactivé.")
    return _token_for(user)


def get_profile(actor: User) -> UserProfile:
    return UserProfile.model_validate(actor)


def update_profile(db: Session, actor: User, data: ProfileUpdate) -> UserProfile:
    """Met à jour nom, téléphone, avatar et email (unicité vérifiée)."""
    update_data = data.model_dump(exclude_unset=True)

    email = update_data.pop("email", None)
    if email and email != actor.email:
        if _email_taken(db, email, exclude_id=actor.id):
            raise ConflictError("Cet email est déjà utilisé.")
        actor.email = email

    for field, value in update_data.items():
        if value is None and field == "name":
            continue
        setattr(actor, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Cet email est déjà utilisé.")
    db.refresh(actor)
    return UserProfile.model_validate(actor)


def change_password(db: Session, actor: User, data: PasswordChange) -> None:
    if not verify_password(data.current_password, actor.password_hash):
        raise InvalidInputError("Le mot de passe actuel est incorrect.")
    actor.password_hash = hash_password(data.new_password)
    db.commit()
    logger.info("Mot de passe modifié pour %s", actor.id)


def list_students(db: Session, actor: User) -> List[BaseModel]:
    """Tous les élèves pour un admin, seulement les actifs pour un enseignant."""
    query = select(User).where(User.role == STUDENT)
    if actor.role != ADMIN:
        query = query.where(User.is_active.is_(True))
    students = db.execute(query.order_by(User.name)).scalars().all()
    return [project_student_summary(actor, s) for s in students]


def list_teachers(db: Session, actor: User) -> List[BaseModel]:
    teachers = db.execute(
        select(User).where(User.role == TEACHER).order_by(User.name)
    ).scalars().all()
    return [project_user(actor, t) for t in teachers]


def list_available(db: Session, actor: User) -> List[BaseModel]:
    """
    Annuaire des contacts disponibles pour démarrer une conversation :
    utilisateurs actifs autres que soi. Un admin voit tout le monde,
    enseignants et élèves ne voient que les enseignants et les élèves.
    """
    query = select(User).where(User.id != actor.id, User.is_active.is_(True))
    if actor.role != ADMIN:
        query = query.where(User.role.in_([TEACHER, STUDENT]))
    users = db.execute(query.order_by(User.name)).scalars().all()
    return [project_user(actor, u) for u in users]


def get_user(db: Session, actor: User, user_id: uuid.UUID) -> BaseModel:
    """
    Fiche d'un utilisateur projetée selon le rôle de l'observateur.
    Un compte désactivé n'est visible que par un admin (ou par lui-même).
    """
    user = db.get(User, user_id)
    if user is None or (not user.is_active and actor.role != ADMIN and user.id != actor.id):
        raise NotFoundError("Utilisateur introuvable.")
    return project_user(actor, user)


def _email_taken(db: Session, email: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
    query = select(User.id).where(User.email == email)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    return db.execute(query).scalar() is not None


def _token_for(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        user=UserProfile.model_validate(user),
    )
