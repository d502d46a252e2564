"""
Schémas Pydantic pour les utilisateurs, l'authentification et l'administration.

Les vues de profil (UserProfile, StudentRecordView, StudentSummaryView,
UserContactView, UserPublicView) sont choisies par app.access selon le rôle de
l'observateur : chaque vue déclare explicitement les champs qu'elle expose.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

MIN_PASSWORD_LENGTH = 6


def _not_blank(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.strip():
        raise ValueError("Le champ ne peut pas être vide.")
    return v.strip() if v else v


def _password_length(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères.")
    return v


class EnrolledSubject(BaseModel):
    """Matière suivie par un élève."""
    subject: str
    classes: int = 0
    fees: Decimal = Decimal("0")

    model_config = {"from_attributes": True}

    @field_validator("subject")
    @classmethod
    def subject_not_empty(cls, v: str) -> str:
        return _not_blank(v)


# --- Vues de profil ---

class UserPublicView(BaseModel):
    """Ce que tout utilisateur connecté peut voir d'un autre : nom, avatar, rôle."""
    id: uuid.UUID
    name: str
    avatar: Optional[str] = ""
    role: str

    model_config = {"from_attributes": True}


class UserContactView(UserPublicView):
    """Fiche d'un enseignant vue par un autre enseignant."""
    email: str
    phone: Optional[str] = None
    is_active: bool = True
    specialization: Optional[str] = None
    qualification: Optional[str] = None


class StudentSummaryView(UserPublicView):
    """Ligne de l'annuaire des élèves vue par un enseignant : identité et statut seulement."""
    is_active: bool = True
    created_at: Optional[datetime] = None


class StudentRecordView(UserPublicView):
    """Fiche d'un élève vue par un enseignant : ni email ni téléphone."""
    is_active: bool = True
    grade: Optional[str] = None
    school: Optional[str] = None
    father_name: Optional[str] = None
    father_contact: Optional[str] = None
    mother_name: Optional[str] = None
    mother_contact: Optional[str] = None
    enrolled_subjects: List[EnrolledSubject] = []
    created_at: Optional[datetime] = None


class UserProfile(UserPublicView):
    """Profil complet (administrateur ou l'utilisateur lui-même)."""
    email: str
    phone: Optional[str] = None
    is_active: bool = True
    grade: Optional[str] = None
    school: Optional[str] = None
    father_name: Optional[str] = None
    father_contact: Optional[str] = None
    mother_name: Optional[str] = None
    mother_contact: Optional[str] = None
    enrolled_subjects: List[EnrolledSubject] = []
    specialization: Optional[str] = None
    qualification: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Authentification ---

class RegisterRequest(BaseModel):
    """Inscription libre : élève ou enseignant, jamais administrateur."""
    name: str
    email: EmailStr
    password: str
    role: Literal["teacher", "student"] = "student"
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        return _not_blank(v)

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _password_length(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        return v.strip().lower()


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserProfile


# --- Profil ---

class ProfileUpdate(BaseModel):
    """Champs modifiables par l'utilisateur lui-même (PUT /users/profile)."""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        return _not_blank(v)

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @field_validator("current_password")
    @classmethod
    def current_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Le mot de passe actuel est requis.")
        return v

    @field_validator("new_password")
    @classmethod
    def new_password_length(cls, v: str) -> str:
        return _password_length(v)


# --- Administration ---

class AdminUserCreate(BaseModel):
    """Création d'un enseignant ou d'un élève par un administrateur (POST /admin/users)."""
    name: str
    email: EmailStr
    password: str
    role: Literal["teacher", "student"]
    phone: Optional[str] = None

    # Élève
    grade: Optional[str] = None
    school: Optional[str] = None
    father_name: Optional[str] = None
    father_contact: Optional[str] = None
    mother_name: Optional[str] = None
    mother_contact: Optional[str] = None
    enrolled_subjects: List[EnrolledSubject] = []

    # Enseignant
    specialization: Optional[str] = None
    qualification: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        return _not_blank(v)

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _password_length(v)


class UserStatusUpdate(BaseModel):
    is_active: bool


class AdminStats(BaseModel):
    total_users: int
    total_teachers: int
    total_students: int
    total_classes: int
    upcoming_classes: int
    active_chats: int = Field(0, description="Conversations non supprimées")
