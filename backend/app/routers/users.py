"""
Router pour les profils et annuaires d'utilisateurs.

Les fiches renvoyées dépendent du rôle de l'appelant (voir app.access.project_user) :
pas de response_model unique, chaque vue est un schéma Pydantic distinct.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.access import ADMIN, TEACHER
from app.database import get_db
from app.dependencies import get_current_user, require_roles
from app.models.user import User
from app.schemas.user import PasswordChange, ProfileUpdate, UserProfile
from app.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["Utilisateurs"])


@router.get("/profile", response_model=UserProfile, summary="Mon profil")
def get_profile(user: User = Depends(get_current_user)):
    return user_service.get_profile(user)


@router.put("/profile", response_model=UserProfile, summary="Modifier mon profil")
def update_profile(data: ProfileUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Met à jour nom, téléphone, avatar ou email. Un email déjà utilisé → 409."""
    return user_service.update_profile(db, user, data)


@router.put("/change-password", summary="Changer mon mot de passe")
def change_password(data: PasswordChange, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    user_service.change_password(db, user, data)
    return {"detail": "Mot de passe modifié."}


@router.get("/students", summary="Lister les élèves")
def list_students(db: Session = Depends(get_db), user: User = Depends(require_roles(TEACHER, ADMIN))):
    """Admin : tous les élèves. Enseignant : élèves actifs, identité et statut seulement."""
    return user_service.list_students(db, user)


@router.get("/teachers", summary="Lister les enseignants")
def list_teachers(db: Session = Depends(get_db), user: User = Depends(require_roles(ADMIN))):
    return user_service.list_teachers(db, user)


@router.get("/available", summary="Contacts disponibles pour la messagerie")
def list_available(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return user_service.list_available(db, user)


@router.get("/{user_id}", summary="Fiche d'un utilisateur")
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return user_service.get_user(db, user, user_id)
