"""
Router d'administration. Toutes les routes exigent le rôle admin.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.access import ADMIN
from app.database import get_db
from app.dependencies import require_roles
from app.schemas.user import AdminStats, AdminUserCreate, UserProfile, UserStatusUpdate
from app.services import admin_service

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["Administration"],
    dependencies=[Depends(require_roles(ADMIN))],
)


@router.get("/stats", response_model=AdminStats, summary="Statistiques de la plateforme")
def get_stats(db: Session = Depends(get_db)):
    return admin_service.get_stats(db)


@router.put("/users/{user_id}/status", response_model=UserProfile, summary="Activer / désactiver un compte")
def set_user_status(user_id: uuid.UUID, data: UserStatusUpdate, db: Session = Depends(get_db)):
    return admin_service.set_user_status(db, user_id, data.is_active)


@router.post("/users", response_model=UserProfile, status_code=201, summary="Créer un enseignant ou un élève")
def create_user(data: AdminUserCreate, db: Session = Depends(get_db)):
    """
    Crée un compte enseignant ou élève.
    Les champs élève (classe, école, parents, matières) ne sont retenus que pour un élève,
    les champs enseignant (spécialisation, qualification) que pour un enseignant.
    """
    return admin_service.create_user(db, data)


@router.delete("/users/{user_id}", status_code=204, summary="Supprimer un compte")
def delete_user(user_id: uuid.UUID, db: Session = Depends(get_db)):
    admin_service.delete_user(db, user_id)
