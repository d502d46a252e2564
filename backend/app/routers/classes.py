"""
Router pour les cours planifiés avec salle de visioconférence.
Les erreurs métier (404, 403, 409) sont traduites par le handler de app.main.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.access import ADMIN, STUDENT, TEACHER
from app.database import get_db
from app.dependencies import get_current_user, require_roles
from app.models.user import User
from app.schemas.school_class import ClassCreate, ClassResponse, ClassUpdate
from app.services import class_service

router = APIRouter(prefix="/api/v1/classes", tags=["Cours"])


@router.post("", response_model=ClassResponse, status_code=201, summary="Créer un cours")
def create_class(
    data: ClassCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(TEACHER)),
):
    """
    Crée un cours dont l'enseignant connecté est propriétaire.
    La salle et le lien de visioconférence sont générés une fois pour toutes.
    """
    return class_service.create_class(db, user, data)


@router.get("", response_model=List[ClassResponse], summary="Lister les cours visibles")
def list_classes(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Admin : tous les cours. Enseignant : ses cours. Élève : les cours où il est inscrit."""
    return class_service.list_classes(db, user)


@router.get("/{class_id}", response_model=ClassResponse, summary="Détail d'un cours")
def get_class(class_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return class_service.get_class(db, user, class_id)


@router.put("/{class_id}", response_model=ClassResponse, summary="Modifier un cours")
def update_class(
    class_id: uuid.UUID,
    data: ClassUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(TEACHER, ADMIN)),
):
    return class_service.update_class(db, user, class_id, data)


@router.delete("/{class_id}", status_code=204, summary="Supprimer un cours")
def delete_class(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(TEACHER, ADMIN)),
):
    class_service.delete_class(db, user, class_id)


@router.post("/{class_id}/join", response_model=ClassResponse, summary="Rejoindre un cours")
def join_class(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(STUDENT)),
):
    """Inscrit l'élève connecté. Sans effet s'il est déjà inscrit."""
    return class_service.join_class(db, user, class_id)
