"""
Router d'authentification : inscription, connexion, utilisateur courant.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.user import LoginRequest, RegisterRequest, TokenResponse, UserProfile
from app.services import user_service

router = APIRouter(prefix="/api/v1/auth", tags=["Authentification"])


@router.post("/register", response_model=TokenResponse, status_code=201, summary="Créer un compte")
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Inscription d'un élève ou d'un enseignant. Email déjà utilisé → 409."""
    return user_service.register(db, data)


@router.post("/login", response_model=TokenResponse, summary="Se connecter")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Retourne un jeton Bearer. Identifiants incorrects ou compte désactivé → 401."""
    return user_service.authenticate(db, data)


@router.get("/me", response_model=UserProfile, summary="Utilisateur connecté")
def me(user: User = Depends(get_current_user)):
    return user_service.get_profile(user)
