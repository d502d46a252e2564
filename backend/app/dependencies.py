"""
Dépendances FastAPI d'authentification.

Le jeton Bearer n'identifie que l'utilisateur : le compte est relu en base à
chaque requête, ce qui applique immédiatement une désactivation ou une suppression.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import AccessDeniedError, AuthenticationError
from app.models.user import User
from app.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthenticationError("Authentification requise.")
    user_id = decode_access_token(credentials.credentials)
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Compte introuvable ou désactivé.")
    return user


def require_roles(*roles: str):
    """Dépendance qui n'accepte que les utilisateurs ayant l'un des rôles donnés."""

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise AccessDeniedError()
        return user

    return checker
