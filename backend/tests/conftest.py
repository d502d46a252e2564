"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL,
et get_current_user pour simuler l'utilisateur connecté sans jeton.
"""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.database import get_db
from app.dependencies import get_current_user
from app.main import app


def build_user(role: str = "student", **kwargs) -> SimpleNamespace:
    """Utilisateur factice portant tous les attributs lus par les schémas de profil."""
    fields = {
        "id": uuid.uuid4(),
        "name": "Alice Martin",
        "email": "alice@example.com",
        "phone": "+32 470 12 34 56",
        "password_hash": "hash",
        "role": role,
        "avatar": "",
        "is_active": True,
        "grade": None,
        "school": None,
        "father_name": None,
        "father_contact": None,
        "mother_name": None,
        "mother_contact": None,
        "enrolled_subjects": [],
        "specialization": None,
        "qualification": None,
        "created_at": datetime(2026, 9, 1, 8, 0, tzinfo=timezone.utc),
        "updated_at": datetime(2026, 9, 1, 8, 0, tzinfo=timezone.utc),
    }
    fields.update(kwargs)
    return SimpleNamespace(**fields)


@pytest.fixture
def make_user():
    return build_user


@pytest.fixture
def db():
    return MagicMock()


@pytest.fixture
def client(db):
    """Client HTTP de test avec la BDD mockée."""
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    """Authentifie les requêtes suivantes du client avec l'utilisateur donné."""
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login
