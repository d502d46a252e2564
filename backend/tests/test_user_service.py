"""
Tests unitaires pour les comptes (inscription, connexion, profil, annuaires)
et pour le service d'administration.
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from app.exceptions import AuthenticationError, ConflictError, InvalidInputError, NotFoundError
from app.schemas.user import (
    AdminUserCreate, EnrolledSubject, LoginRequest, PasswordChange, ProfileUpdate,
    RegisterRequest, StudentSummaryView, UserProfile,
)
from app.security import decode_access_token, hash_password, verify_password
from app.services import admin_service, user_service
from tests.conftest import build_user


# --- Helpers ---

def make_db_mock(scalar=None, users=None, get=None):
    db = MagicMock()
    db.execute.return_value.scalar.return_value = scalar
    db.execute.return_value.scalars.return_value.all.return_value = users or []
    db.get.return_value = get
    # Simule l'attribution de l'ID par PostgreSQL au rafraîchissement
    db.refresh.side_effect = lambda obj: setattr(obj, "id", obj.id or uuid.uuid4())
    return db


# --- Validation des schémas ---

def test_register_email_normalise():
    data = RegisterRequest(name="Léa", email="Lea@Example.com", password="secret123")
    assert data.email == "lea@example.com"
    assert data.role == "student"


def test_register_role_admin_interdit():
    with pytest.raises(ValidationError):
        RegisterRequest(name="Léa", email="lea@example.com", password="secret123", role="admin")


def test_register_mot_de_passe_trop_court():
    with pytest.raises(ValidationError):
        RegisterRequest(name="Léa", email="lea@example.com", password="123")


# --- register / authenticate ---

def test_register_succes():
    db = make_db_mock(scalar=None)
    result = user_service.register(db, RegisterRequest(
        name="Léa", email="lea@example.com", password="secret123", role="teacher",
    ))
    user = db.add.call_args.args[0]
    assert user.role == "teacher"
    assert user.is_active is True
    assert verify_password("secret123", user.password_hash)
    assert result.user.email == "lea@example.com"
    assert decode_access_token(result.access_token) == user.id


def test_register_email_deja_utilise():
    db = make_db_mock(scalar=uuid.uuid4())
    with pytest.raises(ConflictError):
        user_service.register(db, RegisterRequest(name="Léa", email="lea@example.com", password="secret123"))
    db.add.assert_not_called()


def test_register_email_concurrent():
    db = make_db_mock(scalar=None)
    db.commit.side_effect = IntegrityError("duplicate", {}, Exception())
    with pytest.raises(ConflictError):
        user_service.register(db, RegisterRequest(name="Léa", email="lea@example.com", password="secret123"))
    db.rollback.assert_called_once()


def test_authenticate_succes():
    user = build_user("student", password_hash=hash_password("secret123"))
    result = user_service.authenticate(make_db_mock(scalar=user), LoginRequest(
        email="alice@example.com", password="secret123",
    ))
    assert decode_access_token(result.access_token) == user.id
    assert result.token_type == "bearer"


def test_authenticate_mauvais_mot_de_passe():
    user = build_user("student", password_hash=hash_password("secret123"))
    with pytest.raises(AuthenticationError):
        user_service.authenticate(make_db_mock(scalar=user), LoginRequest(
            email="alice@example.com", password="mauvais",
        ))


def test_authenticate_email_inconnu():
    with pytest.raises(AuthenticationError):
        user_service.authenticate(make_db_mock(scalar=None), LoginRequest(
            email="inconnu@example.com", password="secret123",
        ))


def test_authenticate_compte_desactive():
    user = build_user("teacher", password_hash=hash_password("secret123"), is_active=False)
    with pytest.raises(AuthenticationError):
        user_service.authenticate(make_db_mock(scalar=user), LoginRequest(
            email="alice@example.com", password="secret123",
        ))


# --- Profil ---

def test_update_profile_champs_fournis():
    me = build_user("student")
    result = user_service.update_profile(make_db_mock(), me, ProfileUpdate(phone="0470 00 00 00", avatar="a.png"))
    assert me.phone == "0470 00 00 00"
    assert result.avatar == "a.png"
    assert result.name == "Alice Martin"


def test_update_profile_email_deja_pris():
    me = build_user("student")
    db = make_db_mock(scalar=uuid.uuid4())
    with pytest.raises(ConflictError):
        user_service.update_profile(db, me, ProfileUpdate(email="pris@example.com"))
    assert me.email == "alice@example.com"
    db.commit.assert_not_called()


def test_change_password_mot_de_passe_actuel_incorrect():
    me = build_user("student", password_hash=hash_password("secret123"))
    with pytest.raises(InvalidInputError):
        user_service.change_password(make_db_mock(), me, PasswordChange(
            current_password="mauvais", new_password="nouveau123",
        ))


def test_change_password_succes():
    me = build_user("student", password_hash=hash_password("secret123"))
    db = make_db_mock()
    user_service.change_password(db, me, PasswordChange(current_password="secret123", new_password="nouveau123"))
    assert verify_password("nouveau123", me.password_hash)
    db.commit.assert_called_once()


# --- Annuaires ---

def test_list_students_vue_enseignant_sans_coordonnees():
    students = [build_user("student", name="Léa"), build_user("student", name="Tom")]
    result = user_service.list_students(make_db_mock(users=students), build_user("teacher"))
    assert all(isinstance(s, StudentSummaryView) for s in result)
    assert all(
        set(s.model_dump()) == {"id", "name", "avatar", "role", "is_active", "created_at"} for s in result
    )


def test_list_students_vue_admin_complete():
    students = [build_user("student")]
    [result] = user_service.list_students(make_db_mock(users=students), build_user("admin"))
    assert isinstance(result, UserProfile)


def test_get_user_desactive_invisible_pour_un_enseignant():
    hidden = build_user("student", is_active=False)
    with pytest.raises(NotFoundError):
        user_service.get_user(make_db_mock(get=hidden), build_user("teacher"), hidden.id)


def test_get_user_desactive_visible_pour_admin():
    hidden = build_user("student", is_active=False)
    assert user_service.get_user(make_db_mock(get=hidden), build_user("admin"), hidden.id).id == hidden.id


def test_get_user_introuvable():
    with pytest.raises(NotFoundError):
        user_service.get_user(make_db_mock(get=None), build_user("admin"), uuid.uuid4())


# --- Administration ---

def test_admin_create_teacher_ignore_les_champs_eleve():
    data = AdminUserCreate(
        name="Prof. Dubois", email="dubois@example.com", password="secret123", role="teacher",
        grade="6ème", specialization="Mathématiques",
        enrolled_subjects=[EnrolledSubject(subject="Physique")],
    )
    created = build_user("teacher", specialization="Mathématiques")
    with patch("app.services.admin_service.create_account", return_value=created) as create:
        result = admin_service.create_user(MagicMock(), data)

    _, fields, password, subjects = create.call_args.args
    assert fields["specialization"] == "Mathématiques"
    assert "grade" not in fields
    assert password == "secret123"
    assert subjects == []
    assert result.specialization == "Mathématiques"


def test_admin_create_student_avec_matieres():
    data = AdminUserCreate(
        name="Léa", email="lea@example.com", password="secret123", role="student",
        grade="6ème", school="Athénée", qualification="Master",
        enrolled_subjects=[EnrolledSubject(subject="Physique", classes=8, fees="120.50")],
    )
    db = make_db_mock(scalar=None)
    result = admin_service.create_user(db, data)

    user = db.add.call_args.args[0]
    assert user.grade == "6ème"
    assert user.qualification is None
    assert [s.subject for s in user.enrolled_subjects] == ["Physique"]
    assert result.enrolled_subjects[0].classes == 8


def test_admin_set_user_status():
    user = build_user("teacher")
    result = admin_service.set_user_status(make_db_mock(get=user), user.id, False)
    assert user.is_active is False
    assert result.is_active is False


def test_admin_set_user_status_introuvable():
    with pytest.raises(NotFoundError):
        admin_service.set_user_status(make_db_mock(get=None), uuid.uuid4(), True)


def test_admin_delete_user():
    user = build_user("student")
    db = make_db_mock(get=user)
    admin_service.delete_user(db, user.id)
    db.delete.assert_called_once_with(user)
    db.commit.assert_called_once()


def test_admin_delete_user_introuvable():
    db = make_db_mock(get=None)
    with pytest.raises(NotFoundError):
        admin_service.delete_user(db, uuid.uuid4())
    db.delete.assert_not_called()


def test_admin_stats():
    db = make_db_mock(scalar=3)
    stats = admin_service.get_stats(db)
    assert stats.total_users == 3
    assert stats.active_chats == 3
    assert db.execute.call_count == 6
