"""
Tests unitaires pour le service des cours planifiés.
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from app.exceptions import AccessDeniedError, ConflictError, InvalidInputError, NotFoundError
from app.models.school_class import ClassStudent, SchoolClass
from app.schemas.school_class import ClassCreate, ClassUpdate
from app.services.class_service import (
    create_class,
    delete_class,
    get_class,
    join_class,
    list_classes,
    update_class,
)
from app.services.meeting_provider import MeetingProvider
from tests.conftest import build_user

START = datetime(2026, 10, 20, 14, 0, tzinfo=timezone.utc)


# --- Helpers ---

def make_class_mock(teacher_id=None, class_id=None):
    c = MagicMock()
    c.id = class_id or uuid.uuid4()
    c.teacher_id = teacher_id or uuid.uuid4()
    c.title = "Mathématiques"
    c.meeting_room = "class-1760968800000-abc1234"
    c.meeting_link = "https://meet.jit.si/class-1760968800000-abc1234"
    return c


def make_db_mock(school_class=None, found_ids=None):
    db = MagicMock()
    db.get.return_value = school_class
    db.execute.return_value.scalars.return_value.all.return_value = found_ids or []
    return db


def added_class(db) -> SchoolClass:
    return next(call.args[0] for call in db.add.call_args_list if isinstance(call.args[0], SchoolClass))


# --- Validation des schémas ---

def test_class_create_titre_vide_rejete():
    with pytest.raises(ValidationError):
        ClassCreate(title="   ", scheduled_time=START)


def test_class_create_duree_trop_courte_rejetee():
    with pytest.raises(ValidationError):
        ClassCreate(title="Maths", scheduled_time=START, duration=10)


def test_class_create_date_naive_convertie_en_utc():
    c = ClassCreate(title="  Maths  ", scheduled_time=datetime(2026, 10, 20, 14, 0))
    assert c.title == "Maths"
    assert c.scheduled_time == START


def test_class_update_statut_invalide_rejete():
    with pytest.raises(ValidationError):
        ClassUpdate(status="archived")


# --- create_class ---

def test_create_class_succes():
    teacher = build_user("teacher")
    student_ids = [uuid.uuid4(), uuid.uuid4()]
    db = make_db_mock(found_ids=student_ids)
    provider = MeetingProvider("https://meet.example.org/")

    with patch("app.services.class_service._to_response") as mock_resp:
        result = create_class(db, teacher, ClassCreate(
            title="Physique", scheduled_time=START, student_ids=student_ids,
        ), provider=provider)

    school_class = added_class(db)
    assert school_class.teacher_id == teacher.id
    assert school_class.status == "scheduled"
    assert school_class.duration == 60
    assert school_class.meeting_room.startswith("class-")
    assert school_class.meeting_link == f"https://meet.example.org/{school_class.meeting_room}"
    mappings = db.bulk_insert_mappings.call_args.args
    assert mappings[0] is ClassStudent
    assert [m["student_id"] for m in mappings[1]] == student_ids
    db.commit.assert_called_once()
    assert result is mock_resp.return_value


def test_create_class_sans_eleves():
    db = make_db_mock()
    with patch("app.services.class_service._to_response"):
        create_class(db, build_user("teacher"), ClassCreate(title="Chimie", scheduled_time=START))
    db.bulk_insert_mappings.assert_not_called()
    db.commit.assert_called_once()


def test_create_class_eleve_inconnu_rejete():
    db = make_db_mock(found_ids=[])
    with pytest.raises(InvalidInputError):
        create_class(db, build_user("teacher"), ClassCreate(
            title="Physique", scheduled_time=START, student_ids=[uuid.uuid4()],
        ))
    db.add.assert_not_called()


@pytest.mark.parametrize("role", ["student", "admin"])
def test_create_class_reserve_aux_enseignants(role):
    db = make_db_mock()
    with pytest.raises(AccessDeniedError):
        create_class(db, build_user(role), ClassCreate(title="Physique", scheduled_time=START))
    db.add.assert_not_called()


def test_create_class_salle_en_conflit():
    db = make_db_mock()
    db.commit.side_effect = IntegrityError("duplicate", {}, Exception())
    with pytest.raises(ConflictError):
        create_class(db, build_user("teacher"), ClassCreate(title="Physique", scheduled_time=START))
    db.rollback.assert_called_once()


def test_meeting_provider_nom_de_salle():
    room = MeetingProvider().new_room_name(timestamp_ms=1760968800000)
    prefix, timestamp, suffix = room.split("-")
    assert prefix == "class"
    assert timestamp == "1760968800000"
    assert len(suffix) == 7
    assert suffix.isalnum() and suffix == suffix.lower()


# --- list / get ---

def test_list_classes_role_inconnu_vide():
    db = make_db_mock()
    assert list_classes(db, build_user("guest")) == []
    db.execute.assert_not_called()


def test_list_classes_enseignant():
    c = make_class_mock()
    db = make_db_mock(found_ids=[c])
    with patch("app.services.class_service._to_response") as mock_resp:
        result = list_classes(db, build_user("teacher"))
    assert result == [mock_resp.return_value]


def test_get_class_introuvable():
    with pytest.raises(NotFoundError):
        get_class(make_db_mock(), build_user("admin"), uuid.uuid4())


def test_get_class_eleve_non_inscrit_refuse():
    db = make_db_mock(school_class=make_class_mock(), found_ids=[])
    with pytest.raises(AccessDeniedError):
        get_class(db, build_user("student"), uuid.uuid4())


def test_get_class_eleve_inscrit():
    student = build_user("student")
    db = make_db_mock(school_class=make_class_mock(), found_ids=[student.id])
    with patch("app.services.class_service._to_response") as mock_resp:
        assert get_class(db, student, uuid.uuid4()) is mock_resp.return_value


# --- update_class ---

def test_update_class_conserve_la_salle():
    teacher = build_user("teacher")
    c = make_class_mock(teacher_id=teacher.id)
    room, link = c.meeting_room, c.meeting_link
    db = make_db_mock(school_class=c)

    with patch("app.services.class_service._to_response"):
        update_class(db, teacher, c.id, ClassUpdate(title="Algèbre", duration=90))

    assert c.title == "Algèbre"
    assert c.duration == 90
    assert c.meeting_room == room
    assert c.meeting_link == link
    db.commit.assert_called_once()


def test_update_class_enseignant_non_proprietaire_refuse():
    db = make_db_mock(school_class=make_class_mock())
    with pytest.raises(AccessDeniedError):
        update_class(db, build_user("teacher"), uuid.uuid4(), ClassUpdate(title="Algèbre"))
    db.commit.assert_not_called()


def test_update_class_remplace_les_eleves_connus():
    admin = build_user("admin")
    c = make_class_mock()
    known = uuid.uuid4()
    db = make_db_mock(school_class=c, found_ids=[known])

    with patch("app.services.class_service._to_response"):
        update_class(db, admin, c.id, ClassUpdate(student_ids=[known, uuid.uuid4()]))

    mappings = db.bulk_insert_mappings.call_args.args[1]
    assert mappings == [{"class_id": c.id, "student_id": known}]


# --- delete_class ---

def test_delete_class_proprietaire():
    teacher = build_user("teacher")
    c = make_class_mock(teacher_id=teacher.id)
    db = make_db_mock(school_class=c)
    delete_class(db, teacher, c.id)
    db.delete.assert_called_once_with(c)
    db.commit.assert_called_once()


def test_delete_class_eleve_refuse():
    db = make_db_mock(school_class=make_class_mock())
    with pytest.raises(AccessDeniedError):
        delete_class(db, build_user("student"), uuid.uuid4())
    db.delete.assert_not_called()


# --- join_class ---

def test_join_class_inscrit_l_eleve():
    student = build_user("student")
    c = make_class_mock()
    db = make_db_mock(school_class=c)
    with patch("app.services.class_service._to_response"):
        join_class(db, student, c.id)
    enrolment = db.add.call_args.args[0]
    assert isinstance(enrolment, ClassStudent)
    assert enrolment.student_id == student.id
    db.commit.assert_called_once()


def test_join_class_idempotent():
    student = build_user("student")
    c = make_class_mock()
    db = make_db_mock(school_class=c, found_ids=[student.id])
    with patch("app.services.class_service._to_response"):
        join_class(db, student, c.id)
        join_class(db, student, c.id)
    db.add.assert_not_called()
    db.commit.assert_not_called()


def test_join_class_inscription_concurrente_ignoree():
    c = make_class_mock()
    db = make_db_mock(school_class=c)
    db.commit.side_effect = IntegrityError("duplicate", {}, Exception())
    with patch("app.services.class_service._to_response") as mock_resp:
        assert join_class(db, build_user("student"), c.id) is mock_resp.return_value
    db.rollback.assert_called_once()


def test_join_class_enseignant_refuse():
    db = make_db_mock(school_class=make_class_mock())
    with pytest.raises(AccessDeniedError):
        join_class(db, build_user("teacher"), uuid.uuid4())
