"""
Modèles SQLAlchemy pour les utilisateurs (admin, enseignant, élève).
Les champs spécifiques au rôle sont nullable : un enseignant n'a pas de parents,
un élève n'a pas de spécialisation.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    email = Column(String(255), unique=True, nullable=False)  # Toujours en minuscules
    phone = Column(String(50), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)  # admin, teacher, student (jamais modifié)
    avatar = Column(String(500), default="")
    is_active = Column(Boolean, default=True, nullable=False)

    # Élève
    grade = Column(String(50), nullable=True)
    school = Column(String(255), nullable=True)
    father_name = Column(String(150), nullable=True)
    father_contact = Column(String(50), nullable=True)
    mother_name = Column(String(150), nullable=True)
    mother_contact = Column(String(50), nullable=True)

    # Enseignant
    specialization = Column(String(255), nullable=True)
    qualification = Column(String(255), nullable=True)

    enrolled_subjects = relationship("UserSubject", lazy="selectin", cascade="all, delete-orphan")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class UserSubject(Base):
    """Matière suivie par un élève (nombre de séances et frais convenus)."""
    __tablename__ = "user_subjects"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    subject = Column(String(100), primary_key=True)
    classes = Column(Integer, default=0)
    fees = Column(Numeric(10, 2), default=0)
