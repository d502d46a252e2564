"""
Modèles SQLAlchemy pour la messagerie : conversations, participants, messages
et accusés de lecture.

Invariants portés par la base :
- une seule conversation privée active par paire de participants (index unique partiel sur pair_key)
- un utilisateur apparaît au plus une fois dans les lectures d'un message (clé primaire composite)
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text, func, text
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class Chat(Base):
    __tablename__ = "chats"
    __table_args__ = (
        Index(
            "uq_chats_active_private_pair",
            "pair_key",
            unique=True,
            postgresql_where=text("type = 'private' AND is_active"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=True)
    type = Column(String(20), nullable=False)  # private, group
    pair_key = Column(String(80), nullable=True)  # "<uuid_min>:<uuid_max>" pour les conversations privées
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)  # False = supprimée (soft delete)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class ChatParticipant(Base):
    """Association conversation ↔ participants."""
    __tablename__ = "chat_participants"

    chat_id = Column(UUID(as_uuid=True), ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())


class Message(Base):
    __tablename__ = "messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    chat_id = Column(UUID(as_uuid=True), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # NULL = compte supprimé
    content = Column(Text, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class MessageRead(Base):
    """Accusé de lecture : (message, utilisateur) avec l'horodatage de lecture."""
    __tablename__ = "message_reads"

    message_id = Column(UUID(as_uuid=True), ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    read_at = Column(DateTime(timezone=True), server_default=func.now())
