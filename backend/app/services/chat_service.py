"""
Service métier pour la messagerie : conversations, messages et accusés de lecture.

Règles de lecture :
- un message est non lu pour un utilisateur s'il n'en est pas l'expéditeur,
  n'est pas supprimé et l'utilisateur n'apparaît pas dans ses lectures
- consulter les messages d'une conversation marque comme lus tous ceux des
  autres participants ; le marquage n'ajoute que les lectures absentes
  (ON CONFLICT DO NOTHING), deux consultations simultanées n'ont donc pas
  plus d'effet qu'une seule

Conversations privées : une seule conversation active par paire, identifiée
par pair_key. Une deuxième demande de création retourne la conversation existante.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.access import (
    ADMIN, CHAT, CREATE, DELETE, MESSAGE, PRIVATE_CHAT, READ, WRITE,
    ChatResource, ensure_access,
)
from app.exceptions import InvalidInputError, NotFoundError
from app.models.chat import Chat, ChatParticipant, Message, MessageRead
from app.models.user import User
from app.schemas.chat import (
    ChatCreate,
    ChatMember,
    ChatResponse,
    ChatSummary,
    MessageCreate,
    MessageResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_GROUP_NAME = "Discussion de groupe"
DEFAULT_PAGE_SIZE = 50


# --- État de lecture (fonctions pures) ---

def pair_key(user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    """Clé indépendante de l'ordre pour une paire de participants."""
    return ":".join(sorted((str(user_a), str(user_b))))


def unread_message_ids(messages: Iterable, reads: Set[Tuple[uuid.UUID, uuid.UUID]], user_id: uuid.UUID) -> List[uuid.UUID]:
    """
    IDs des messages non lus par `user_id`.
    `messages` : objets avec id, sender_id, is_deleted.
    `reads` : ensemble de couples (message_id, user_id) déjà enregistrés.
    """
    return [
        m.id for m in messages
        if m.sender_id != user_id and not m.is_deleted and (m.id, user_id) not in reads
    ]


def count_unread(messages: Iterable, reads: Set[Tuple[uuid.UUID, uuid.UUID]], user_id: uuid.UUID) -> int:
    return len(unread_message_ids(messages, reads, user_id))


# --- Conversations ---

def create_chat(db: Session, actor: User, data: ChatCreate) -> Tuple[ChatResponse, bool]:
    """
    Crée une conversation, ou retourne la conversation privée existante.
    Retourne (conversation, créée) : créée vaut False si une conversation
    privée active existait déjà entre les deux participants.
    """
    participant_ids = list(dict.fromkeys([actor.id, *data.participant_ids]))

    if data.type == PRIVATE_CHAT and (len(data.participant_ids) != 1 or len(participant_ids) != 2):
        raise InvalidInputError("Une conversation privée doit avoir exactement un autre participant.")

    ensure_access(
        actor, CHAT, ChatResource(data.type, actor.id, frozenset(participant_ids)), CREATE,
        "Seuls les administrateurs peuvent créer une conversation de groupe.",
    )

    key = None
    if data.type == PRIVATE_CHAT:
        key = pair_key(*participant_ids)
        existing = _find_private_chat(db, key)
        if existing is not None:
            logger.debug("Conversation privée déjà existante : %s", existing.id)
            return _to_response(db, existing), False

    found = db.execute(select(User.id).where(User.id.in_(participant_ids))).scalars().all()
    if len(set(found)) != len(participant_ids):
        raise InvalidInputError("Certains participants sont introuvables.")

    chat = Chat(
        name=data.name or (None if data.type == PRIVATE_CHAT else DEFAULT_GROUP_NAME),
        type=data.type,
        pair_key=key,
        created_by=actor.id,
        is_active=True,
    )
    db.add(chat)
    try:
        db.flush()
        db.bulk_insert_mappings(ChatParticipant, [
            {"chat_id": chat.id, "user_id": uid} for uid in participant_ids
        ])
        db.commit()
    except IntegrityError:
        db.rollback()
        # Création concurrente de la même conversation privée : l'index unique a tranché
        existing = _find_private_chat(db, key) if key else None
        if existing is None:
            raise
        return _to_response(db, existing), False
    db.refresh(chat)

    logger.info("Conversation %s créée : %s par %s (%d participants)",
                chat.type, chat.id, actor.id, len(participant_ids))
    return _to_response(db, chat), True


def list_chats(db: Session, actor: User) -> List[ChatSummary]:
    """
    Conversations actives visibles par l'acteur, la plus récemment active en premier.
    Un admin voit toutes les conversations, les autres seulement celles dont ils sont participants.
    """
    query = select(Chat).where(Chat.is_active.is_(True))
    if actor.role != ADMIN:
        query = query.join(ChatParticipant, ChatParticipant.chat_id == Chat.id).where(
            ChatParticipant.user_id == actor.id
        )
    chats = db.execute(query.order_by(Chat.updated_at.desc())).scalars().all()
    return [_to_summary(db, chat, actor.id) for chat in chats]


def get_chat(db: Session, actor: User, chat_id: uuid.UUID) -> ChatResponse:
    chat = _get_or_404(db, actor, chat_id)
    ensure_access(actor, CHAT, _resource(db, chat), READ)
    return _to_response(db, chat)


def delete_chat(db: Session, actor: User, chat_id: uuid.UUID) -> None:
    """Suppression logique (is_active = False), réservée à l'admin ou au créateur."""
    chat = _get_or_404(db, actor, chat_id)
    ensure_access(actor, CHAT, _resource(db, chat), DELETE)
    chat.is_active = False
    db.commit()
    logger.info("Conversation %s supprimée par %s", chat_id, actor.id)


# --- Messages ---

def get_messages(
    db: Session,
    actor: User,
    chat_id: uuid.UUID,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> List[MessageResponse]:
    """
    Retourne une page de messages (page 1 = les plus récents) dans l'ordre
    chronologique, puis marque comme lus par l'acteur les messages des autres.
    """
    chat = _get_or_404(db, actor, chat_id)
    ensure_access(actor, MESSAGE, _resource(db, chat), READ)

    messages = db.execute(
        select(Message)
        .where(Message.chat_id == chat_id, Message.is_deleted.is_(False))
        .order_by(Message.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    mark_chat_read(db, chat_id, actor.id)

    senders = _users_by_id(db, {m.sender_id for m in messages if m.sender_id is not None})
    return [_message_response(m, senders.get(m.sender_id)) for m in reversed(messages)]


def send_message(db: Session, actor: User, chat_id: uuid.UUID, data: MessageCreate) -> MessageResponse:
    """
    Ajoute un message et remonte la conversation en tête de liste (updated_at).
    Une conversation supprimée reste lisible par l'admin mais n'accepte plus de message.
    """
    chat = _get_or_404(db, actor, chat_id)
    if not chat.is_active:
        raise NotFoundError("Conversation introuvable.")
    ensure_access(actor, MESSAGE, _resource(db, chat), WRITE)

    message = Message(chat_id=chat_id, sender_id=actor.id, content=data.content)
    db.add(message)
    chat.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(message)
    return _message_response(message, actor)


def mark_chat_read(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID, read_at: Optional[datetime] = None) -> int:
    """
    Enregistre la lecture par `user_id` de tous les messages non lus de la conversation.
    Retourne le nombre de lectures ajoutées (0 si tout était déjà lu).
    """
    messages, reads = _read_state(db, chat_id, user_id)
    to_mark = unread_message_ids(messages, reads, user_id)
    if not to_mark:
        return 0

    read_at = read_at or datetime.now(timezone.utc)
    db.execute(
        pg_insert(MessageRead)
        .values([{"message_id": mid, "user_id": user_id, "read_at": read_at} for mid in to_mark])
        .on_conflict_do_nothing(index_elements=["message_id", "user_id"])
    )
    db.commit()
    logger.debug("%d messages marqués lus par %s dans %s", len(to_mark), user_id, chat_id)
    return len(to_mark)


def unread_count(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID) -> int:
    messages, reads = _read_state(db, chat_id, user_id)
    return count_unread(messages, reads, user_id)


# --- Helpers ---

def _get_or_404(db: Session, actor: User, chat_id: uuid.UUID) -> Chat:
    """Une conversation supprimée n'existe plus que pour les administrateurs."""
    chat = db.get(Chat, chat_id)
    if chat is None or (not chat.is_active and actor.role != ADMIN):
        raise NotFoundError("Conversation introuvable.")
    return chat


def _find_private_chat(db: Session, key: str) -> Optional[Chat]:
    return db.execute(
        select(Chat).where(
            Chat.type == PRIVATE_CHAT,
            Chat.pair_key == key,
            Chat.is_active.is_(True),
        )
    ).scalar()


def _participant_ids(db: Session, chat_id: uuid.UUID) -> set:
    return set(db.execute(
        select(ChatParticipant.user_id).where(ChatParticipant.chat_id == chat_id)
    ).scalars().all())


def _resource(db: Session, chat: Chat) -> ChatResource:
    return ChatResource(
        type=chat.type,
        created_by=chat.created_by,
        participant_ids=frozenset(_participant_ids(db, chat.id)),
    )


def _read_state(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID):
    """Messages de la conversation et lectures déjà enregistrées pour `user_id`."""
    messages = db.execute(
        select(Message.id, Message.sender_id, Message.is_deleted).where(Message.chat_id == chat_id)
    ).all()
    reads = {
        (row.message_id, row.user_id)
        for row in db.execute(
            select(MessageRead.message_id, MessageRead.user_id)
            .join(Message, Message.id == MessageRead.message_id)
            .where(Message.chat_id == chat_id, MessageRead.user_id == user_id)
        ).all()
    }
    return messages, reads


def _users_by_id(db: Session, user_ids: set) -> dict:
    if not user_ids:
        return {}
    users = db.execute(select(User).where(User.id.in_(user_ids))).scalars().all()
    return {u.id: u for u in users}


def _message_response(message: Message, sender: Optional[User]) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        chat_id=message.chat_id,
        sender=ChatMember.model_validate(sender) if sender is not None else None,
        content=message.content,
        created_at=message.created_at,
    )


def _to_response(db: Session, chat: Chat) -> ChatResponse:
    participants = db.execute(
        select(User)
        .join(ChatParticipant, ChatParticipant.user_id == User.id)
        .where(ChatParticipant.chat_id == chat.id)
        .order_by(User.name)
    ).scalars().all()

    return ChatResponse(
        id=chat.id,
        name=chat.name,
        type=chat.type,
        participants=[ChatMember.model_validate(p) for p in participants],
        created_by=chat.created_by,
        is_active=chat.is_active,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
    )


def _latest_message(db: Session, *criteria) -> Optional[MessageResponse]:
    message = db.execute(
        select(Message).where(*criteria).order_by(Message.created_at.desc()).limit(1)
    ).scalar()
    if message is None:
        return None
    sender = db.get(User, message.sender_id) if message.sender_id is not None else None
    return _message_response(message, sender)


def _to_summary(db: Session, chat: Chat, user_id: uuid.UUID) -> ChatSummary:
    """Réponse de conversation enrichie des derniers messages et du nombre de non-lus."""
    base = _to_response(db, chat)
    last_message = _latest_message(db, Message.chat_id == chat.id, Message.is_deleted.is_(False))

    messages, reads = _read_state(db, chat.id, user_id)
    unread_ids = unread_message_ids(messages, reads, user_id)
    last_unread = _latest_message(db, Message.id.in_(unread_ids)) if unread_ids else None

    return ChatSummary(
        **base.model_dump(),
        last_message=last_message,
        last_unread_message=last_unread,
        unread_count=len(unread_ids),
    )
