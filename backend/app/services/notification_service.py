"""
Agrégateur de notifications.

Les notifications ne sont pas stockées : elles sont dérivées à chaque appel
des conversations (messages non lus) et des cours (début dans l'heure).
Le client conserve un cache local ; reconcile() fusionne ce cache avec les
notifications fraîches par clé stable :
- une clé toujours présente garde l'état lu/non lu du cache
- une entrée disparue côté serveur est conservée tant qu'elle n'a pas été lue
- les entrées de plus de 7 jours sont purgées

Tout peut être reconstruit à partir de rien : seule l'information "lu" est perdue.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.user import User
from app.schemas.notification import Notification
from app.services import chat_service, class_service

logger = logging.getLogger(__name__)

MESSAGE_NOTIFICATION = "message"
CLASS_NOTIFICATION = "class"
SNIPPET_LENGTH = 100


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _snippet(content: str) -> str:
    if len(content) <= SNIPPET_LENGTH:
        return content
    return content[:SNIPPET_LENGTH - 1].rstrip() + "…"


def chat_key(chat_id) -> str:
    return f"chat-{chat_id}"


def class_key(class_id) -> str:
    return f"class-{class_id}"


# --- Dérivation (fonctions pures) ---

def derive_message_notifications(chats: Iterable) -> List[Notification]:
    """
    Une notification par conversation ayant au moins un message non lu.
    Le texte reprend l'expéditeur et le début du dernier message non lu.
    """
    notifications = []
    for chat in chats:
        latest = getattr(chat, "last_unread_message", None) or chat.last_message
        if chat.unread_count <= 0 or latest is None:
            continue
        sender = latest.sender.name if latest.sender is not None else "Utilisateur inconnu"
        notifications.append(Notification(
            id=chat_key(chat.id),
            type=MESSAGE_NOTIFICATION,
            title="Nouveau message",
            message=f"{sender}: {_snippet(latest.content)}",
            chat_id=chat.id,
            created_at=latest.created_at,
        ))
    return notifications


def derive_class_notifications(
    classes: Iterable,
    now: datetime,
    lookahead_minutes: Optional[int] = None,
) -> List[Notification]:
    """
    Une notification par cours qui n'a pas encore commencé et débute dans
    la fenêtre ]now, now + lookahead]. Les cours terminés ou annulés sont ignorés.
    """
    if lookahead_minutes is None:
        lookahead_minutes = settings.NOTIFICATION_LOOKAHEAD_MINUTES
    now = _utc(now)
    horizon = now + timedelta(minutes=lookahead_minutes)

    notifications = []
    for school_class in classes:
        if school_class.status in class_service.INACTIVE_STATUSES:
            continue
        starts_at = _utc(school_class.scheduled_time)
        if not (now < starts_at <= horizon):
            continue
        minutes = int((starts_at - now).total_seconds() // 60)
        notifications.append(Notification(
            id=class_key(school_class.id),
            type=CLASS_NOTIFICATION,
            title="Cours imminent",
            message=f'Le cours "{school_class.title}" commence dans {minutes} minutes',
            class_id=school_class.id,
            minutes_until_start=minutes,
            created_at=now,
        ))
    return notifications


def _newest_first(notifications: Iterable[Notification]) -> List[Notification]:
    return sorted(notifications, key=lambda n: _utc(n.created_at), reverse=True)


def reconcile(
    previous: Iterable[Notification],
    fresh: Iterable[Notification],
    now: datetime,
    retention_days: Optional[int] = None,
) -> List[Notification]:
    """
    Fusionne le cache précédent avec les notifications fraîchement dérivées.
    Fonction pure : (cache précédent, notifications fraîches) → nouveau cache.
    """
    previous = list(previous)
    cached = {n.id: n for n in previous}

    merged = {}
    for notification in fresh:
        prior = cached.get(notification.id)
        merged[notification.id] = (
            notification.model_copy(update={"read": prior.read}) if prior is not None else notification
        )

    for notification in previous:
        if notification.id not in merged and not notification.read:
            merged[notification.id] = notification

    if retention_days is None:
        retention_days = settings.NOTIFICATION_RETENTION_DAYS
    cutoff = _utc(now) - timedelta(days=retention_days)
    return _newest_first(n for n in merged.values() if _utc(n.created_at) > cutoff)


def mark_read(cache: Iterable[Notification], key: str) -> List[Notification]:
    return [n.model_copy(update={"read": True}) if n.id == key else n for n in cache]


def mark_all_read(cache: Iterable[Notification]) -> List[Notification]:
    return [n.model_copy(update={"read": True}) for n in cache]


def dismiss(cache: Iterable[Notification], key: str) -> List[Notification]:
    return [n for n in cache if n.id != key]


def count_unread(cache: Iterable[Notification]) -> int:
    return sum(1 for n in cache if not n.read)


# --- Accès base ---

def build_notifications(db: Session, actor: User, now: Optional[datetime] = None) -> List[Notification]:
    """Dérive les notifications de l'acteur à l'instant `now` (messages + cours imminents)."""
    now = now or datetime.now(timezone.utc)
    chats = chat_service.list_chats(db, actor)
    classes = class_service.list_classes(db, actor, now)
    return _newest_first(derive_message_notifications(chats) + derive_class_notifications(classes, now))


def sync_notifications(
    db: Session,
    actor: User,
    cache: Iterable[Notification],
    now: Optional[datetime] = None,
) -> List[Notification]:
    """Réconcilie le cache envoyé par le client avec les notifications du moment."""
    now = now or datetime.now(timezone.utc)
    return reconcile(cache, build_notifications(db, actor, now), now)


class NotificationFeed:
    """
    Rafraîchissement périodique côté client.

    Chaque appel à refresh() interroge `fetch` et réconcilie le résultat avec
    le dernier cache connu. Un échec de `fetch` est journalisé et traité comme
    "pas de mise à jour" : le cache est conservé tel quel et le prochain
    rafraîchissement repart normalement.
    """

    def __init__(
        self,
        fetch: Callable[[], List[Notification]],
        cache: Optional[List[Notification]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        retention_days: Optional[int] = None,
    ):
        self._fetch = fetch
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._retention_days = retention_days
        self.cache: List[Notification] = list(cache or [])

    def refresh(self) -> List[Notification]:
        try:
            fresh = self._fetch()
        except Exception as exc:
            logger.warning("Rafraîchissement des notifications impossible, cache conservé : %s", exc)
            return self.cache
        self.cache = reconcile(self.cache, fresh, self._clock(), self._retention_days)
        return self.cache

    @property
    def unread_count(self) -> int:
        return count_unread(self.cache)

    def mark_read(self, key: str) -> None:
        self.cache = mark_read(self.cache, key)

    def mark_all_read(self) -> None:
        self.cache = mark_all_read(self.cache)

    def dismiss(self, key: str) -> None:
        self.cache = dismiss(self.cache, key)
