"""
Router des notifications dérivées (messages non lus, cours imminents).
Rien n'est stocké côté serveur : le client conserve son cache et le fait
réconcilier via POST /sync.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.notification import NotificationList, NotificationSyncRequest
from app.services import notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationList, summary="Notifications du moment")
def get_notifications(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Notifications recalculées à partir des conversations et des cours de l'appelant."""
    notifications = notification_service.build_notifications(db, user)
    return NotificationList(
        notifications=notifications,
        unread_count=notification_service.count_unread(notifications),
    )


@router.post("/sync", response_model=NotificationList, summary="Réconcilier le cache client")
def sync_notifications(
    data: NotificationSyncRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Fusionne le cache du client avec les notifications fraîches :
    l'état lu est conservé, les notifications non lues persistent même si
    leur cause a disparu, les entrées de plus de 7 jours sont purgées.
    """
    notifications = notification_service.sync_notifications(db, user, data.cache)
    return NotificationList(
        notifications=notifications,
        unread_count=notification_service.count_unread(notifications),
    )
