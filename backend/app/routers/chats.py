"""
Router pour la messagerie : conversations privées et de groupe, messages.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.chat import ChatCreate, ChatResponse, ChatSummary, MessageCreate, MessageResponse
from app.services import chat_service

router = APIRouter(prefix="/api/v1/chats", tags=["Messagerie"])


@router.post("", response_model=ChatResponse, status_code=201, summary="Créer une conversation")
def create_chat(
    data: ChatCreate,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Crée une conversation privée (tout utilisateur) ou de groupe (admin uniquement).
    Si une conversation privée active existe déjà avec ce participant,
    elle est retournée avec le code 200 au lieu d'en créer une seconde.
    """
    chat, created = chat_service.create_chat(db, user, data)
    if not created:
        response.status_code = 200
    return chat


@router.get("", response_model=List[ChatSummary], summary="Lister mes conversations")
def list_chats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Conversations actives avec dernier message et nombre de messages non lus."""
    return chat_service.list_chats(db, user)


@router.get("/{chat_id}", response_model=ChatResponse, summary="Détail d'une conversation")
def get_chat(chat_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return chat_service.get_chat(db, user, chat_id)


@router.get("/{chat_id}/messages", response_model=List[MessageResponse], summary="Messages d'une conversation")
def get_messages(
    chat_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(chat_service.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Retourne une page de messages dans l'ordre chronologique.
    Les messages des autres participants sont marqués comme lus par l'appelant.
    """
    return chat_service.get_messages(db, user, chat_id, page, limit)


@router.post("/{chat_id}/messages", response_model=MessageResponse, status_code=201, summary="Envoyer un message")
def send_message(
    chat_id: uuid.UUID,
    data: MessageCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return chat_service.send_message(db, user, chat_id, data)


@router.delete("/{chat_id}", status_code=204, summary="Supprimer une conversation")
def delete_chat(chat_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Suppression logique, réservée à l'admin ou au créateur de la conversation."""
    chat_service.delete_chat(db, user, chat_id)
