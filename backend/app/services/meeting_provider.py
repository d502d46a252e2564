"""
Fournisseur de visioconférence externe (Jitsi par défaut).

Traité comme un collaborateur opaque : on lui donne un nom de salle, il en
déduit l'URL de connexion. Aucune API n'est appelée.
"""

import secrets
import string
import time
from typing import Optional

from app.config import settings

_BASE36 = string.digits + string.ascii_lowercase
ROOM_SUFFIX_LENGTH = 7


class MeetingProvider:
    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.MEETING_BASE_URL).rstrip("/")

    def new_room_name(self, timestamp_ms: Optional[int] = None) -> str:
        """Nom de salle unique : horodatage en millisecondes + suffixe aléatoire base 36."""
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        suffix = "".join(secrets.choice(_BASE36) for _ in range(ROOM_SUFFIX_LENGTH))
        return f"class-{timestamp_ms}-{suffix}"

    def join_url(self, room_name: str) -> str:
        return f"{self.base_url}/{room_name}"


meeting_provider = MeetingProvider()
