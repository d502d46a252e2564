# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# users doit être chargé en premier : classes, chats et messages y font référence.

from app.models.user import User, UserSubject  # noqa: F401  (doit précéder les autres)
from app.models.school_class import SchoolClass, ClassStudent  # noqa: F401
from app.models.chat import Chat, ChatParticipant, Message, MessageRead  # noqa: F401
