"""
Exceptions métier levées par la couche service.
Traduites en réponses HTTP par le handler unique enregistré dans app.main.
"""

from typing import Optional


class ServiceError(Exception):
    """Erreur métier de base, porte le code HTTP à renvoyer."""
    status_code = 500
    default_message = "Une erreur interne est survenue."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(ServiceError):
    """Données syntaxiquement valides mais refusées par une règle métier."""
    status_code = 400
    default_message = "Données invalides."


class AuthenticationError(ServiceError):
    status_code = 401
    default_message = "Identifiants invalides."


class AccessDeniedError(ServiceError):
    """La ressource existe mais la règle d'accès refuse l'opération."""
    status_code = 403
    default_message = "Accès refusé."


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Ressource introuvable."


class ConflictError(ServiceError):
    """Violation d'une clé unique (email, salle de visioconférence)."""
    status_code = 409
    default_message = "Conflit avec une ressource existante."
