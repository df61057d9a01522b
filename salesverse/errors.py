"""
Erreurs métier remontées par les services.

Les routes ne construisent pas de HTTPException pour ces cas : les handlers
enregistrés dans server.py traduisent chaque erreur en enveloppe JSON.
"""

from typing import List, Optional


class CRMError(Exception):
    """Base des erreurs métier"""
    status_code = 500

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(CRMError):
    """Entrée invalide (format, vocabulaire, acteur inactif, remarque manquante...)"""
    status_code = 400


class NotFoundError(CRMError):
    """Ressource absente ou supprimée (soft delete)"""
    status_code = 404


class ConflictError(CRMError):
    """Doublon détecté par pré-contrôle, ou écriture concurrente perdue"""
    status_code = 409
