"""
Règles de statut AOB.

Contrairement aux leads, le vocabulaire est strict : toute valeur hors
VALID_APPLICATION_STATUSES est refusée.
"""

from typing import Iterable, Optional

from salesverse.config import new_id, now_iso
from salesverse.errors import ValidationError
from salesverse.models.application import (
    ApplicationStatus,
    DocumentStatus,
    VALID_APPLICATION_STATUSES,
)


def validate_application_status(status) -> ApplicationStatus:
    """Retourne l'ApplicationStatus ou lève ValidationError"""
    value = status.value if isinstance(status, ApplicationStatus) else status
    if value not in VALID_APPLICATION_STATUSES:
        raise ValidationError(
            "Invalid status value",
            details=[f"Allowed statuses: {', '.join(VALID_APPLICATION_STATUSES)}"]
        )
    return ApplicationStatus(value)


def derive_application_status(document_statuses: Iterable) -> Optional[ApplicationStatus]:
    """
    Statut agrégé d'un batch de documents.
    - au moins un "reject" -> returned
    - tous "approve"       -> approved
    - sinon None (statut inchangé)

    Ne regarde que le batch fourni, pas l'ensemble des documents de l'application.
    """
    statuses = [
        s.value if isinstance(s, DocumentStatus) else s
        for s in document_statuses
    ]
    if not statuses:
        return None
    if DocumentStatus.REJECT.value in statuses:
        return ApplicationStatus.RETURNED
    if all(s == DocumentStatus.APPROVE.value for s in statuses):
        return ApplicationStatus.APPROVED
    return None


def make_application_status_record(status: ApplicationStatus, remarks: Optional[str] = None) -> dict:
    """Entrée ajoutée à status_history"""
    record = {
        "id": new_id(),
        "name": status.value,
        "updated_at": now_iso(),
    }
    if remarks:
        record["remarks"] = remarks
    return record
