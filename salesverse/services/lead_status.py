"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Règles de statut Lead                                      ║
║                                                                              ║
║  PRIORITÉ (la première règle qui matche gagne):                              ║
║  1. progress == "New Lead Entry"                          -> Open            ║
║  2. disposition in {Not Interested, Wrong Number}         -> Discarded       ║
║  3. disposition in {Cannot Afford, Technical Issue}       -> Failed          ║
║  4. Interested + Ready to Buy + progress Documentation    -> Converted       ║
║  5. sinon                                                 -> Open            ║
║                                                                              ║
║  Le nom dépend UNIQUEMENT des entrées. id et updated_at sont neufs à chaque  ║
║  appel.                                                                      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional

from salesverse.config import new_id, now_iso
from salesverse.models.lead import LeadStatusName, LeadStatusRecord


NEW_LEAD_PROGRESS = "New Lead Entry"

DISCARDED_DISPOSITIONS = ("Not Interested", "Wrong Number")
FAILED_DISPOSITIONS = ("Cannot Afford", "Technical Issue")


def resolve_status_name(
    progress: Optional[str],
    disposition: Optional[str] = None,
    sub_disposition: Optional[str] = None
) -> LeadStatusName:
    """Partie pure de la dérivation"""
    if progress == NEW_LEAD_PROGRESS:
        return LeadStatusName.OPEN

    if disposition in DISCARDED_DISPOSITIONS:
        return LeadStatusName.DISCARDED

    if disposition in FAILED_DISPOSITIONS:
        return LeadStatusName.FAILED

    if (
        disposition == "Interested"
        and sub_disposition == "Ready to Buy"
        and progress == "Documentation"
    ):
        return LeadStatusName.CONVERTED

    # Combinaison non reconnue : Open (permissif)
    return LeadStatusName.OPEN


def derive_lead_status(
    progress: Optional[str],
    disposition: Optional[str] = None,
    sub_disposition: Optional[str] = None
) -> LeadStatusRecord:
    """Construit un nouvel enregistrement de statut"""
    return LeadStatusRecord(
        id=new_id(),
        name=resolve_status_name(progress, disposition, sub_disposition),
        updated_at=now_iso(),
        progress=progress,
        disposition=disposition,
        sub_disposition=sub_disposition,
    )
