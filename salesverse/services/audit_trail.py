"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Audit Trail                                                ║
║                                                                              ║
║  UNE entrée par champ modifié (pas une par mutation).                        ║
║  Append-only : jamais de lecture préalable, jamais de mise à jour,           ║
║  jamais de suppression.                                                      ║
║                                                                              ║
║  Rejouées dans l'ordre (created_at, sequence), les entrées reconstruisent    ║
║  chaque valeur historique d'un champ.                                        ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel

from salesverse.config import new_id, now_iso
from salesverse.errors import ValidationError
from salesverse.models.history import ChangeType, HistoryChange
from salesverse.services.pagination import paginate

logger = logging.getLogger("audit_trail")


def plain_value(value: Any) -> Any:
    """Valeur stockable en BSON (enums, modèles pydantic, listes, dicts)"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: plain_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [plain_value(v) for v in value]
    return value


class AuditTrailRecorder:
    """
    Enregistre l'historique d'un type d'entité.

    Args:
        collection: collection motor (lead_history, application_history...)
        entity_key: nom du champ portant l'id de l'entité (lead_id, application_id...)
    """

    def __init__(self, collection, entity_key: str):
        self.collection = collection
        self.entity_key = entity_key

    async def record(
        self,
        entity_id: str,
        actor_id: Optional[str],
        changes: List[HistoryChange],
        change_type: ChangeType = ChangeType.UPDATE
    ) -> List[dict]:
        """
        Écrit une entrée par changement. Toutes partagent change_type,
        batch_id et created_at.

        Raises:
            ValidationError si changes est vide ou change_type inconnu
        """
        if not changes:
            raise ValidationError(f"No changes to record for {self.entity_key}={entity_id}")

        change_type = ChangeType(change_type)
        batch_id = new_id()
        created_at = now_iso()

        entries = [
            {
                "id": new_id(),
                self.entity_key: entity_id,
                "field": change.field,
                "old_value": plain_value(change.old_value),
                "new_value": plain_value(change.new_value),
                "changed_by": actor_id or "system",
                "change_type": change_type.value,
                "batch_id": batch_id,
                "sequence": position,
                "created_at": created_at,
            }
            for position, change in enumerate(changes)
        ]

        # insert_many ajoute _id aux dicts passés
        await self.collection.insert_many([dict(e) for e in entries])

        logger.info(
            f"[AUDIT] {change_type.value} {self.entity_key}={entity_id} | "
            f"{len(entries)} field(s) | by={actor_id or 'system'}"
        )
        return entries

    async def list_for(self, entity_id: str, page: int = 1, limit: int = 10) -> dict:
        """Historique paginé, le plus récent en premier"""
        return await paginate(
            self.collection,
            {self.entity_key: entity_id},
            page,
            limit,
            sort=[("created_at", -1), ("sequence", -1)],
        )

    async def replay(self, entity_id: str) -> List[dict]:
        """Toutes les entrées dans l'ordre chronologique"""
        return await self.collection.find(
            {self.entity_key: entity_id}, {"_id": 0}
        ).sort([("created_at", 1), ("sequence", 1)]).to_list(None)
