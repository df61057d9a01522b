"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Cycle de vie des leads                                     ║
║                                                                              ║
║  SEUL écrivain de current_lead_status / lead_status_history / lead_history.  ║
║                                                                              ║
║  Chaque écriture :                                                           ║
║  1. valide les agents référencés (tout ou rien)                              ║
║  2. écrit le lead en UNE opération conditionnelle sur {id, version}          ║
║  3. enregistre l'audit champ par champ                                       ║
║  4. notifie (best-effort, tâche de fond)                                     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import List, Optional

from pydantic import ValidationError as SchemaError

from salesverse.config import day_bounds, new_id, now_iso, strip_mongo_id
from salesverse.errors import CRMError, ConflictError, NotFoundError, ValidationError
from salesverse.models.agent import ref_id
from salesverse.models.history import ChangeType, HistoryChange
from salesverse.models.lead import (
    ACTOR_FIELDS,
    STATUS_FIELDS,
    VALID_LEAD_STATUSES,
    AdvancedLeadFilter,
    LeadCreate,
    LeadFilter,
    LeadOwnershipChange,
    LeadUpdate,
)
from salesverse.services.agent_directory import AgentDirectory
from salesverse.services.audit_trail import AuditTrailRecorder
from salesverse.services.filters import (
    NOT_DELETED,
    build_advanced_lead_filter,
    build_lead_filter,
    lead_sort,
    owned_by,
)
from salesverse.services.lead_status import derive_lead_status
from salesverse.services.notifications import NotificationDispatcher
from salesverse.services.pagination import paginate

logger = logging.getLogger("lead_service")


class LeadService:

    def __init__(self, db, agents: AgentDirectory, notifier: NotificationDispatcher):
        self.leads = db.leads
        self.agents = agents
        self.notifier = notifier
        self.audit = AuditTrailRecorder(db.lead_history, "lead_id")

    # ==================== LECTURE ====================

    async def _get_raw(self, lead_id: str) -> dict:
        lead = await self.leads.find_one({"id": lead_id, **NOT_DELETED}, {"_id": 0})
        if not lead:
            raise NotFoundError("Lead not found")
        return lead

    async def _resolve(self, leads: List[dict]) -> List[dict]:
        """Remplace les ids d'agents par leur résumé. Un id inconnu reste tel quel."""
        ids = {ref_id(lead.get(f)) for lead in leads for f in ACTOR_FIELDS}
        summaries = await self.agents.summaries(i for i in ids if i)
        for lead in leads:
            for field in ACTOR_FIELDS:
                agent = summaries.get(ref_id(lead.get(field)))
                if agent:
                    lead[field] = agent.model_dump()
        return leads

    async def get(self, lead_id: str) -> dict:
        lead = await self._get_raw(lead_id)
        return (await self._resolve([lead]))[0]

    async def list_filtered(
        self,
        lead_filter: LeadFilter = LeadFilter.ALL,
        page: int = 1,
        limit: int = 10,
        agent_id: Optional[str] = None,
        search: Optional[str] = None
    ) -> dict:
        query = build_lead_filter(agent_id, lead_filter, search)
        result = await paginate(self.leads, query, page, limit)
        await self._resolve(result["data"])
        return result

    async def advanced_filter(self, criteria: AdvancedLeadFilter, page: int = 1, limit: int = 10) -> dict:
        query = build_advanced_lead_filter(criteria)
        result = await paginate(self.leads, query, page, limit, sort=lead_sort(criteria.sort_by))
        await self._resolve(result["data"])
        return result

    async def history(self, lead_id: str, page: int = 1, limit: int = 10) -> dict:
        await self._get_raw(lead_id)
        result = await self.audit.list_for(lead_id, page, limit)

        summaries = await self.agents.summaries({e["changed_by"] for e in result["data"]})
        for entry in result["data"]:
            agent = summaries.get(entry["changed_by"])
            if agent:
                entry["changed_by"] = agent.model_dump()
        return result

    async def status_counts(self, agent_id: str) -> dict:
        """Compteurs par statut pour les leads créés par / affectés à l'agent"""
        base = {**NOT_DELETED, **owned_by(agent_id)}

        counts = {}
        for status in VALID_LEAD_STATUSES:
            counts[status] = await self.leads.count_documents({**base, "current_lead_status.name": status})

        counts["All"] = await self.leads.count_documents(base)

        start, end = day_bounds()
        counts["For Today"] = await self.leads.count_documents({**base, "created_at": {"$gte": start, "$lt": end}})
        return counts

    # ==================== ÉCRITURE ====================

    async def _write(self, lead: dict, update: dict) -> dict:
        """
        Écriture conditionnelle sur la version lue.
        Raises:
            NotFoundError si le lead a disparu (suppression concurrente)
            ConflictError si un autre écrivain est passé entre la lecture et l'écriture
        """
        update.setdefault("$inc", {})["version"] = 1
        updated = strip_mongo_id(await self.leads.find_one_and_update(
            {"id": lead["id"], "version": lead.get("version"), **NOT_DELETED},
            update,
            return_document=True,
        ))
        if updated:
            return updated

        if not await self.leads.count_documents({"id": lead["id"], **NOT_DELETED}):
            raise NotFoundError("Lead not found")
        logger.warning(f"[LEAD] Concurrent update lost on {lead['id']} (version {lead.get('version')})")
        raise ConflictError("Lead was modified by another request, please retry")

    async def _check_duplicate(
        self,
        email: Optional[str],
        phone: Optional[str],
        exclude: Optional[str] = None
    ) -> None:
        """Un autre lead actif avec le même email ou numéro -> ConflictError"""
        clauses = []
        if email:
            clauses.append({"email_address": email})
        if phone:
            clauses.append({"primary_number": phone})
        if not clauses:
            return

        query = {"$or": clauses, **NOT_DELETED}
        if exclude:
            query["id"] = {"$ne": exclude}
        if await self.leads.find_one(query, {"_id": 0, "id": 1}):
            raise ConflictError("Lead already exists")

    async def create(self, data: LeadCreate) -> dict:
        payload = data.model_dump(exclude_none=True)

        await self.agents.validate_actors(payload[f] for f in ACTOR_FIELDS)

        await self._check_duplicate(payload["email_address"], payload["primary_number"])

        status = derive_lead_status(
            payload.get("lead_progress"),
            payload.get("lead_disposition"),
            payload.get("lead_sub_disposition"),
        ).model_dump(mode="json")

        now = now_iso()
        lead_doc = {
            "id": new_id(),
            **payload,
            "allocated_at": now,
            "current_lead_status": status,
            "lead_status_history": [status],
            "version": 1,
            "is_deleted": False,
            "deleted_at": None,
            "created_at": now,
            "updated_at": now,
        }
        await self.leads.insert_one(dict(lead_doc))

        changes = [HistoryChange(field=f, new_value=v) for f, v in payload.items()]
        changes.append(HistoryChange(field="current_lead_status", new_value=status["name"]))
        await self.audit.record(lead_doc["id"], payload["created_by"], changes, ChangeType.CREATE)

        logger.info(f"[LEAD] Lead created {lead_doc['id']} status={status['name']} owner={payload['allocated_to']}")

        self.notifier.lead_created(lead_doc)
        return (await self._resolve([lead_doc]))[0]

    async def update(self, lead_id: str, data: LeadUpdate) -> dict:
        changes = data.model_dump(exclude_unset=True)
        updated_by = changes.pop("updated_by", None)
        if not changes:
            raise ValidationError("No fields to update")

        lead = await self._get_raw(lead_id)

        actors = [changes[f] for f in ACTOR_FIELDS if f in changes]
        if actors:
            await self.agents.validate_actors(actors)

        await self._check_duplicate(
            changes.get("email_address") if changes.get("email_address") != lead.get("email_address") else None,
            changes.get("primary_number") if changes.get("primary_number") != lead.get("primary_number") else None,
            exclude=lead_id,
        )

        # Snapshot avant modification
        history = [HistoryChange(field=f, old_value=lead.get(f), new_value=v) for f, v in changes.items()]

        now = now_iso()
        update = {"$set": {**changes, "updated_at": now}}
        if "allocated_to" in changes:
            update["$set"]["allocated_at"] = now
            history.append(HistoryChange(field="allocated_at", old_value=lead.get("allocated_at"), new_value=now))

        old_status = (lead.get("current_lead_status") or {}).get("name")
        new_status = None
        if any(f in changes for f in STATUS_FIELDS):
            merged = {f: changes[f] if f in changes else lead.get(f) for f in STATUS_FIELDS}
            new_status = derive_lead_status(
                merged["lead_progress"],
                merged["lead_disposition"],
                merged["lead_sub_disposition"],
            ).model_dump(mode="json")

            update["$set"]["current_lead_status"] = new_status
            update["$push"] = {"lead_status_history": new_status}
            history.append(HistoryChange(field="current_lead_status", old_value=old_status, new_value=new_status["name"]))

        updated = await self._write(lead, update)

        await self.audit.record(lead_id, updated_by, history, ChangeType.UPDATE)

        logger.info(
            f"[LEAD] Lead updated {lead_id} | fields={list(changes)}"
            + (f" | status {old_status} -> {new_status['name']}" if new_status else "")
        )

        if new_status:
            self.notifier.lead_status_updated(updated, old_status, new_status["name"], updated_by)
        if "allocated_to" in changes and changes["allocated_to"] != lead.get("allocated_to"):
            self.notifier.lead_allocated(updated, lead.get("allocated_to"), updated_by)

        return (await self._resolve([updated]))[0]

    async def change_ownership(self, lead_id: str, data: LeadOwnershipChange) -> dict:
        await self.agents.validate_actors([data.allocated_to, data.allocated_by])

        lead = await self._get_raw(lead_id)

        now = now_iso()
        updated = await self._write(lead, {"$set": {
            "allocated_to": data.allocated_to,
            "allocated_by": data.allocated_by,
            "allocated_at": now,
            "updated_at": now,
        }})

        await self.audit.record(lead_id, data.allocated_by, [
            HistoryChange(field="allocated_to", old_value=lead.get("allocated_to"), new_value=data.allocated_to),
            HistoryChange(field="allocated_by", old_value=lead.get("allocated_by"), new_value=data.allocated_by),
            HistoryChange(field="allocated_at", old_value=lead.get("allocated_at"), new_value=now),
        ], ChangeType.UPDATE)

        logger.info(f"[LEAD] Ownership {lead_id}: {lead.get('allocated_to')} -> {data.allocated_to}")

        self.notifier.lead_allocated(updated, lead.get("allocated_to"), data.allocated_by)
        return (await self._resolve([updated]))[0]

    async def delete(self, lead_id: str, deleted_by: Optional[str] = None) -> dict:
        """Soft delete : le lead reste en base mais n'est plus lisible"""
        lead = await self._get_raw(lead_id)

        now = now_iso()
        deleted = await self._write(lead, {"$set": {"is_deleted": True, "deleted_at": now, "updated_at": now}})

        await self.audit.record(lead_id, deleted_by, [
            HistoryChange(field="is_deleted", old_value=False, new_value=True),
        ], ChangeType.DELETE)

        logger.info(f"[LEAD] Lead soft-deleted {lead_id} by={deleted_by or 'system'}")
        return {"id": deleted["id"], "deleted_at": deleted["deleted_at"]}

    # ==================== IMPORT ====================

    async def bulk_create(self, rows: List[dict], project_id: Optional[str] = None) -> dict:
        """
        Chaque ligne passe par create() indépendamment.
        Une ligne en échec est reportée, elle n'interrompt jamais le lot.
        """
        created, errors = [], []

        for index, row in enumerate(rows, start=1):
            if project_id and not row.get("project_id"):
                row = {**row, "project_id": project_id}
            try:
                lead = await self.create(LeadCreate(**row))
                created.append({
                    "lead_id": lead["id"],
                    "email": lead["email_address"],
                    "name": f"{lead['first_name']} {lead['last_name']}",
                    "status": lead["current_lead_status"]["name"],
                })
            except SchemaError as e:
                first = e.errors()[0]
                errors.append({
                    "row": index,
                    "error": first["msg"],
                    "field": ".".join(str(p) for p in first["loc"]) or None,
                })
            except CRMError as e:
                errors.append({"row": index, "error": e.message, "field": None})
            except Exception:
                logger.exception(f"[LEAD] Bulk row {index} failed unexpectedly")
                errors.append({"row": index, "error": "Internal error", "field": None})

        logger.info(f"[LEAD] Bulk import: {len(created)} created, {len(errors)} failed out of {len(rows)}")
        return {
            "total_processed": len(rows),
            "success_count": len(created),
            "failure_count": len(errors),
            "errors": errors,
            "created_leads": created,
        }
