"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Applications AOB + documents                               ║
║                                                                              ║
║  qc_discrepancy_list = cache des documents actuellement en "reject" :        ║
║  - reject (avec remarques) -> upsert par document_type                       ║
║  - tout autre statut       -> retrait de l'entrée du document_type           ║
║                                                                              ║
║  Batch : validation TOUT OU RIEN (aucune écriture si une remarque manque),   ║
║  puis écriture document par document (un document absent = échec local).    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import random
import time
from typing import List, Optional

from salesverse.config import new_id, now_iso, strip_mongo_id
from salesverse.errors import ConflictError, NotFoundError, ValidationError
from salesverse.models.application import (
    ApplicationCreate,
    ApplicationPatch,
    ApplicationStatus,
    ApplicationUpdate,
    BatchDocumentStatusUpdate,
    DocumentRegister,
    DocumentStatus,
    QcDiscrepancyEntry,
)
from salesverse.models.history import ChangeType, HistoryChange
from salesverse.services.application_approval import ApplicationApprovalService, outstanding_discrepancies
from salesverse.services.application_status import (
    derive_application_status,
    make_application_status_record,
    validate_application_status,
)
from salesverse.services.audit_trail import AuditTrailRecorder
from salesverse.services.filters import build_application_filter
from salesverse.services.pagination import paginate

logger = logging.getLogger("application_service")


def generate_application_id() -> str:
    """APP + epoch ms + 4 chiffres"""
    return f"APP{int(time.time() * 1000)}{random.randint(1000, 9999)}"


class ApplicationService:

    def __init__(self, db, approval: ApplicationApprovalService, audit: AuditTrailRecorder):
        self.applications = db.aob_applications
        self.documents = db.aob_documents
        self.document_history = db.aob_document_history
        self.approval = approval
        self.audit = audit

    # ==================== APPLICATIONS ====================

    async def _get_raw(self, application_id: str) -> dict:
        application = await self.applications.find_one(
            {"application_id": application_id, "is_deleted": {"$ne": True}}, {"_id": 0}
        )
        if not application:
            raise NotFoundError("Application not found")
        return application

    async def _check_duplicates(self, email: Optional[str], mobile: Optional[str], exclude: Optional[str] = None):
        """Email et mobile contrôlés séparément, les deux doublons sont remontés ensemble"""
        errors = []
        base = {"application_id": {"$ne": exclude}} if exclude else {}
        if email and await self.applications.find_one({**base, "email_address": email}, {"_id": 1}):
            errors.append("Email address already exists")
        if mobile and await self.applications.find_one({**base, "mobile_number": mobile}, {"_id": 1}):
            errors.append("Mobile number already exists")
        if errors:
            raise ConflictError(", ".join(errors), details=errors)

    async def _write(self, application: dict, update: dict) -> dict:
        """Écriture conditionnelle sur {application_id, version}"""
        update.setdefault("$inc", {})["version"] = 1
        updated = strip_mongo_id(await self.applications.find_one_and_update(
            {"application_id": application["application_id"], "version": application.get("version")},
            update,
            return_document=True,
        ))
        if updated:
            return updated

        if not await self.applications.count_documents({"application_id": application["application_id"]}):
            raise NotFoundError("Application not found")
        logger.warning(f"[AOB] Concurrent update lost on {application['application_id']}")
        raise ConflictError("Application was modified by another request, please retry")

    async def create_application(self, data: ApplicationCreate) -> dict:
        payload = data.model_dump(exclude_none=True)

        await self._check_duplicates(payload["email_address"], payload["mobile_number"])

        record = make_application_status_record(ApplicationStatus.APPLICATION_SUBMITTED)
        now = now_iso()
        application_doc = {
            "id": new_id(),
            "application_id": generate_application_id(),
            **payload,
            "application_status": ApplicationStatus.APPLICATION_SUBMITTED.value,
            "status_history": [record],
            "qc_discrepancy_list": [],
            "version": 1,
            "created_at": now,
            "updated_at": now,
        }
        await self.applications.insert_one(dict(application_doc))

        changes = [HistoryChange(field=f, new_value=v) for f, v in payload.items()]
        changes.append(HistoryChange(field="application_status", new_value=record["name"]))
        await self.audit.record(application_doc["application_id"], None, changes, ChangeType.CREATE)

        logger.info(f"[AOB] Application created {application_doc['application_id']} ({payload['email_address']})")
        return application_doc

    async def list_applications(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        project_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> dict:
        if status:
            validate_application_status(status)

        result = await paginate(
            self.applications,
            build_application_filter(status, search, project_id),
            page,
            limit,
        )

        ids = [a["application_id"] for a in result["data"]]
        documents = await self.documents.find(
            {"application_id": {"$in": ids}}, {"_id": 0}
        ).sort("created_at", 1).to_list(None) if ids else []

        by_application = {}
        for document in documents:
            by_application.setdefault(document["application_id"], []).append(document)

        for application in result["data"]:
            application["documents"] = by_application.get(application["application_id"]) or None

        return result

    async def get_application(self, application_id: str) -> dict:
        application = await self._get_raw(application_id)
        application["documents"] = await self.documents.find(
            {"application_id": application_id}, {"_id": 0}
        ).sort("created_at", 1).to_list(None)
        return application

    async def update_application(self, application_id: str, data: ApplicationUpdate) -> dict:
        changes = data.model_dump(exclude_unset=True)
        updated_by = changes.pop("updated_by", None)
        if not changes:
            raise ValidationError("No fields to update")

        application = await self._get_raw(application_id)

        await self._check_duplicates(
            changes.get("email_address") if changes.get("email_address") != application.get("email_address") else None,
            changes.get("mobile_number") if changes.get("mobile_number") != application.get("mobile_number") else None,
            exclude=application_id,
        )

        history = [HistoryChange(field=f, old_value=application.get(f), new_value=v) for f, v in changes.items()]

        updated = await self._write(application, {"$set": {**changes, "updated_at": now_iso()}})
        await self.audit.record(application_id, updated_by, history, ChangeType.UPDATE)

        logger.info(f"[AOB] Application updated {application_id} | fields={list(changes)}")
        return updated

    async def _set_status(
        self,
        application: dict,
        status: ApplicationStatus,
        remarks: Optional[str] = None,
        updated_by: Optional[str] = None,
        extra: Optional[dict] = None
    ) -> dict:
        """Changement de statut : $set + $push status_history dans la même écriture, puis audit"""
        fields = {"application_status": status.value, "updated_at": now_iso(), **(extra or {})}
        if remarks:
            fields["reject_remark"] = remarks
        if status == ApplicationStatus.APPROVED:
            fields["qc_discrepancy_list"] = await outstanding_discrepancies(self.documents, application)

        updated = await self._write(application, {
            "$set": fields,
            "$push": {"status_history": make_application_status_record(status, remarks)},
        })

        history = [
            HistoryChange(field=f, old_value=application.get(f), new_value=v)
            for f, v in fields.items()
            if f != "updated_at" and application.get(f) != v
        ]
        if not history:
            history = [HistoryChange(field="application_status", old_value=status.value, new_value=status.value)]
        await self.audit.record(application["application_id"], updated_by, history, ChangeType.UPDATE)

        logger.info(
            f"[AOB] {application['application_id']} status "
            f"{application.get('application_status')} -> {status.value}"
        )
        return updated

    async def patch_application(self, application_id: str, data: ApplicationPatch) -> dict:
        """
        type=document    : lecture seule, renvoie l'application
        type=application : changement de statut (vocabulaire strict)
        approved + projet -> création de l'agent
        """
        if data.type == "document":
            return {"application": await self._get_raw(application_id), "agent": None}

        status = validate_application_status(data.status)

        if status == ApplicationStatus.APPROVED and data.project_id:
            return await self.approval.process_approved_application(
                application_id, data.project_id, data.remarks, data.updated_by
            )

        application = await self._get_raw(application_id)
        extra = {"project_id": data.project_id} if data.project_id else None
        updated = await self._set_status(application, status, data.remarks, data.updated_by, extra)
        return {"application": updated, "agent": None}

    # ==================== DOCUMENTS ====================

    async def _append_document_history(self, document: dict, updated_by: Optional[str] = None) -> dict:
        entry = {
            "id": new_id(),
            "document_id": document["document_id"],
            "application_id": document["application_id"],
            "document_type": document["document_type"],
            "document_format": document["document_format"],
            "document_name": document["document_name"],
            "s3_key": document.get("s3_key"),
            "presigned_url": document.get("presigned_url"),
            "document_status": document["document_status"],
            "remarks": document.get("remarks"),
            "changed_by": updated_by or "system",
            "created_at": now_iso(),
        }
        await self.document_history.insert_one(dict(entry))
        return entry

    async def _upsert_discrepancy(self, application_id: str, document: dict, remarks: str) -> None:
        entry = QcDiscrepancyEntry(
            document_type=document["document_type"],
            document_format=document["document_format"],
            document_name=document["document_name"],
            remarks=remarks,
            created_at=now_iso(),
        ).model_dump()

        # Remplacement sur place si le type est déjà présent
        replaced = await self.applications.update_one(
            {"application_id": application_id, "qc_discrepancy_list.document_type": entry["document_type"]},
            {"$set": {f"qc_discrepancy_list.$.{k}": v for k, v in entry.items()}},
        )
        if replaced.matched_count:
            return

        await self.applications.update_one(
            {"application_id": application_id, "qc_discrepancy_list.document_type": {"$ne": entry["document_type"]}},
            {"$push": {"qc_discrepancy_list": entry}},
        )

    async def _remove_discrepancy(self, application_id: str, document_type: str) -> None:
        await self.applications.update_one(
            {"application_id": application_id},
            {"$pull": {"qc_discrepancy_list": {"document_type": document_type}}},
        )

    async def register_document(self, data: DocumentRegister) -> dict:
        """
        Enregistre les métadonnées d'un fichier déjà déposé.
        Un même document_type est remplacé (document_id conservé) et repasse en documentSubmitted.
        """
        await self._get_raw(data.application_id)

        now = now_iso()
        fields = {
            **data.model_dump(),
            "document_status": DocumentStatus.DOCUMENT_SUBMITTED.value,
            "remarks": None,
            "updated_at": now,
        }
        document = strip_mongo_id(await self.documents.find_one_and_update(
            {"application_id": data.application_id, "document_type": data.document_type},
            {"$set": fields, "$setOnInsert": {"id": new_id(), "document_id": new_id(), "created_at": now}},
            upsert=True,
            return_document=True,
        ))

        await self._append_document_history(document)
        await self._remove_discrepancy(data.application_id, data.document_type)

        logger.info(f"[AOB] Document {document['document_type']} registered for {data.application_id}")
        return document

    async def get_document_details(self, application_id: str, document_id: str) -> dict:
        document = await self.documents.find_one(
            {"application_id": application_id, "document_id": document_id}, {"_id": 0}
        )
        if not document:
            raise NotFoundError("Document not found")
        return document

    async def qc_history(self, document_id: str) -> List[dict]:
        return await self.document_history.find(
            {"document_id": document_id}, {"_id": 0}
        ).sort("created_at", -1).to_list(None)

    async def batch_update_document_status(self, data: BatchDocumentStatusUpdate) -> dict:
        application = await self._get_raw(data.application_id)
        updated_by = data.updated_by

        missing_remarks = [
            d.document_id for d in data.documents
            if d.document_status == DocumentStatus.REJECT and not (d.remarks and d.remarks.strip())
        ]
        if missing_remarks:
            raise ValidationError(
                f"Remarks are required for rejected document: {', '.join(missing_remarks)}",
                details=missing_remarks
            )

        if data.project_id and data.project_id != application.get("project_id"):
            await self._write(application, {"$set": {"project_id": data.project_id, "updated_at": now_iso()}})
            await self.audit.record(data.application_id, updated_by, [
                HistoryChange(field="project_id", old_value=application.get("project_id"), new_value=data.project_id),
            ])

        results, applied = [], []
        for item in data.documents:
            document = strip_mongo_id(await self.documents.find_one_and_update(
                {"document_id": item.document_id, "application_id": data.application_id},
                {"$set": {
                    "document_status": item.document_status.value,
                    "remarks": item.remarks,
                    "updated_at": now_iso(),
                }},
                return_document=True,
            ))
            if not document:
                results.append({"document_id": item.document_id, "success": False, "message": "Document not found"})
                continue

            await self._append_document_history(document, updated_by)

            if item.document_status == DocumentStatus.REJECT:
                await self._upsert_discrepancy(data.application_id, document, item.remarks)
            else:
                await self._remove_discrepancy(data.application_id, document["document_type"])

            applied.append(item.document_status)
            results.append({"document_id": item.document_id, "success": True, "status": item.document_status.value})

        logger.info(
            f"[AOB] Batch {data.application_id}: "
            f"{len(applied)}/{len(data.documents)} document(s) updated"
        )

        agent = None
        derived = derive_application_status(applied) if data.update_application_status else None
        if derived:
            # Relire : version et liste ont bougé pendant le batch
            application = await self._get_raw(data.application_id)
            project_id = data.project_id or application.get("project_id")

            if derived.value == application.get("application_status"):
                logger.debug(f"[AOB] {data.application_id} already {derived.value}")
            elif derived == ApplicationStatus.APPROVED and project_id:
                approval = await self.approval.process_approved_application(
                    data.application_id, project_id, approved_by=updated_by
                )
                agent = approval["agent"]
            else:
                await self._set_status(application, derived, updated_by=updated_by)

        application = await self._get_raw(data.application_id)
        return {
            "application_id": data.application_id,
            "application_status": application["application_status"],
            "qc_discrepancy_list": application.get("qc_discrepancy_list", []),
            "results": results,
            "agent": agent,
        }
