"""
Routes AOB (Application Onboarding) : applications, documents, QC
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from salesverse.container import Services
from salesverse.models.application import (
    ApplicationCreate,
    ApplicationPatch,
    ApplicationUpdate,
    BatchDocumentStatusUpdate,
    DocumentRegister,
)
from salesverse.routes.responses import check_id, get_services, ok, paginated

router = APIRouter(prefix="/aob", tags=["AOB"])


# ==================== APPLICATIONS ====================

@router.post("/application", status_code=201)
async def create_application(data: ApplicationCreate, services: Services = Depends(get_services)):
    application = await services.applications.create_application(data)
    return ok(application, "Application created successfully")


@router.get("/application")
async def list_applications(
    status: Optional[str] = None,
    search: Optional[str] = None,
    project_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    services: Services = Depends(get_services)
):
    """Applications avec leurs documents (null si aucun)"""
    if project_id:
        check_id(project_id, "project")
    result = await services.applications.list_applications(status, search, project_id, page, limit)
    return paginated(result, "Applications retrieved successfully")


@router.get("/application/qcHistoryList")
async def get_qc_history(document_id: str, services: Services = Depends(get_services)):
    check_id(document_id, "document")
    history = await services.applications.qc_history(document_id)
    return ok(history, "QC history retrieved successfully")


@router.get("/application/{application_id}")
async def get_application(application_id: str, services: Services = Depends(get_services)):
    application = await services.applications.get_application(application_id)
    return ok(application, "Application retrieved successfully")


@router.put("/application/{application_id}")
async def update_application(
    application_id: str,
    data: ApplicationUpdate,
    services: Services = Depends(get_services)
):
    application = await services.applications.update_application(application_id, data)
    return ok(application, "Application updated successfully")


@router.patch("/application/{application_id}")
async def patch_application(
    application_id: str,
    data: ApplicationPatch,
    services: Services = Depends(get_services)
):
    """
    - type=document    : renvoie l'application
    - type=application : change le statut ; approved + project_id crée l'agent
    """
    if data.project_id:
        check_id(data.project_id, "project")
    result = await services.applications.patch_application(application_id, data)

    if result["agent"]:
        return ok(result, "Application approved and agent created successfully")
    return ok(result["application"], "Application updated successfully")


# ==================== DOCUMENTS ====================

@router.post("/document", status_code=201)
async def register_document(data: DocumentRegister, services: Services = Depends(get_services)):
    document = await services.applications.register_document(data)
    return ok(document, "Document uploaded successfully")


@router.get("/document/{application_id}/{document_id}")
async def get_document_details(
    application_id: str,
    document_id: str,
    services: Services = Depends(get_services)
):
    check_id(document_id, "document")
    document = await services.applications.get_document_details(application_id, document_id)
    return ok(document, "Document details retrieved successfully")


@router.post("/document/batch-status")
async def batch_update_document_status(
    data: BatchDocumentStatusUpdate,
    services: Services = Depends(get_services)
):
    if data.project_id:
        check_id(data.project_id, "project")
    result = await services.applications.batch_update_document_status(data)
    return ok(result, "Documents status updated successfully")
