"""
Routes pour les Leads
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from salesverse.container import Services
from salesverse.models.lead import (
    LEAD_DISPOSITION_OPTIONS,
    LEAD_PROGRESS_OPTIONS,
    LEAD_SUB_DISPOSITION_OPTIONS,
    VALID_LEAD_STATUSES,
    AdvancedLeadFilter,
    BulkLeadUpload,
    LeadCreate,
    LeadFilter,
    LeadOwnershipChange,
    LeadUpdate,
)
from salesverse.routes.responses import check_id, get_services, ok, paginated

router = APIRouter(prefix="/leads", tags=["Leads"])


@router.get("/options")
async def get_lead_options():
    """Catalogues progress / disposition / sub-disposition"""
    return ok({
        "lead_progress": LEAD_PROGRESS_OPTIONS,
        "lead_disposition": LEAD_DISPOSITION_OPTIONS,
        "lead_sub_disposition": LEAD_SUB_DISPOSITION_OPTIONS,
        "lead_status": VALID_LEAD_STATUSES,
    })


@router.post("", status_code=201)
async def create_lead(data: LeadCreate, services: Services = Depends(get_services)):
    lead = await services.leads.create(data)
    return ok(lead, "Lead created successfully")


@router.post("/bulk")
async def bulk_create_leads(data: BulkLeadUpload, services: Services = Depends(get_services)):
    """
    Import de lignes déjà parsées.
    Chaque ligne est traitée indépendamment, le résultat liste succès et échecs.
    """
    if data.project_id:
        check_id(data.project_id, "project")
    result = await services.leads.bulk_create(data.rows, data.project_id)
    return ok(result, "Bulk upload processed")


@router.get("/search/filter")
async def list_leads(
    filter: LeadFilter = LeadFilter.ALL,
    created_by: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    services: Services = Depends(get_services)
):
    """
    Liste rapide.
    - filter: today | all | Open | Converted | Discarded | Failed
    - created_by: leads créés par OU affectés à cet agent
    """
    if created_by:
        check_id(created_by, "agent")
    result = await services.leads.list_filtered(filter, page, limit, created_by, search)
    return paginated(result, "Leads retrieved successfully")


@router.get("/advanced/filter")
async def advanced_filter_leads(
    criteria: AdvancedLeadFilter = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    services: Services = Depends(get_services)
):
    if criteria.owner_id:
        check_id(criteria.owner_id, "agent")
    result = await services.leads.advanced_filter(criteria, page, limit)
    return paginated(result, "Leads retrieved successfully")


@router.get("/status/{agent_id}")
async def get_lead_status_counts(agent_id: str, services: Services = Depends(get_services)):
    check_id(agent_id, "agent")
    counts = await services.leads.status_counts(agent_id)
    return ok(counts, "Lead status counts retrieved successfully")


@router.get("/{lead_id}")
async def get_lead(lead_id: str, services: Services = Depends(get_services)):
    check_id(lead_id, "lead")
    lead = await services.leads.get(lead_id)
    return ok(lead, "Lead retrieved successfully")


@router.put("/{lead_id}")
async def update_lead(lead_id: str, data: LeadUpdate, services: Services = Depends(get_services)):
    check_id(lead_id, "lead")
    lead = await services.leads.update(lead_id, data)
    return ok(lead, "Lead updated successfully")


@router.put("/{lead_id}/ownership")
async def change_lead_ownership(
    lead_id: str,
    data: LeadOwnershipChange,
    services: Services = Depends(get_services)
):
    check_id(lead_id, "lead")
    lead = await services.leads.change_ownership(lead_id, data)
    return ok(lead, "Lead ownership changed successfully")


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: str,
    deleted_by: Optional[str] = None,
    services: Services = Depends(get_services)
):
    """Soft delete"""
    check_id(lead_id, "lead")
    result = await services.leads.delete(lead_id, deleted_by)
    return ok(result, "Lead deleted successfully")


@router.get("/{lead_id}/history")
async def get_lead_history(
    lead_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    services: Services = Depends(get_services)
):
    check_id(lead_id, "lead")
    result = await services.leads.history(lead_id, page, limit)
    return paginated(result, "Lead history retrieved successfully")
