"""
Leads API Endpoints.

Capture, list, update and export leads. Agents work with the leads they
captured (or are assigned); managers see and manage all leads.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from api.dependencies import get_lead_repository, get_principal
from api.models import (
    BankAccountRequest,
    BankDetailsResponse,
    CallNoteRequest,
    CallNoteResponse,
    CaptureResponse,
    LeadCaptureRequest,
    LeadListResponse,
    LeadResponse,
    ReassignRequest,
    StatusUpdateRequest,
)
from domain.bank_details import BankDetails
from domain.lead import LeadStatus
from domain.user import Principal
from repositories.lead_repository import LeadRepository
from services import lead_service
from services.agent_service import agent_names, load_agents
from services.auth_service import require_manager
from services.csv_export_service import export_filename, generate_leads_csv
from services.reporting_service import DateRange, LeadFilters, filter_leads

router = APIRouter()


def _filters(
    search: str = Query("", description="Name, ID number, cell number or lead number"),
    status: str = Query("all", description="Lead status or 'all'"),
    service: str = Query("all", description="Service id or 'all'"),
    agent: str = Query("all", description="Agent user id or 'all'"),
    date_range: DateRange = Query(DateRange.ALL, alias="dateRange"),
) -> LeadFilters:
    try:
        return LeadFilters(date_range=date_range, agent=agent, service=service, status=status, search=search)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status filter: '{status}'")


@router.get("/leads", response_model=LeadListResponse, summary="List Leads")
def list_leads(
    filters: LeadFilters = Depends(_filters),
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    """
    Leads visible to the caller, newest first, narrowed by the filters.

    A backend read failure returns an empty list with `error` set rather than
    an error status.
    """
    leads = filter_leads(lead_service.visible_leads(principal, repo.leads), filters, repo.now())
    return LeadListResponse(
        items=[LeadResponse.from_domain(lead) for lead in leads],
        total_count=len(leads),
        error=repo.error,
    )


@router.post("/leads", response_model=CaptureResponse, status_code=201, summary="Capture Lead")
def capture_lead(
    request: LeadCaptureRequest,
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    """
    Capture a new lead, numbered `LEAD-<year>-<NNNN>`, with optional bank details.

    When the lead is saved but the bank details are not, the response is still
    201 with `bankDetailsSaved: false`.
    """
    try:
        draft = request.to_draft(principal.user_id)
        bank_account = request.bank_details.to_domain() if request.bank_details else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    result = lead_service.capture_lead(repo, principal, draft, bank_account)

    if result.bank_details_saved:
        message = f"Lead {result.lead.lead_number} captured successfully!"
    else:
        message = "Lead saved, but banking details failed. Please update later."
    return CaptureResponse(
        lead=LeadResponse.from_domain(result.lead),
        bank_details_saved=result.bank_details_saved,
        message=message,
    )


@router.get("/leads/export.csv", response_class=Response, summary="Export Leads CSV")
def export_leads_csv(
    filters: LeadFilters = Depends(_filters),
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    """Download the currently filtered lead list as `leads-export-<date>.csv`. Manager only."""
    require_manager(principal)
    leads = filter_leads(repo.leads, filters, repo.now())
    names = agent_names(load_agents(repo.client))
    return Response(
        content=generate_leads_csv(leads, names),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={export_filename('leads-export', 'csv', repo.now().date())}"
        },
    )


@router.get("/leads/{lead_id}", response_model=LeadResponse, summary="Get Lead")
def get_lead(
    lead_id: UUID,
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    lead = lead_service.load_lead(repo, lead_id)
    lead_service.ensure_can_work_lead(principal, lead)
    return LeadResponse.from_domain(lead)


@router.patch("/leads/{lead_id}/status", response_model=LeadResponse, summary="Update Lead Status")
def update_status(
    lead_id: UUID,
    request: StatusUpdateRequest,
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    lead_service.change_status(repo, principal, lead_id, LeadStatus(request.status))
    return LeadResponse.from_domain(lead_service.load_lead(repo, lead_id))


@router.patch("/leads/{lead_id}/assignment", response_model=LeadResponse, summary="Reassign Lead")
def reassign(
    lead_id: UUID,
    request: ReassignRequest,
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    lead_service.reassign_lead(repo, principal, lead_id, request.assigned_to)
    return LeadResponse.from_domain(lead_service.load_lead(repo, lead_id))


@router.post(
    "/leads/{lead_id}/notes",
    response_model=CallNoteResponse,
    status_code=201,
    summary="Add Call Note",
)
def add_note(
    lead_id: UUID,
    request: CallNoteRequest,
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    note = lead_service.append_call_note(repo, principal, lead_id, request.note)
    return CallNoteResponse.from_domain(note)


@router.delete("/leads/{lead_id}", status_code=204, summary="Delete Lead")
def delete_lead(
    lead_id: UUID,
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    lead_service.delete_lead(repo, principal, lead_id)
    return Response(status_code=204)


@router.get(
    "/leads/{lead_id}/bank-details",
    response_model=Optional[BankDetailsResponse],
    summary="Get Bank Details",
)
def get_bank_details(
    lead_id: UUID,
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    """Bank details of a lead; `null` when none are stored or they cannot be read."""
    lead = lead_service.load_lead(repo, lead_id)
    details = lead_service.read_bank_details(repo, principal, lead)
    return BankDetailsResponse.from_domain(details) if details else None


@router.put("/leads/{lead_id}/bank-details", response_model=BankDetailsResponse, summary="Save Bank Details")
def save_bank_details(
    lead_id: UUID,
    request: BankAccountRequest,
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    lead = lead_service.load_lead(repo, lead_id)
    try:
        details = BankDetails.for_lead(lead.lead_id, request.to_domain(), principal.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    lead_service.attach_bank_details(repo, principal, lead, details)
    return BankDetailsResponse.from_domain(details)
