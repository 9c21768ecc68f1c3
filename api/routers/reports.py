"""
Reports API Endpoints.

Dashboards, filtered reports and report export. All figures are derived from
the lead collection loaded for the request.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from api.dependencies import get_lead_repository, get_principal
from domain.user import Principal
from repositories.lead_repository import LeadRepository
from services.agent_service import load_agents
from services.auth_service import require_manager
from services.csv_export_service import export_filename, generate_report_json
from services.reporting_service import (
    DateRange,
    LeadFilters,
    Report,
    agent_dashboard,
    build_report,
    manager_dashboard,
)

router = APIRouter()


def _report(
    repo: LeadRepository,
    date_range: DateRange,
    agent: str,
    service: str,
    status: str,
) -> Report:
    try:
        filters = LeadFilters(date_range=date_range, agent=agent, service=service, status=status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status filter: '{status}'")
    return build_report(repo.leads, load_agents(repo.client), filters, repo.now())


@router.get("/dashboard", summary="Dashboard")
def dashboard(
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    """
    Manager dashboard for managers, personal dashboard for agents.

    `error` is set when leads could not be loaded; figures are then zero.
    """
    if principal.is_manager:
        agents = load_agents(repo.client, active_only=True)
        data = manager_dashboard(repo.leads, agents, repo.now()).to_dict()
    else:
        data = agent_dashboard(repo.leads, principal.user_id, repo.now()).to_dict()
    data["error"] = repo.error
    return data


@router.get("/reports", summary="Conversion, Revenue and Source Report")
def report(
    date_range: DateRange = Query(DateRange.ALL, alias="dateRange"),
    agent: str = Query("all"),
    service: str = Query("all"),
    status: str = Query("all"),
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    require_manager(principal)
    return _report(repo, date_range, agent, service, status).to_dict()


@router.get("/reports/export.json", response_class=Response, summary="Export Report JSON")
def export_report(
    date_range: DateRange = Query(DateRange.ALL, alias="dateRange"),
    agent: str = Query("all"),
    service: str = Query("all"),
    status: str = Query("all"),
    principal: Principal = Depends(get_principal),
    repo: LeadRepository = Depends(get_lead_repository),
):
    """Download the report as `report-<date>.json`."""
    require_manager(principal)
    content = generate_report_json(_report(repo, date_range, agent, service, status))
    return Response(
        content=content,
        media_type="application/json",
        headers={
            "Content-Disposition": f"attachment; filename={export_filename('report', 'json', repo.now().date())}"
        },
    )
