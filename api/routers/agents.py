"""
Agents API Endpoints.

Manager-only agent administration. Agents are deactivated, never deleted.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from supabase import Client

from api.dependencies import get_client, get_principal
from api.models import AgentCreateRequest, AgentStatusResponse, AgentUpdateRequest, UserResponse
from domain.user import Principal
from services.agent_service import load_agents, provision_agent, toggle_agent_active, update_agent
from services.auth_service import require_manager

router = APIRouter()


@router.get("/agents", response_model=List[UserResponse], summary="List Agents")
def list_agents(
    active_only: bool = Query(False, alias="activeOnly"),
    principal: Principal = Depends(get_principal),
    client: Client = Depends(get_client),
):
    require_manager(principal)
    return [UserResponse.from_domain(agent) for agent in load_agents(client, active_only=active_only)]


@router.post("/agents", response_model=UserResponse, status_code=201, summary="Create Agent")
def create_agent(
    request: AgentCreateRequest,
    principal: Principal = Depends(get_principal),
    client: Client = Depends(get_client),
):
    agent = provision_agent(
        client,
        principal,
        full_name=request.full_name,
        username=request.username,
        email=request.email,
        password=request.password,
        active=request.active,
    )
    return UserResponse.from_domain(agent)


@router.patch("/agents/{agent_id}", response_model=UserResponse, summary="Update Agent")
def edit_agent(
    agent_id: UUID,
    request: AgentUpdateRequest,
    principal: Principal = Depends(get_principal),
    client: Client = Depends(get_client),
):
    agent = update_agent(
        client,
        principal,
        agent_id,
        full_name=request.full_name,
        username=request.username,
        email=request.email,
        active=request.active,
    )
    return UserResponse.from_domain(agent)


@router.post("/agents/{agent_id}/toggle-active", response_model=AgentStatusResponse, summary="Toggle Agent")
def toggle_agent(
    agent_id: UUID,
    principal: Principal = Depends(get_principal),
    client: Client = Depends(get_client),
):
    return AgentStatusResponse(id=agent_id, active=toggle_agent_active(client, principal, agent_id))
