"""
Lead lifecycle service.

Handles:
- Capturing a lead, with optional bank details, reporting partial success
  when the lead is saved but the bank details are not
- Status transitions (Converted stamps converted_at, which is never cleared)
- Reassignment by a manager (captured_by never changes)
- Appending call notes (the whole history is written back on each append)
- Attaching and reading bank details
- Scoping what a principal may see and touch

Every operation is a partial update through LeadRepository, which reloads the
collection after each write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from domain.bank_details import BankAccount, BankDetails
from domain.lead import CallNote, Lead, LeadDraft, LeadStatus
from domain.user import Principal, UserRole
from repositories.bank_details_repository import get_bank_details, upsert_bank_details
from repositories.client import RepositoryError
from repositories.lead_repository import LeadRepository, get_lead_by_id
from repositories.user_repository import get_user_by_id
from services.auth_service import PermissionDeniedError, require_manager

logger = logging.getLogger(__name__)


class LeadNotFoundError(LookupError):
    """Raised when a lead id does not match any stored lead."""


class LeadUpdateError(ValueError):
    """Raised when a requested change to a lead cannot be applied as asked."""


@dataclass(frozen=True, slots=True)
class CaptureResult:
    """
    Outcome of a capture.

    lead: the lead as stored
    bank_details_saved: False when bank details were supplied and failed
    bank_details_error: backend message for the failed bank details save
    """

    lead: Lead
    bank_details_saved: bool
    bank_details_error: Optional[str] = None

    @property
    def partial(self) -> bool:
        return not self.bank_details_saved


def visible_leads(principal: Principal, leads: List[Lead]) -> List[Lead]:
    """Managers see every lead; agents see the leads they captured."""
    if principal.is_manager:
        return list(leads)
    return [lead for lead in leads if lead.captured_by == principal.user_id]


def ensure_can_work_lead(principal: Principal, lead: Lead) -> None:
    if principal.is_manager:
        return
    if principal.user_id in (lead.captured_by, lead.assigned_to):
        return
    raise PermissionDeniedError(f"Lead {lead.lead_number} is not assigned to {principal.username}")


def load_lead(repo: LeadRepository, lead_id: UUID) -> Lead:
    """Read one lead straight from storage. Raises LeadNotFoundError."""

    lead = get_lead_by_id(repo.client, lead_id)
    if lead is None:
        raise LeadNotFoundError(f"Lead not found: {lead_id}")
    return lead


def capture_lead(
    repo: LeadRepository,
    principal: Principal,
    draft: LeadDraft,
    bank_account: Optional[BankAccount] = None,
) -> CaptureResult:
    """
    Create a lead captured by `principal`, then save its bank details.

    Raises:
        PermissionDeniedError: the draft names a different capturing agent
        RepositoryError: the lead itself could not be saved
    """

    if draft.captured_by != principal.user_id:
        raise PermissionDeniedError("Leads can only be captured in your own name")

    lead = repo.create_lead(draft)
    if bank_account is None:
        return CaptureResult(lead=lead, bank_details_saved=True)

    try:
        attach_bank_details(
            repo, principal, lead, BankDetails.for_lead(lead.lead_id, bank_account, lead.captured_by)
        )
    except RepositoryError as exc:
        logger.error(
            "Lead saved, but banking details failed",
            extra={"lead_id": str(lead.lead_id), "lead_number": lead.lead_number},
        )
        return CaptureResult(lead=lead, bank_details_saved=False, bank_details_error=str(exc))
    return CaptureResult(lead=lead, bank_details_saved=True)


def change_status(
    repo: LeadRepository, principal: Principal, lead_id: UUID, status: LeadStatus
) -> None:
    """
    Set a lead's status. Any status may follow any other.

    Moving to Converted stamps converted_at; any other status leaves an
    existing converted_at as it is.
    """

    status = LeadStatus(status)
    ensure_can_work_lead(principal, load_lead(repo, lead_id))

    fields: dict[str, object] = {"status": status}
    if status is LeadStatus.CONVERTED:
        fields["converted_at"] = repo.now()
    repo.update_lead(lead_id, **fields)
    logger.info("Lead status changed", extra={"lead_id": str(lead_id), "status": status.value})


def reassign_lead(
    repo: LeadRepository, principal: Principal, lead_id: UUID, agent_id: UUID
) -> None:
    """Assign a lead to another agent. Manager only."""

    require_manager(principal)
    load_lead(repo, lead_id)

    agent = get_user_by_id(repo.client, agent_id)
    if agent is None or agent.role is not UserRole.AGENT:
        raise LeadUpdateError(f"Not an agent: {agent_id}")
    if not agent.active:
        raise LeadUpdateError(f"Agent {agent.username} is inactive")

    repo.update_lead(lead_id, assigned_to=agent_id)
    logger.info("Lead reassigned", extra={"lead_id": str(lead_id), "assigned_to": str(agent_id)})


def append_call_note(
    repo: LeadRepository,
    principal: Principal,
    lead_id: UUID,
    text: str,
    id_factory: Callable[[], str] = lambda: uuid4().hex,
) -> CallNote:
    """
    Append a note to a lead's call history and return the new entry.

    The current history is read from storage and written back whole with the
    new entry at the end; existing entries are carried over unchanged.
    """

    lead = load_lead(repo, lead_id)
    ensure_can_work_lead(principal, lead)

    note = CallNote(
        note_id=id_factory(),
        note=text.strip(),
        created_by=principal.username,
        created_at=repo.now(),
    )
    repo.update_lead(lead_id, call_history=lead.with_call_note(note))
    return note


def delete_lead(repo: LeadRepository, principal: Principal, lead_id: UUID) -> None:
    """Remove a lead. Manager only."""
    require_manager(principal)
    repo.delete_lead(lead_id)


def attach_bank_details(
    repo: LeadRepository, principal: Principal, lead: Lead, details: BankDetails
) -> None:
    """Save the lead's bank details, overwriting any previous record."""

    ensure_can_work_lead(principal, lead)
    if details.lead_id != lead.lead_id:
        raise LeadUpdateError("Bank details belong to a different lead")
    try:
        upsert_bank_details(repo.client, details)
    except RepositoryError:
        logger.exception("Failed to save banking details", extra={"lead_id": str(lead.lead_id)})
        raise


def read_bank_details(repo: LeadRepository, principal: Principal, lead: Lead) -> Optional[BankDetails]:
    """Bank details of a lead, or None when absent or unreadable."""

    ensure_can_work_lead(principal, lead)
    try:
        return get_bank_details(repo.client, lead.lead_id)
    except (RepositoryError, ValueError, KeyError):
        logger.exception("Failed to fetch banking details", extra={"lead_id": str(lead.lead_id)})
        return None


__all__ = [
    "CaptureResult",
    "LeadNotFoundError",
    "LeadUpdateError",
    "append_call_note",
    "attach_bank_details",
    "capture_lead",
    "change_status",
    "delete_lead",
    "ensure_can_work_lead",
    "load_lead",
    "read_bank_details",
    "reassign_lead",
    "visible_leads",
]
