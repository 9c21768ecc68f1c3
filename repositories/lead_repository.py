"""
Lead repository (persistence).

This module provides persistence operations for the Lead domain entity and
the in-memory lead collection the rest of the portal reads from.

Contract:
- Entity attributes map to `leads` columns through LEAD_FIELDS, a static
  table. Every read and every write goes through it; unknown attribute names
  are rejected.
- Reads never raise to the caller. A failed load is logged, `error` is set and
  the collection is empty.
- Writes raise RepositoryError. Every successful write reloads the whole
  collection instead of patching it.
- Lead numbers are `LEAD-<year>-<NNNN>`, NNNN = (leads already numbered for the
  year) + 1. Counting and inserting are separate round-trips, so two concurrent
  captures can be given the same number.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional
from uuid import UUID

from supabase import Client

from domain.lead import CallNote, Lead, LeadDraft, LeadPriority, LeadSource, LeadStatus
from domain.time import parse_optional_utc_datetime, parse_utc_datetime, to_iso_utc, utc_now
from repositories.client import RepositoryError, execute, rows_of

logger = logging.getLogger(__name__)

# Supabase table name for Lead records.
# Keep this aligned with your database schema.
_LEADS_TABLE: str = "leads"


def _identity(value: Any) -> Any:
    return value


def _optional_text(value: Any) -> Optional[str]:
    return value if value else None


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def _encode_uuid(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _encode_timestamp(name: str) -> Callable[[Any], Optional[str]]:
    def encode(value: Any) -> Optional[str]:
        return to_iso_utc(value, name=name) if value is not None else None

    return encode


def _encode_history(value: Any) -> list[dict[str, Any]]:
    return [note.to_record() for note in value]


def _decode_history(value: Any) -> tuple[CallNote, ...]:
    return tuple(CallNote.from_record(record) for record in (value or []))


@dataclass(frozen=True, slots=True)
class FieldSpec:
    column: str
    encode: Callable[[Any], Any] = _identity
    decode: Callable[[Any], Any] = _identity


LEAD_FIELDS: Mapping[str, FieldSpec] = {
    "lead_id": FieldSpec("id", _encode_uuid, lambda v: UUID(str(v))),
    "lead_number": FieldSpec("lead_number", decode=str),
    "full_name": FieldSpec("full_name", decode=str),
    "id_number": FieldSpec("id_number", decode=str),
    "cell_number": FieldSpec("cell_number", decode=str),
    "email": FieldSpec("email", decode=_optional_text),
    "residential_address": FieldSpec("residential_address", decode=str),
    "source": FieldSpec("source", _enum_value, LeadSource),
    "services_interested": FieldSpec(
        "services_interested", lambda v: list(v), lambda v: tuple(v or ())
    ),
    "notes": FieldSpec("notes", decode=_optional_text),
    "status": FieldSpec("status", _enum_value, LeadStatus),
    "priority": FieldSpec("priority", _enum_value, LeadPriority),
    "captured_by": FieldSpec("captured_by", _encode_uuid, lambda v: UUID(str(v))),
    "assigned_to": FieldSpec("assigned_to", _encode_uuid, lambda v: UUID(str(v))),
    "created_at": FieldSpec("created_at", _encode_timestamp("created_at"), parse_utc_datetime),
    "updated_at": FieldSpec("updated_at", _encode_timestamp("updated_at"), parse_utc_datetime),
    "converted_at": FieldSpec(
        "converted_at", _encode_timestamp("converted_at"), parse_optional_utc_datetime
    ),
    "next_follow_up": FieldSpec(
        "next_follow_up", _encode_timestamp("next_follow_up"), parse_optional_utc_datetime
    ),
    "call_history": FieldSpec("call_history", _encode_history, _decode_history),
}

# Reverse lookup: storage column -> entity attribute.
LEAD_COLUMNS: Mapping[str, str] = {spec.column: name for name, spec in LEAD_FIELDS.items()}

# Fields a partial update may touch. Identity, numbering and creation stamps
# are fixed once the row exists.
_IMMUTABLE_FIELDS = frozenset({"lead_id", "lead_number", "captured_by", "created_at"})


def fields_to_row(fields: Mapping[str, Any]) -> dict[str, Any]:
    """
    Translate entity attribute names/values into a storage payload.

    Only the supplied attributes are present in the result, so the payload can
    be used for partial updates.
    """

    row: dict[str, Any] = {}
    for name, value in fields.items():
        spec = LEAD_FIELDS.get(name)
        if spec is None:
            raise ValueError(f"Unknown lead field: {name}")
        row[spec.column] = spec.encode(value)
    return row


def row_to_lead(row: Mapping[str, Any]) -> Lead:
    """Convert a Supabase row into a domain Lead."""

    values: dict[str, Any] = {}
    for column, raw in row.items():
        name = LEAD_COLUMNS.get(column)
        if name is None:
            continue
        values[name] = LEAD_FIELDS[name].decode(raw)
    return Lead(**values)


def _draft_to_fields(draft: LeadDraft, lead_number: str, now: datetime) -> dict[str, Any]:
    return {
        "lead_number": lead_number,
        "full_name": draft.full_name,
        "id_number": draft.id_number,
        "cell_number": draft.cell_number,
        "email": draft.email,
        "residential_address": draft.residential_address,
        "source": draft.source,
        "services_interested": draft.services_interested,
        "notes": draft.notes,
        "status": draft.status,
        "priority": draft.priority,
        "captured_by": draft.captured_by,
        "assigned_to": draft.assigned_to,
        "next_follow_up": draft.next_follow_up,
        "created_at": now,
        "updated_at": now,
        "call_history": (),
    }


def lead_number_prefix(year: int) -> str:
    return f"LEAD-{year}-"


def format_lead_number(year: int, sequence: int) -> str:
    return f"{lead_number_prefix(year)}{sequence:04d}"


def count_leads_for_year(client: Client, year: int) -> int:
    """Count leads whose number carries the given year's prefix (case-insensitive)."""

    response = execute(
        client.table(_LEADS_TABLE)
        .select("id", count="exact")
        .ilike("lead_number", f"{lead_number_prefix(year)}%")
        .limit(1),
        "count leads",
    )
    return getattr(response, "count", 0) or 0


def next_lead_number(client: Client, now: Optional[datetime] = None) -> str:
    """
    Compute the next lead number for the current calendar year.

    Never fails: when the count cannot be read, a random 4-digit sequence is
    used instead so that the capture can still go ahead.
    """

    year = (now or utc_now()).year
    try:
        existing = count_leads_for_year(client, year)
    except RepositoryError:
        logger.exception("Failed to calculate next lead number", extra={"year": year})
        return format_lead_number(year, random.randint(1000, 9999))
    return format_lead_number(year, existing + 1)


def select_leads(client: Client) -> List[Lead]:
    """All leads, newest first. Raises RepositoryError."""

    response = execute(
        client.table(_LEADS_TABLE).select("*").order("created_at", desc=True),
        "list leads",
    )
    return [row_to_lead(row) for row in rows_of(response)]


def get_lead_by_id(client: Client, lead_id: UUID) -> Lead | None:
    """
    Fetch a Lead by ID.

    Returns:
    - Lead if found
    - None if no record exists for the given ID
    """

    response = execute(
        client.table(_LEADS_TABLE).select("*").eq("id", str(lead_id)).limit(1),
        "fetch lead",
    )
    rows = rows_of(response)
    if not rows:
        return None
    return row_to_lead(rows[0])


def insert_lead(client: Client, draft: LeadDraft, lead_number: str, now: datetime) -> Lead:
    """Insert a captured lead and return the row as stored."""

    payload = fields_to_row(_draft_to_fields(draft, lead_number, now))
    response = execute(client.table(_LEADS_TABLE).insert(payload), "create lead")
    rows = rows_of(response)
    if not rows:
        raise RepositoryError("Failed to create lead: no row returned")
    return row_to_lead(rows[0])


def update_lead_fields(client: Client, lead_id: UUID, fields: Mapping[str, Any]) -> None:
    """Persist only the supplied fields of one lead."""

    blocked = _IMMUTABLE_FIELDS.intersection(fields)
    if blocked:
        raise ValueError(f"Lead fields cannot be changed: {', '.join(sorted(blocked))}")

    execute(
        client.table(_LEADS_TABLE).update(fields_to_row(fields)).eq("id", str(lead_id)),
        "update lead",
    )


def delete_lead_row(client: Client, lead_id: UUID) -> None:
    execute(client.table(_LEADS_TABLE).delete().eq("id", str(lead_id)), "delete lead")


class LeadRepository:
    """
    The lead collection as last loaded from the backend, plus the operations
    that change it.

    Example:
        repo = LeadRepository(get_supabase())
        repo.refresh()
        lead = repo.create_lead(draft)
        repo.update_lead(lead.lead_id, priority=LeadPriority.HIGH)
    """

    def __init__(self, client: Client, clock: Callable[[], datetime] = utc_now) -> None:
        self._client = client
        self._clock = clock
        self.leads: List[Lead] = []
        self.error: Optional[str] = None
        self.loading = False

    @property
    def client(self) -> Client:
        return self._client

    def now(self) -> datetime:
        return self._clock()

    def refresh(self) -> List[Lead]:
        """Reload the collection. Failures leave an empty collection and set `error`."""

        self.loading = True
        try:
            self.leads = select_leads(self._client)
            self.error = None
        except (RepositoryError, ValueError, TypeError, KeyError):
            logger.exception("Failed to load leads")
            self.leads = []
            self.error = "Failed to load leads"
        finally:
            self.loading = False
        return self.leads

    def list_leads(self) -> List[Lead]:
        return self.refresh()

    def get(self, lead_id: UUID) -> Lead | None:
        """Look a lead up in the loaded collection."""
        for lead in self.leads:
            if lead.lead_id == lead_id:
                return lead
        return None

    def next_lead_number(self) -> str:
        return next_lead_number(self._client, self.now())

    def create_lead(self, draft: LeadDraft) -> Lead:
        """
        Number, stamp and insert a captured lead.

        Returns the lead as read back from storage, so server-side defaults are
        reflected. Raises RepositoryError if the insert fails.
        """

        lead_number = self.next_lead_number()
        now = self.now()
        try:
            created = insert_lead(self._client, draft, lead_number, now)
        except RepositoryError:
            logger.exception("Failed to create lead", extra={"lead_number": lead_number})
            raise

        logger.info(
            "Lead captured",
            extra={"lead_id": str(created.lead_id), "lead_number": created.lead_number},
        )
        self.refresh()
        return created

    def update_lead(self, lead_id: UUID, **fields: Any) -> None:
        """
        Partially update a lead; `updated_at` is always stamped.

        Fields not passed are left untouched in storage.
        """

        payload = dict(fields)
        payload["updated_at"] = self.now()
        try:
            update_lead_fields(self._client, lead_id, payload)
        except RepositoryError:
            logger.exception("Failed to update lead", extra={"lead_id": str(lead_id)})
            raise
        self.refresh()

    def delete_lead(self, lead_id: UUID) -> None:
        try:
            delete_lead_row(self._client, lead_id)
        except RepositoryError:
            logger.exception("Failed to delete lead", extra={"lead_id": str(lead_id)})
            raise
        logger.info("Lead deleted", extra={"lead_id": str(lead_id)})
        self.refresh()


__all__ = [
    "LEAD_COLUMNS",
    "LEAD_FIELDS",
    "FieldSpec",
    "LeadRepository",
    "count_leads_for_year",
    "delete_lead_row",
    "fields_to_row",
    "format_lead_number",
    "get_lead_by_id",
    "insert_lead",
    "next_lead_number",
    "row_to_lead",
    "select_leads",
    "update_lead_fields",
]
