"""
Domain: Lead entity.

Contract:
- A Lead is a prospective client captured by an agent and tracked through the
  status pipeline New -> Contacted -> Qualified -> Converted | Lost. Any status
  may be set from any other.
- lead_number is human-readable (`LEAD-<year>-<NNNN>`) and distinct from the
  opaque storage id.
- captured_by and assigned_to are user ids. captured_by never changes after
  capture.
- call_history is append-only. Entries are never edited or removed.
- converted_at is stamped when a lead transitions to Converted and is kept if
  the status later moves away.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple
from uuid import UUID

from .time import parse_utc_datetime, require_utc_timestamp


class LeadStatus(str, Enum):
    NEW = "New"
    CONTACTED = "Contacted"
    QUALIFIED = "Qualified"
    CONVERTED = "Converted"
    LOST = "Lost"

    @property
    def badge(self) -> "BadgeVariant":
        return _STATUS_BADGES[self]


class LeadSource(str, Enum):
    WALK_IN = "Walk-in"
    PHONE_CALL = "Phone Call"
    REFERRAL = "Referral"
    MARKETING = "Marketing"


class LeadPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class BadgeVariant(str, Enum):
    NEUTRAL = "neutral"
    PROGRESS = "progress"
    WARNING = "warning"
    SUCCESS = "success"
    ERROR = "error"


_STATUS_BADGES: Mapping[LeadStatus, BadgeVariant] = {
    LeadStatus.NEW: BadgeVariant.NEUTRAL,
    LeadStatus.CONTACTED: BadgeVariant.PROGRESS,
    LeadStatus.QUALIFIED: BadgeVariant.WARNING,
    LeadStatus.CONVERTED: BadgeVariant.SUCCESS,
    LeadStatus.LOST: BadgeVariant.ERROR,
}

if set(_STATUS_BADGES) != set(LeadStatus):
    raise RuntimeError("Every LeadStatus needs a badge variant")


@dataclass(frozen=True, slots=True)
class CallNote:
    """
    One entry of a lead's call history.

    Stored inside the lead row as a JSON object with the keys
    `id`, `note`, `createdBy` and `createdAt`.
    """

    note_id: str
    note: str
    created_by: str
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if not self.note.strip():
            raise ValueError("note must not be empty")

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.note_id,
            "note": self.note,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "CallNote":
        return cls(
            note_id=str(record["id"]),
            note=str(record["note"]),
            created_by=str(record.get("createdBy", "")),
            created_at=parse_utc_datetime(record["createdAt"]),
        )


@dataclass(frozen=True, slots=True)
class LeadDraft:
    """
    Lead data as submitted through the capture flow, before it has a storage
    id, a lead number or timestamps.

    Invariants:
    - services_interested holds at least one service id. Duplicates are
      dropped, first occurrence wins.
    - assigned_to defaults to captured_by.
    """

    full_name: str
    id_number: str
    cell_number: str
    residential_address: str
    source: LeadSource
    services_interested: Tuple[str, ...]
    captured_by: UUID
    assigned_to: Optional[UUID] = None
    status: LeadStatus = LeadStatus.NEW
    priority: LeadPriority = LeadPriority.MEDIUM
    email: Optional[str] = None
    notes: Optional[str] = None
    next_follow_up: Optional[datetime] = None

    def __post_init__(self) -> None:
        services = tuple(dict.fromkeys(self.services_interested))
        if not services:
            raise ValueError("services_interested must contain at least one service")
        object.__setattr__(self, "services_interested", services)
        object.__setattr__(self, "source", LeadSource(self.source))
        object.__setattr__(self, "status", LeadStatus(self.status))
        object.__setattr__(self, "priority", LeadPriority(self.priority))
        if self.assigned_to is None:
            object.__setattr__(self, "assigned_to", self.captured_by)
        if self.next_follow_up is not None:
            require_utc_timestamp("next_follow_up", self.next_follow_up)


@dataclass(frozen=True, slots=True)
class Lead:
    """Pure domain entity for a captured Lead, as read back from storage."""

    lead_id: UUID
    lead_number: str
    full_name: str
    id_number: str
    cell_number: str
    residential_address: str
    source: LeadSource
    services_interested: Tuple[str, ...]
    status: LeadStatus
    priority: LeadPriority
    captured_by: UUID
    assigned_to: UUID
    created_at: datetime
    updated_at: datetime
    email: Optional[str] = None
    notes: Optional[str] = None
    converted_at: Optional[datetime] = None
    next_follow_up: Optional[datetime] = None
    call_history: Tuple[CallNote, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.converted_at is not None:
            require_utc_timestamp("converted_at", self.converted_at)
        if self.next_follow_up is not None:
            require_utc_timestamp("next_follow_up", self.next_follow_up)

    @property
    def is_converted(self) -> bool:
        return self.status is LeadStatus.CONVERTED

    def with_call_note(self, note: CallNote) -> Tuple[CallNote, ...]:
        """Full history with `note` appended. The lead itself is not changed."""
        return self.call_history + (note,)


__all__ = [
    "BadgeVariant",
    "CallNote",
    "Lead",
    "LeadDraft",
    "LeadPriority",
    "LeadSource",
    "LeadStatus",
]
