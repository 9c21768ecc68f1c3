"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
JSON field names are camelCase (`leadNumber`, `servicesInterested`, ...);
Python attribute names stay snake_case.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from domain.bank_details import AccountType, BankAccount, BankDetails
from domain.lead import CallNote, Lead, LeadDraft, LeadPriority, LeadSource, LeadStatus
from domain.service_catalog import Service, is_known_service
from domain.time import parse_utc_datetime
from domain.user import User, UserRole
from domain.validation import (
    strip_phone_separators,
    validate_local_phone_number,
    validate_national_id,
)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NAME_PATTERN = re.compile(r"^[A-Za-z\s]+$")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Auth Models
# ============================================================================

class LoginRequest(ApiModel):
    """Sign in with a username or an email address."""
    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {"identifier": "thabo", "password": "s3cret-pass"}},
    )


class UserResponse(ApiModel):
    id: UUID
    username: str
    role: UserRole
    full_name: str
    email: str
    active: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            id=user.user_id,
            username=user.username,
            role=user.role,
            full_name=user.full_name,
            email=user.email,
            active=user.active,
            created_at=user.created_at,
        )


class LoginResponse(ApiModel):
    access_token: Optional[str]
    token_type: str = "bearer"
    user: UserResponse


class RegisterRequest(ApiModel):
    full_name: str = Field(..., min_length=3)
    username: str = Field(..., min_length=3)
    email: str
    password: str = Field(..., min_length=6)
    confirm_password: str
    role: UserRole = UserRole.MANAGER
    notes: str = ""

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        if not _EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("confirm_password")
    @classmethod
    def _passwords_match(cls, value: str, info) -> str:
        if value != info.data.get("password"):
            raise ValueError("Passwords do not match.")
        return value


class RegisterResponse(ApiModel):
    user_id: UUID
    confirmation_required: bool
    message: str


# ============================================================================
# Lead Models
# ============================================================================

class BankAccountRequest(ApiModel):
    bank_name: str = Field(..., min_length=3)
    account_number: str = Field(..., min_length=6)
    branch_code: str = Field(..., min_length=3)
    account_type: AccountType = AccountType.SAVINGS

    def to_domain(self) -> BankAccount:
        return BankAccount(
            bank_name=self.bank_name,
            account_number=self.account_number,
            branch_code=self.branch_code,
            account_type=self.account_type,
        )


class BankDetailsResponse(ApiModel):
    lead_id: UUID
    bank_name: str
    account_number: str
    branch_code: str
    account_type: AccountType

    @classmethod
    def from_domain(cls, details: BankDetails) -> "BankDetailsResponse":
        return cls(
            lead_id=details.lead_id,
            bank_name=details.bank_name,
            account_number=details.account_number,
            branch_code=details.branch_code,
            account_type=details.account_type,
        )


class LeadCaptureRequest(ApiModel):
    """Lead capture form. The capturing agent is the signed-in user."""

    full_name: str = Field(..., min_length=3)
    id_number: str
    cell_number: str
    email: Optional[str] = None
    residential_address: str = Field(..., min_length=10)
    source: LeadSource
    services_interested: List[str] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=500)
    priority: LeadPriority = LeadPriority.MEDIUM
    next_follow_up: Optional[datetime] = None
    bank_details: Optional[BankAccountRequest] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "fullName": "Thabo Mkhize",
                "idNumber": "8503155800084",
                "cellNumber": "082 456 7890",
                "residentialAddress": "12 Long Street, Cape Town",
                "source": "Walk-in",
                "servicesInterested": ["debt-review"],
                "priority": "Medium",
                "bankDetails": {
                    "bankName": "Capitec",
                    "accountNumber": "1234567890",
                    "branchCode": "470010",
                    "accountType": "Savings",
                },
            }
        },
    )

    @field_validator("full_name")
    @classmethod
    def _letters_only(cls, value: str) -> str:
        if not _NAME_PATTERN.match(value):
            raise ValueError("Name can only contain letters and spaces")
        return value

    @field_validator("id_number")
    @classmethod
    def _valid_id_number(cls, value: str) -> str:
        if not validate_national_id(value):
            raise ValueError("Invalid South African ID number")
        return value

    @field_validator("cell_number")
    @classmethod
    def _valid_cell_number(cls, value: str) -> str:
        if not validate_local_phone_number(value):
            raise ValueError("Invalid cell number (must be 10 digits starting with 0)")
        return strip_phone_separators(value)

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if not _EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("services_interested")
    @classmethod
    def _known_services(cls, value: List[str]) -> List[str]:
        unknown = [service_id for service_id in value if not is_known_service(service_id)]
        if unknown:
            raise ValueError(f"Unknown services: {', '.join(unknown)}")
        return value

    @field_validator("next_follow_up")
    @classmethod
    def _follow_up_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Offsets are converted; naive values are taken as UTC.
        if value is None:
            return None
        return parse_utc_datetime(value)

    def to_draft(self, captured_by: UUID) -> LeadDraft:
        return LeadDraft(
            full_name=self.full_name,
            id_number=self.id_number,
            cell_number=self.cell_number,
            email=self.email,
            residential_address=self.residential_address,
            source=self.source,
            services_interested=tuple(self.services_interested),
            notes=self.notes or None,
            priority=self.priority,
            captured_by=captured_by,
            next_follow_up=self.next_follow_up,
        )


class CallNoteResponse(ApiModel):
    id: str
    note: str
    created_by: str
    created_at: datetime

    @classmethod
    def from_domain(cls, note: CallNote) -> "CallNoteResponse":
        return cls(id=note.note_id, note=note.note, created_by=note.created_by, created_at=note.created_at)


class LeadResponse(ApiModel):
    id: UUID
    lead_number: str
    full_name: str
    id_number: str
    cell_number: str
    email: Optional[str] = None
    residential_address: str
    source: LeadSource
    services_interested: List[str]
    notes: Optional[str] = None
    status: LeadStatus
    status_badge: str
    priority: LeadPriority
    captured_by: UUID
    assigned_to: UUID
    created_at: datetime
    updated_at: datetime
    converted_at: Optional[datetime] = None
    next_follow_up: Optional[datetime] = None
    call_history: List[CallNoteResponse]

    @classmethod
    def from_domain(cls, lead: Lead) -> "LeadResponse":
        return cls(
            id=lead.lead_id,
            lead_number=lead.lead_number,
            full_name=lead.full_name,
            id_number=lead.id_number,
            cell_number=lead.cell_number,
            email=lead.email,
            residential_address=lead.residential_address,
            source=lead.source,
            services_interested=list(lead.services_interested),
            notes=lead.notes,
            status=lead.status,
            status_badge=lead.status.badge.value,
            priority=lead.priority,
            captured_by=lead.captured_by,
            assigned_to=lead.assigned_to,
            created_at=lead.created_at,
            updated_at=lead.updated_at,
            converted_at=lead.converted_at,
            next_follow_up=lead.next_follow_up,
            call_history=[CallNoteResponse.from_domain(note) for note in lead.call_history],
        )


class LeadListResponse(ApiModel):
    """Lead list. `error` is set, and `items` empty, when leads could not be loaded."""
    items: List[LeadResponse]
    total_count: int
    error: Optional[str] = None


class CaptureResponse(ApiModel):
    lead: LeadResponse
    bank_details_saved: bool
    message: str


class StatusUpdateRequest(ApiModel):
    status: LeadStatus


class ReassignRequest(ApiModel):
    assigned_to: UUID


class CallNoteRequest(ApiModel):
    note: str = Field(..., min_length=1, max_length=2000)

    @field_validator("note")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Note cannot be empty")
        return value


# ============================================================================
# Agent Models
# ============================================================================

class AgentCreateRequest(ApiModel):
    full_name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)
    active: bool = True

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        if not _EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value


class AgentUpdateRequest(ApiModel):
    full_name: Optional[str] = Field(None, min_length=1)
    username: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    active: Optional[bool] = None


class AgentStatusResponse(ApiModel):
    id: UUID
    active: bool


# ============================================================================
# Catalog Models
# ============================================================================

class ServiceResponse(ApiModel):
    id: str
    name: str
    cost: str
    base_price: Optional[int]
    requirements: List[str]
    additional_notes: Optional[str] = None

    @classmethod
    def from_domain(cls, service: Service) -> "ServiceResponse":
        return cls(
            id=service.service_id,
            name=service.name,
            cost=service.cost,
            base_price=service.base_price,
            requirements=list(service.requirements),
            additional_notes=service.additional_notes,
        )


class QuoteRequest(ApiModel):
    services: List[str] = Field(..., min_length=1)


class QuoteResponse(ApiModel):
    services: List[str]
    total: int
    currency: str = "ZAR"
