"""
Domain: banking details attached to a lead.

At most one record exists per lead. Saving details for a lead that already has
a record overwrites it; no history is kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID


class AccountType(str, Enum):
    SAVINGS = "Savings"
    CHEQUE = "Cheque"
    TRANSMISSION = "Transmission"
    BUSINESS = "Business"
    OTHER = "Other"


@dataclass(frozen=True, slots=True)
class BankAccount:
    """Bank account as entered during capture, before it is tied to a lead."""

    bank_name: str
    account_number: str
    branch_code: str
    account_type: AccountType = AccountType.SAVINGS

    def __post_init__(self) -> None:
        object.__setattr__(self, "account_type", AccountType(self.account_type))
        if len(self.bank_name.strip()) < 3:
            raise ValueError("bank_name must be at least 3 characters")
        if len(self.account_number.strip()) < 6:
            raise ValueError("account_number must be at least 6 characters")
        if len(self.branch_code.strip()) < 3:
            raise ValueError("branch_code must be at least 3 characters")


@dataclass(frozen=True, slots=True)
class BankDetails:
    lead_id: UUID
    bank_name: str
    account_number: str
    branch_code: str
    account_type: AccountType
    captured_by: Optional[UUID] = None

    @classmethod
    def for_lead(
        cls, lead_id: UUID, account: BankAccount, captured_by: Optional[UUID] = None
    ) -> "BankDetails":
        return cls(
            lead_id=lead_id,
            bank_name=account.bank_name,
            account_number=account.account_number,
            branch_code=account.branch_code,
            account_type=account.account_type,
            captured_by=captured_by,
        )
