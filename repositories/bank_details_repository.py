"""
Bank details repository (persistence).

One row per lead in `bank_details`, keyed by `lead_id`. Saving is an upsert on
`lead_id`: a second save for the same lead overwrites the first.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID

from supabase import Client

from domain.bank_details import AccountType, BankDetails
from repositories.client import execute, rows_of

_BANK_DETAILS_TABLE: str = "bank_details"


def _bank_details_to_row(details: BankDetails) -> dict[str, Any]:
    return {
        "lead_id": str(details.lead_id),
        "bank_name": details.bank_name,
        "account_number": details.account_number,
        "branch_code": details.branch_code,
        "account_type": details.account_type.value,
        "captured_by": str(details.captured_by) if details.captured_by else None,
    }


def _row_to_bank_details(row: Mapping[str, Any], lead_id: UUID) -> BankDetails:
    captured_by = row.get("captured_by")
    return BankDetails(
        lead_id=UUID(str(row.get("lead_id") or lead_id)),
        bank_name=str(row["bank_name"]),
        account_number=str(row["account_number"]),
        branch_code=str(row["branch_code"]),
        account_type=AccountType(str(row["account_type"])),
        captured_by=UUID(str(captured_by)) if captured_by else None,
    )


def upsert_bank_details(client: Client, details: BankDetails) -> None:
    """Insert or overwrite the bank details of one lead. Raises RepositoryError."""

    execute(
        client.table(_BANK_DETAILS_TABLE).upsert(
            _bank_details_to_row(details), on_conflict="lead_id"
        ),
        "save bank details",
    )


def get_bank_details(client: Client, lead_id: UUID) -> Optional[BankDetails]:
    response = execute(
        client.table(_BANK_DETAILS_TABLE)
        .select("lead_id, bank_name, account_number, branch_code, account_type, captured_by")
        .eq("lead_id", str(lead_id))
        .limit(1),
        "fetch bank details",
    )
    rows = rows_of(response)
    if not rows:
        return None
    return _row_to_bank_details(rows[0], lead_id)


__all__ = ["get_bank_details", "upsert_bank_details"]
