"""
Domain: catalog of financial services a lead can request.

The catalog is fixed. Leads reference services by `service_id`; display names
and cost strings are looked up here. Cost strings are display text, and only a
leading `R <amount>` token is ever interpreted as a price.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

_PRICE_TOKEN = re.compile(r"R\s*([\d,]+)")


@dataclass(frozen=True, slots=True)
class Service:
    service_id: str
    name: str
    cost: str
    requirements: Tuple[str, ...]
    additional_notes: Optional[str] = None

    @property
    def base_price(self) -> Optional[int]:
        return parse_price(self.cost)


def parse_price(cost: str) -> Optional[int]:
    """
    Extract the first `R <amount>` token from a cost string.

    Returns None when the string carries no such token.

    Example:
        parse_price("R 850 per creditor")  # 850
        parse_price("On request")          # None
    """

    match = _PRICE_TOKEN.search(cost or "")
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


SERVICES: Tuple[Service, ...] = (
    Service(
        service_id="judgement",
        name="JUDGEMENT",
        cost="R 4,500",
        requirements=(
            "Power of attorney",
            "Income and expenditure",
            "Creditors list",
            "Identity document",
            "Bank statement",
            "Proof of address",
        ),
    ),
    Service(
        service_id="debt-review",
        name="DEBT REVIEW",
        cost="R 9,000",
        requirements=(
            "Power of attorney",
            "A letter from your debt counsellor",
            "Creditor's list",
            "Income and expenditure",
            "Identity document",
            "Bank statement",
            "Proof of address",
        ),
    ),
    Service(
        service_id="default-adverse",
        name="DEFAULT/ADVERSE LISTING",
        cost="R 4,500",
        requirements=(
            "Power of attorney",
            "Income and expenditure",
            "Creditors list",
        ),
    ),
    Service(
        service_id="admin-order",
        name="ADMIN ORDER",
        cost="R 9,000",
        requirements=(
            "If ordered by court, we will need a little front court",
            "Proof of address",
            "Bank statement",
            "Income and expenditure",
            "Identity document",
            "Creditors list",
        ),
    ),
    Service(
        service_id="account-negotiations",
        name="ACCOUNT NEGOTIATIONS",
        cost="R 850 per creditor (if creditors are more than 3, it will cost R 3,200 only)",
        requirements=(
            "Power of attorney",
            "Income and expenditure",
            "Identity document",
            "Proof of address",
        ),
    ),
    Service(
        service_id="assessment",
        name="ASSESSMENT",
        cost="R 350",
        requirements=(
            "Power of attorney",
            "Identity document",
            "Bank statement",
            "Proof of address",
        ),
    ),
    Service(
        service_id="garnishment",
        name="GARNISHMENT",
        cost="R 7,000",
        requirements=(
            "Power of attorney",
            "Identity document",
            "Proof of address",
            "Income and expenditure",
            "Payslip",
            "Bank statement",
        ),
    ),
    Service(
        service_id="updating-disputes",
        name="UPDATING/DISPUTES",
        cost="R 4,000",
        requirements=(
            "Power of attorney",
            "Identity Document",
            "Paid Up Letters",
            "17.W Form (Counsellor)",
        ),
        additional_notes="Clearance Certificate included",
    ),
)

_SERVICES_BY_ID = {service.service_id: service for service in SERVICES}


def get_service(service_id: str) -> Optional[Service]:
    return _SERVICES_BY_ID.get(service_id)


def is_known_service(service_id: str) -> bool:
    return service_id in _SERVICES_BY_ID


def service_name(service_id: str) -> str:
    """Display name for a service id, falling back to the id itself."""
    service = _SERVICES_BY_ID.get(service_id)
    return service.name if service else service_id


def quote_total(service_ids: Iterable[str]) -> int:
    """Sum the base price of each known service; unpriced entries add zero."""

    total = 0
    for service_id in service_ids:
        service = _SERVICES_BY_ID.get(service_id)
        if service is None:
            continue
        total += service.base_price or 0
    return total


__all__ = [
    "SERVICES",
    "Service",
    "get_service",
    "is_known_service",
    "parse_price",
    "quote_total",
    "service_name",
]
