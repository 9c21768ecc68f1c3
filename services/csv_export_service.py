"""
Export service for lead lists and reports.

Generates downloadable artifacts from data that is already loaded:
- CSV of a (filtered) lead list
- JSON of a report

Security:
- CSV Injection Prevention: Sanitizes all fields to prevent formula execution
- Security Logging: Logs when dangerous characters are stripped
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date, datetime
from io import StringIO
from typing import Iterable, List, Mapping, Optional
from uuid import UUID

from domain.lead import Lead
from services.reporting_service import Report

logger = logging.getLogger(__name__)

LEAD_CSV_COLUMNS: List[str] = [
    "Lead #",
    "Client Name",
    "ID Number",
    "Cell Number",
    "Email",
    "Status",
    "Source",
    "Services",
    "Agent",
    "Created",
]


def sanitize_csv_field(value: str | None, field_name: str = "unknown") -> str:
    """
    Sanitize field to prevent CSV injection attacks with security logging.

    Strips leading characters that can trigger formula execution in Excel/Sheets:
    =, +, -, @, tab, carriage return

    If dangerous characters are found and stripped, a warning is logged for
    security monitoring.

    Example:
        sanitize_csv_field("=1+1", "full_name")
        # Returns "1+1" and logs warning about stripped "=" character

        sanitize_csv_field("Normal Name", "full_name")
        # Returns "Normal Name" (unchanged, no logging)
    """
    if value is None or value == "":
        return ""

    text = str(value).strip()
    original_text = text
    dangerous_chars = {'=', '+', '-', '@', '\t', '\r'}

    stripped_chars = []
    while text and text[0] in dangerous_chars:
        stripped_chars.append(text[0])
        text = text[1:]

    if stripped_chars:
        logger.warning(
            f"CSV injection character(s) stripped from field '{field_name}'",
            extra={
                "field_name": field_name,
                "stripped_characters": "".join(stripped_chars),
                "original_value": original_text[:100],
                "sanitized_value": text[:100],
                "modification_type": "csv_injection_prevention"
            }
        )

    return text


def format_export_date(value: datetime) -> str:
    """Render a timestamp as `dd Mon yyyy`, e.g. `05 Mar 2025`."""
    return value.strftime("%d %b %Y")


def export_filename(prefix: str, extension: str, today: Optional[date] = None) -> str:
    """
    Download name embedding the current date.

    Example:
        export_filename("leads-export", "csv", date(2025, 3, 5))
        # "leads-export-2025-03-05.csv"
    """
    today = today or date.today()
    return f"{prefix}-{today.isoformat()}.{extension}"


def lead_to_csv_row(lead: Lead, agent_names: Optional[Mapping[UUID, str]] = None) -> List[str]:
    agent = (agent_names or {}).get(lead.captured_by, str(lead.captured_by))
    return [
        sanitize_csv_field(lead.lead_number, "lead_number"),
        sanitize_csv_field(lead.full_name, "full_name"),
        sanitize_csv_field(lead.id_number, "id_number"),
        sanitize_csv_field(lead.cell_number, "cell_number"),
        sanitize_csv_field(lead.email, "email"),
        lead.status.value,
        lead.source.value,
        sanitize_csv_field("; ".join(lead.services_interested), "services_interested"),
        sanitize_csv_field(agent, "captured_by"),
        format_export_date(lead.created_at),
    ]


def generate_leads_csv(
    leads: Iterable[Lead], agent_names: Optional[Mapping[UUID, str]] = None
) -> str:
    """
    Generate a CSV of the given leads, one row per lead, every field quoted.

    Args:
        leads: the leads to export, typically the currently filtered list
        agent_names: optional user id -> display name for the Agent column;
            ids without a name are written as-is

    Returns:
        CSV content as a string
    """
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(LEAD_CSV_COLUMNS)

    for lead in leads:
        writer.writerow(lead_to_csv_row(lead, agent_names))

    return output.getvalue()


def generate_report_json(report: Report) -> str:
    return json.dumps(report.to_dict(), indent=2)


__all__ = [
    "LEAD_CSV_COLUMNS",
    "export_filename",
    "format_export_date",
    "generate_leads_csv",
    "generate_report_json",
    "lead_to_csv_row",
    "sanitize_csv_field",
]
