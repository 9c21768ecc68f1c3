"""
Reporting service: dashboards, reports and lead filters.

All functions are pure derivations over an already-loaded lead collection; none
of them talk to the backend.

Rates are percentages (0-100). A group with no leads has a rate of 0.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from domain.lead import Lead, LeadSource, LeadStatus
from domain.service_catalog import SERVICES, get_service, service_name
from domain.time import utc_now
from domain.user import User

_ALL = "all"


class DateRange(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


def _is_all(value: Optional[str]) -> bool:
    return value is None or value == "" or value.lower() == _ALL


def conversion_rate(total: int, converted: int) -> float:
    if total == 0:
        return 0.0
    return converted * 100 / total


def _one_month_before(moment: datetime) -> datetime:
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def range_start(date_range: DateRange, now: datetime) -> Optional[datetime]:
    """Earliest creation time admitted by a date-range preset (None for all time)."""

    date_range = DateRange(date_range)
    if date_range is DateRange.ALL:
        return None
    if date_range is DateRange.TODAY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_range is DateRange.WEEK:
        return now - timedelta(days=7)
    if date_range is DateRange.MONTH:
        return _one_month_before(now)
    raise ValueError(f"Unhandled date range: {date_range}")


@dataclass(frozen=True, slots=True)
class LeadFilters:
    """
    Conjunction of lead predicates.

    `all`/`All` (or empty) disables the agent, service and status predicates.
    The agent predicate matches either the capturing or the assigned agent.
    """

    date_range: DateRange = DateRange.ALL
    agent: str = _ALL
    service: str = _ALL
    status: str = _ALL
    search: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "date_range", DateRange(self.date_range))
        if not _is_all(self.status):
            LeadStatus(self.status)

    def matches(self, lead: Lead, now: datetime) -> bool:
        start = range_start(self.date_range, now)
        if start is not None and lead.created_at < start:
            return False
        if not _is_all(self.agent) and self.agent not in (str(lead.captured_by), str(lead.assigned_to)):
            return False
        if not _is_all(self.service) and self.service not in lead.services_interested:
            return False
        if not _is_all(self.status) and lead.status.value != self.status:
            return False
        return matches_search(lead, self.search)

    def describe(self) -> Dict[str, str]:
        return {
            "dateRange": self.date_range.value,
            "agentFilter": self.agent,
            "serviceFilter": self.service,
            "statusFilter": self.status,
        }


def matches_search(lead: Lead, term: str) -> bool:
    """Case-insensitive match on name and lead number; exact substring on id and cell numbers."""

    if not term:
        return True
    lowered = term.lower()
    return (
        lowered in lead.full_name.lower()
        or term in lead.id_number
        or term in lead.cell_number
        or lowered in lead.lead_number.lower()
    )


def filter_leads(
    leads: Iterable[Lead], filters: LeadFilters, now: Optional[datetime] = None
) -> List[Lead]:
    now = now or utc_now()
    return [lead for lead in leads if filters.matches(lead, now)]


def converted_leads(leads: Iterable[Lead]) -> List[Lead]:
    return [lead for lead in leads if lead.is_converted]


def leads_in_month(leads: Iterable[Lead], month: datetime) -> List[Lead]:
    return [
        lead
        for lead in leads
        if lead.created_at.year == month.year and lead.created_at.month == month.month
    ]


def status_distribution(leads: Iterable[Lead]) -> Dict[LeadStatus, int]:
    """Count per status; every status is present, zero-filled."""

    counts = {status: 0 for status in LeadStatus}
    for lead in leads:
        counts[lead.status] += 1
    return counts


def service_distribution(leads: Iterable[Lead]) -> Dict[str, int]:
    """Count per requested service id. A lead counts once for each service it asks for."""

    counts: Dict[str, int] = {}
    for lead in leads:
        for service_id in lead.services_interested:
            counts[service_id] = counts.get(service_id, 0) + 1
    return counts


def source_distribution(leads: Iterable[Lead]) -> Dict[LeadSource, int]:
    """Count per source, for the sources that occur."""

    counts: Dict[LeadSource, int] = {}
    for lead in leads:
        counts[lead.source] = counts.get(lead.source, 0) + 1
    return counts


@dataclass(frozen=True, slots=True)
class GroupStats:
    name: str
    total: int
    converted: int
    rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "total": self.total, "converted": self.converted, "rate": self.rate}


@dataclass(frozen=True, slots=True)
class AgentPerformance:
    agent_id: UUID
    name: str
    total: int
    converted: int
    rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agentId": str(self.agent_id),
            "name": self.name,
            "total": self.total,
            "converted": self.converted,
            "rate": self.rate,
        }


def _stats(name: str, leads: Sequence[Lead]) -> GroupStats:
    converted = len(converted_leads(leads))
    return GroupStats(name=name, total=len(leads), converted=converted, rate=conversion_rate(len(leads), converted))


def agent_performance(leads: Sequence[Lead], agents: Iterable[User]) -> List[AgentPerformance]:
    """Captured, converted and conversion rate for each active agent."""

    results = []
    for agent in agents:
        if not agent.active:
            continue
        captured = [lead for lead in leads if lead.captured_by == agent.user_id]
        converted = len(converted_leads(captured))
        results.append(
            AgentPerformance(
                agent_id=agent.user_id,
                name=agent.full_name,
                total=len(captured),
                converted=converted,
                rate=conversion_rate(len(captured), converted),
            )
        )
    return results


def conversion_by_service(leads: Sequence[Lead]) -> List[GroupStats]:
    """Conversion for every catalog service, including services nobody asked for."""
    return [
        _stats(service.name, [lead for lead in leads if service.service_id in lead.services_interested])
        for service in SERVICES
    ]


def source_analysis(leads: Sequence[Lead]) -> List[GroupStats]:
    by_source: Dict[LeadSource, List[Lead]] = {}
    for lead in leads:
        by_source.setdefault(lead.source, []).append(lead)
    return [_stats(source.value, group) for source, group in by_source.items()]


def revenue_by_service(leads: Iterable[Lead]) -> Dict[str, int]:
    """
    Estimated revenue per service name from converted leads.

    Each requested service contributes the leading `R <amount>` of its cost
    string. Unknown services and unpriced cost strings contribute nothing.
    """

    revenue: Dict[str, int] = {}
    for lead in converted_leads(leads):
        for service_id in lead.services_interested:
            service = get_service(service_id)
            if service is None:
                continue
            price = service.base_price
            if price is None:
                continue
            revenue[service.name] = revenue.get(service.name, 0) + price
    return revenue


@dataclass(frozen=True, slots=True)
class ManagerDashboard:
    total_leads: int
    leads_this_month: int
    converted_leads: int
    conversion_rate: float
    active_agents: int
    status_counts: Dict[LeadStatus, int]
    service_counts: Dict[str, int]
    source_counts: Dict[LeadSource, int]
    agents: List[AgentPerformance]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLeads": self.total_leads,
            "leadsThisMonth": self.leads_this_month,
            "convertedLeads": self.converted_leads,
            "conversionRate": self.conversion_rate,
            "activeAgents": self.active_agents,
            "statusDistribution": [
                {"name": status.value, "value": count} for status, count in self.status_counts.items()
            ],
            "serviceDistribution": [
                {"id": service_id, "name": service_name(service_id), "value": count}
                for service_id, count in self.service_counts.items()
            ],
            "sourceDistribution": [
                {"name": source.value, "value": count} for source, count in self.source_counts.items()
            ],
            "agentPerformance": [agent.to_dict() for agent in self.agents],
        }


@dataclass(frozen=True, slots=True)
class AgentDashboard:
    total_leads: int
    leads_this_month: int
    new_leads: int
    contacted_leads: int
    converted_leads: int
    conversion_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLeads": self.total_leads,
            "leadsThisMonth": self.leads_this_month,
            "newLeads": self.new_leads,
            "contactedLeads": self.contacted_leads,
            "convertedLeads": self.converted_leads,
            "conversionRate": self.conversion_rate,
        }


def manager_dashboard(
    leads: Sequence[Lead], agents: Sequence[User], now: Optional[datetime] = None
) -> ManagerDashboard:
    now = now or utc_now()
    converted = len(converted_leads(leads))
    performance = agent_performance(leads, agents)
    return ManagerDashboard(
        total_leads=len(leads),
        leads_this_month=len(leads_in_month(leads, now)),
        converted_leads=converted,
        conversion_rate=conversion_rate(len(leads), converted),
        active_agents=len(performance),
        status_counts=status_distribution(leads),
        service_counts=service_distribution(leads),
        source_counts=source_distribution(leads),
        agents=performance,
    )


def agent_dashboard(
    leads: Sequence[Lead], agent_id: UUID, now: Optional[datetime] = None
) -> AgentDashboard:
    now = now or utc_now()
    own = [lead for lead in leads if lead.captured_by == agent_id]
    counts = status_distribution(own)
    return AgentDashboard(
        total_leads=len(own),
        leads_this_month=len(leads_in_month(own, now)),
        new_leads=counts[LeadStatus.NEW],
        contacted_leads=counts[LeadStatus.CONTACTED],
        converted_leads=counts[LeadStatus.CONVERTED],
        conversion_rate=conversion_rate(len(own), counts[LeadStatus.CONVERTED]),
    )


@dataclass(frozen=True, slots=True)
class Report:
    filters: LeadFilters
    total_leads: int
    converted_leads: int
    conversion_rate: float
    by_agent: List[AgentPerformance]
    by_service: List[GroupStats]
    revenue: Dict[str, int]
    sources: List[GroupStats]
    generated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.filters.describe())
        data.update(
            {
                "generatedAt": self.generated_at.isoformat(),
                "totalLeads": self.total_leads,
                "convertedLeads": self.converted_leads,
                "conversionRate": self.conversion_rate,
                "conversionReport": {
                    "byAgent": [agent.to_dict() for agent in self.by_agent],
                    "byService": [stats.to_dict() for stats in self.by_service],
                },
                "revenueReport": [{"name": name, "value": value} for name, value in self.revenue.items()],
                "sourceAnalysis": [stats.to_dict() for stats in self.sources],
            }
        )
        return data


def build_report(
    leads: Sequence[Lead],
    agents: Sequence[User],
    filters: LeadFilters,
    now: Optional[datetime] = None,
) -> Report:
    """Filter the collection, then derive every report section from the filtered set."""

    now = now or utc_now()
    selected = filter_leads(leads, filters, now)
    converted = len(converted_leads(selected))
    return Report(
        filters=filters,
        total_leads=len(selected),
        converted_leads=converted,
        conversion_rate=conversion_rate(len(selected), converted),
        by_agent=agent_performance(selected, agents),
        by_service=conversion_by_service(selected),
        revenue=revenue_by_service(selected),
        sources=source_analysis(selected),
        generated_at=now,
    )


__all__ = [
    "AgentDashboard",
    "AgentPerformance",
    "DateRange",
    "GroupStats",
    "LeadFilters",
    "ManagerDashboard",
    "Report",
    "agent_dashboard",
    "agent_performance",
    "build_report",
    "conversion_by_service",
    "conversion_rate",
    "filter_leads",
    "leads_in_month",
    "manager_dashboard",
    "matches_search",
    "range_start",
    "revenue_by_service",
    "service_distribution",
    "source_analysis",
    "source_distribution",
    "status_distribution",
]
