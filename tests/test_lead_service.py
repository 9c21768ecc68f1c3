"""
Tests for `services/lead_service.py`.

Covers:
- Capture with and without bank details, including partial success
- Status transitions and the converted_at stamp
- Call note appends (full history written back, author is the username)
- Reassignment and deletion are manager-only
- Visibility and work permissions per role
"""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from domain.bank_details import AccountType, BankAccount, BankDetails
from domain.lead import CallNote, LeadStatus
from domain.user import Principal
from repositories.client import RepositoryError
from services import lead_service
from services.auth_service import PermissionDeniedError
from services.lead_service import LeadNotFoundError, LeadUpdateError

from conftest import AGENT_ID, MANAGER_ID, NOW, OTHER_AGENT_ID

ACCOUNT = BankAccount(bank_name="Capitec", account_number="1234567890", branch_code="470010")


class TestCapture:
    def test_capture_without_bank_details(self, repo, agent_principal, make_draft):
        result = lead_service.capture_lead(repo, agent_principal, make_draft())

        assert result.bank_details_saved is True
        assert result.partial is False
        assert result.lead.lead_number == "LEAD-2025-0001"
        assert repo.leads == [result.lead]

    def test_capture_with_bank_details(self, repo, fake_client, agent_principal, make_draft):
        result = lead_service.capture_lead(repo, agent_principal, make_draft(), ACCOUNT)

        assert result.bank_details_saved is True
        rows = fake_client.rows("bank_details")
        assert len(rows) == 1
        assert rows[0]["lead_id"] == str(result.lead.lead_id)
        assert rows[0]["account_type"] == "Savings"
        assert rows[0]["captured_by"] == str(AGENT_ID)

    def test_bank_failure_is_partial_success(self, repo, fake_client, agent_principal, make_draft):
        """The lead stays saved when only the bank details fail."""
        fake_client.failures[("bank_details", "upsert")] = "value too long"

        result = lead_service.capture_lead(repo, agent_principal, make_draft(), ACCOUNT)

        assert result.partial is True
        assert "value too long" in result.bank_details_error
        assert len(fake_client.rows("leads")) == 1
        assert fake_client.rows("bank_details") == []

    def test_lead_failure_raises(self, repo, fake_client, agent_principal, make_draft):
        fake_client.failures[("leads", "insert")] = "insert refused"

        with pytest.raises(RepositoryError):
            lead_service.capture_lead(repo, agent_principal, make_draft(), ACCOUNT)
        assert fake_client.rows("bank_details") == []

    def test_capture_in_someone_elses_name_refused(self, repo, agent_principal, make_draft):
        with pytest.raises(PermissionDeniedError):
            lead_service.capture_lead(repo, agent_principal, make_draft(captured_by=OTHER_AGENT_ID))


class TestStatus:
    def test_converted_stamps_converted_at(self, repo, agent_principal, seed_lead):
        lead = seed_lead()

        lead_service.change_status(repo, agent_principal, lead.lead_id, LeadStatus.CONVERTED)

        updated = repo.get(lead.lead_id)
        assert updated.status is LeadStatus.CONVERTED
        assert updated.converted_at == NOW

    def test_leaving_converted_keeps_converted_at(self, repo, agent_principal, seed_lead):
        stamped = NOW - timedelta(days=3)
        lead = seed_lead(status=LeadStatus.CONVERTED, converted_at=stamped)

        lead_service.change_status(repo, agent_principal, lead.lead_id, LeadStatus.LOST)

        updated = repo.get(lead.lead_id)
        assert updated.status is LeadStatus.LOST
        assert updated.converted_at == stamped

    def test_any_status_may_follow_any_other(self, repo, agent_principal, seed_lead):
        lead = seed_lead(status=LeadStatus.LOST)
        lead_service.change_status(repo, agent_principal, lead.lead_id, LeadStatus.NEW)
        assert repo.get(lead.lead_id).status is LeadStatus.NEW

    def test_status_accepts_string_value(self, repo, agent_principal, seed_lead):
        lead = seed_lead()
        lead_service.change_status(repo, agent_principal, lead.lead_id, "Contacted")
        assert repo.get(lead.lead_id).status is LeadStatus.CONTACTED

    def test_unknown_lead(self, repo, agent_principal):
        with pytest.raises(LeadNotFoundError):
            lead_service.change_status(repo, agent_principal, uuid4(), LeadStatus.CONTACTED)

    def test_agent_cannot_touch_other_agents_lead(self, repo, agent_principal, seed_lead):
        lead = seed_lead(captured_by=OTHER_AGENT_ID, assigned_to=OTHER_AGENT_ID)
        with pytest.raises(PermissionDeniedError):
            lead_service.change_status(repo, agent_principal, lead.lead_id, LeadStatus.CONTACTED)

    def test_assigned_agent_may_work_lead(self, repo, agent_principal, seed_lead):
        lead = seed_lead(captured_by=OTHER_AGENT_ID, assigned_to=AGENT_ID)
        lead_service.change_status(repo, agent_principal, lead.lead_id, LeadStatus.CONTACTED)
        assert repo.get(lead.lead_id).status is LeadStatus.CONTACTED


class TestCallNotes:
    def test_append_writes_full_history(self, repo, fake_client, agent_principal, seed_lead):
        existing = CallNote("n1", "Left voicemail", "lerato", NOW - timedelta(days=1))
        lead = seed_lead(call_history=(existing,))

        note = lead_service.append_call_note(
            repo, agent_principal, lead.lead_id, "  Client wants a quote  ", id_factory=lambda: "n2"
        )

        assert note == CallNote("n2", "Client wants a quote", "thabo", NOW)
        stored = fake_client.rows("leads")[0]["call_history"]
        assert stored == [existing.to_record(), note.to_record()]
        assert repo.get(lead.lead_id).call_history == (existing, note)

    def test_author_is_username(self, repo, manager_principal, seed_lead):
        lead = seed_lead()
        note = lead_service.append_call_note(repo, manager_principal, lead.lead_id, "Escalated")
        assert note.created_by == "nomsa"

    def test_blank_note_rejected(self, repo, agent_principal, seed_lead):
        lead = seed_lead()
        with pytest.raises(ValueError):
            lead_service.append_call_note(repo, agent_principal, lead.lead_id, "   ")


class TestReassign:
    def test_manager_reassigns_to_active_agent(self, repo, manager_principal, other_agent, seed_lead):
        lead = seed_lead()

        lead_service.reassign_lead(repo, manager_principal, lead.lead_id, other_agent.user_id)

        updated = repo.get(lead.lead_id)
        assert updated.assigned_to == OTHER_AGENT_ID
        assert updated.captured_by == AGENT_ID

    def test_agent_cannot_reassign(self, repo, agent_principal, other_agent, seed_lead):
        lead = seed_lead()
        with pytest.raises(PermissionDeniedError):
            lead_service.reassign_lead(repo, agent_principal, lead.lead_id, other_agent.user_id)

    def test_inactive_agent_refused(self, repo, manager_principal, inactive_agent, seed_lead):
        lead = seed_lead()
        with pytest.raises(LeadUpdateError, match="inactive"):
            lead_service.reassign_lead(repo, manager_principal, lead.lead_id, inactive_agent.user_id)

    def test_manager_is_not_an_agent(self, repo, manager_principal, seed_lead):
        lead = seed_lead()
        with pytest.raises(LeadUpdateError, match="Not an agent"):
            lead_service.reassign_lead(repo, manager_principal, lead.lead_id, MANAGER_ID)


class TestDelete:
    def test_manager_deletes(self, repo, manager_principal, seed_lead):
        lead = seed_lead()
        lead_service.delete_lead(repo, manager_principal, lead.lead_id)
        assert repo.leads == []

    def test_agent_cannot_delete(self, repo, fake_client, agent_principal, seed_lead):
        lead = seed_lead()
        with pytest.raises(PermissionDeniedError):
            lead_service.delete_lead(repo, agent_principal, lead.lead_id)
        assert len(fake_client.rows("leads")) == 1


class TestBankDetails:
    def test_save_overwrites_previous_record(self, repo, fake_client, agent_principal, seed_lead):
        lead = seed_lead()
        first = BankDetails.for_lead(lead.lead_id, ACCOUNT, AGENT_ID)
        second = BankDetails.for_lead(
            lead.lead_id, BankAccount("FNB", "62000000001", "250655", AccountType.CHEQUE), AGENT_ID
        )

        lead_service.attach_bank_details(repo, agent_principal, lead, first)
        lead_service.attach_bank_details(repo, agent_principal, lead, second)

        assert len(fake_client.rows("bank_details")) == 1
        assert lead_service.read_bank_details(repo, agent_principal, lead) == second

    def test_details_for_another_lead_rejected(self, repo, agent_principal, seed_lead):
        lead = seed_lead()
        with pytest.raises(LeadUpdateError, match="different lead"):
            lead_service.attach_bank_details(
                repo, agent_principal, lead, BankDetails.for_lead(uuid4(), ACCOUNT)
            )

    def test_read_absent_or_failing_returns_none(self, repo, fake_client, agent_principal, seed_lead):
        lead = seed_lead()
        assert lead_service.read_bank_details(repo, agent_principal, lead) is None

        fake_client.failures[("bank_details", "select")] = "boom"
        assert lead_service.read_bank_details(repo, agent_principal, lead) is None


class TestVisibility:
    def test_manager_sees_everything(self, manager_principal, make_lead):
        leads = [make_lead(), make_lead(captured_by=OTHER_AGENT_ID)]
        assert lead_service.visible_leads(manager_principal, leads) == leads

    def test_agent_sees_own_captures(self, agent_principal, make_lead):
        own = make_lead()
        other = make_lead(captured_by=OTHER_AGENT_ID, assigned_to=OTHER_AGENT_ID)
        assert lead_service.visible_leads(agent_principal, [own, other]) == [own]

    def test_ensure_can_work_lead(self, agent_principal, manager_principal, make_lead):
        other = make_lead(captured_by=OTHER_AGENT_ID, assigned_to=OTHER_AGENT_ID)
        lead_service.ensure_can_work_lead(manager_principal, other)
        with pytest.raises(PermissionDeniedError):
            lead_service.ensure_can_work_lead(agent_principal, other)
