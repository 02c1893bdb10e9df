"""
Unit Tests for SupabaseOutreachStore
Query construction and row mapping against a mocked Supabase client
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from leasing_outreach.domain.models import AgentType, Communication, TaskStatus
from leasing_outreach.infrastructure.storage.supabase_store import SupabaseOutreachStore

from fakes import NOW, make_task


CHAIN_METHODS = ("select", "eq", "neq", "lte", "gt", "gte", "in_", "order", "limit", "update", "insert")


def _query(data=None, count=None):
    """Query builder mock whose filter methods chain back to itself."""
    query = MagicMock()
    for name in CHAIN_METHODS:
        getattr(query, name).return_value = query
    query.execute.return_value = MagicMock(data=data if data is not None else [], count=count)
    return query


def _store(data=None, count=None):
    query = _query(data, count)
    client = MagicMock()
    client.table.return_value = query
    return SupabaseOutreachStore(client), client, query


TASK_ROW = {
    "id": "task-1",
    "organization_id": "org-1",
    "lead_id": "lead-1",
    "agent_type": "showing_confirmation",
    "action_type": "call",
    "scheduled_for": "2025-03-11T18:00:00+00:00",
    "attempt_number": 2,
    "max_attempts": 3,
    "status": "pending",
    "context": None,
    "created_at": "2025-03-10T12:00:00Z",
    "executed_at": None,
    "completed_at": None,
}


class TestTaskQueries:
    """Tests for task persistence"""

    @pytest.mark.asyncio
    async def test_fetch_due_tasks(self):
        store, client, query = _store([TASK_ROW])

        tasks = await store.fetch_due_tasks(NOW, limit=5)

        client.table.assert_called_with("agent_tasks")
        query.eq.assert_called_with("status", "pending")
        query.lte.assert_called_with("scheduled_for", NOW.isoformat())
        query.order.assert_called_with("scheduled_for")
        query.limit.assert_called_with(5)
        assert tasks[0].agent_type == AgentType.SHOWING_CONFIRMATION
        assert tasks[0].context == {}
        assert tasks[0].scheduled_for == NOW

    @pytest.mark.asyncio
    async def test_claim_is_conditional_on_pending(self):
        store, _, query = _store([{"id": "task-1"}])

        assert await store.claim_task("task-1", NOW) is True

        update = query.update.call_args.args[0]
        assert update == {"status": "in_progress", "executed_at": NOW.isoformat()}
        assert query.eq.call_args_list[-1].args == ("status", "pending")

    @pytest.mark.asyncio
    async def test_claim_lost_when_no_row_matches(self):
        store, _, _ = _store([])
        assert await store.claim_task("task-1", NOW) is False

    @pytest.mark.asyncio
    async def test_finish_only_from_in_progress(self):
        store, _, query = _store([{"id": "task-1"}])

        assert await store.finish_task("task-1", TaskStatus.COMPLETED, NOW, context={"result": {}})

        update = query.update.call_args.args[0]
        assert update["status"] == "completed"
        assert update["context"] == {"result": {}}
        assert query.eq.call_args_list[-1].args == ("status", "in_progress")

    @pytest.mark.asyncio
    async def test_insert_task_returns_stored_row(self):
        store, _, query = _store([{**TASK_ROW, "id": "task-new"}])

        saved = await store.insert_task(make_task(AgentType.SHOWING_CONFIRMATION, max_attempts=3))

        record = query.insert.call_args.args[0]
        assert "executed_at" not in record
        assert record["agent_type"] == "showing_confirmation"
        assert saved.id == "task-new"

    @pytest.mark.asyncio
    async def test_get_task_missing(self):
        store, _, _ = _store([])
        assert await store.get_task("nope") is None


class TestEntityQueries:
    """Tests for leads, showings, properties and settings"""

    @pytest.mark.asyncio
    async def test_get_lead_ignores_extra_columns(self):
        store, _, _ = _store([{"id": "lead-1", "organization_id": "org-1", "status": "engaged", "created_at": "x"}])

        lead = await store.get_lead("lead-1")

        assert lead.status.value == "engaged"

    @pytest.mark.asyncio
    async def test_org_settings_as_dict(self):
        store, client, _ = _store([
            {"key": "max_calls_per_day", "value": 2},
            {"key": "working_days", "value": [1, 2, 3]},
            {"key": None, "value": "ignored"},
        ])

        settings = await store.get_org_settings("org-1")

        client.table.assert_called_with("organization_settings")
        assert settings == {"max_calls_per_day": 2, "working_days": [1, 2, 3]}

    @pytest.mark.asyncio
    async def test_find_available_properties_excludes_ids(self):
        rows = [
            {"id": "prop-1", "address": "123 Main St", "status": "available", "alternative_property_ids": None},
            {"id": "prop-2", "address": "9 Elm Ave", "status": "available", "alternative_property_ids": None},
        ]
        store, _, query = _store(rows)

        props = await store.find_available_properties("org-1", 2, exclude_ids=["prop-1"], limit=3)

        assert [p.id for p in props] == ["prop-2"]
        query.limit.assert_called_with(4)
        assert props[0].alternative_property_ids == []

    @pytest.mark.asyncio
    async def test_get_properties_empty_ids_skips_query(self):
        store, client, _ = _store()
        assert await store.get_properties([]) == []
        client.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_active_future_showing_excludes_current(self):
        store, _, query = _store([{"id": "showing-2"}])

        assert await store.has_active_future_showing("lead-1", NOW, exclude_showing_id="showing-1")

        query.in_.assert_called_with("status", ["scheduled", "confirmed"])
        query.neq.assert_called_with("id", "showing-1")

    @pytest.mark.asyncio
    async def test_find_lead_by_phone_scoped_to_org(self):
        store, client, query = _store([{"id": "lead-1", "organization_id": "org-1", "phone": "+12165550101"}])

        lead = await store.find_lead_by_phone("org-1", "+12165550101")

        client.table.assert_called_with("leads")
        assert query.eq.call_args_list[-2].args == ("organization_id", "org-1")
        assert query.eq.call_args_list[-1].args == ("phone", "+12165550101")
        assert lead.id == "lead-1"

    @pytest.mark.asyncio
    async def test_find_lead_by_phone_missing(self):
        store, _, _ = _store()
        assert await store.find_lead_by_phone("org-1", "+12165550999") is None

    @pytest.mark.asyncio
    async def test_next_scheduled_showing_is_soonest_future(self):
        row = {
            "id": "showing-1",
            "organization_id": "org-1",
            "lead_id": "lead-1",
            "property_id": "prop-1",
            "scheduled_at": "2025-03-12T18:00:00Z",
            "status": "scheduled",
            "confirmation_attempts": None,
        }
        store, client, query = _store([row])

        showing = await store.get_next_scheduled_showing("lead-1", NOW)

        client.table.assert_called_with("showings")
        query.gt.assert_called_with("scheduled_at", NOW.isoformat())
        query.order.assert_called_with("scheduled_at")
        query.limit.assert_called_with(1)
        assert showing.id == "showing-1"
        assert showing.confirmation_attempts == 0

    @pytest.mark.asyncio
    async def test_organization_by_sms_number(self):
        store, client, query = _store([{"id": "org-1", "name": "Rent Finder", "sms_from_number": "+12165559999"}])

        org = await store.find_organization_by_sms_number("+12165559999")

        client.table.assert_called_with("organizations")
        query.eq.assert_called_with("sms_from_number", "+12165559999")
        assert org.id == "org-1"


class TestCommunicationQueries:
    """Tests for communications and frequency counting"""

    @pytest.mark.asyncio
    async def test_count_uses_exact_count(self):
        store, _, query = _store([], count=4)

        assert await store.count_outbound_since("lead-1", "sms", NOW) == 4

        query.select.assert_called_with("id", count="exact")
        query.gte.assert_called_with("sent_at", NOW.isoformat())

    @pytest.mark.asyncio
    async def test_count_falls_back_to_rows(self):
        store, _, _ = _store([{"id": 1}, {"id": 2}], count=None)
        assert await store.count_outbound_since("lead-1", "call", NOW) == 2

    @pytest.mark.asyncio
    async def test_insert_communication_returns_id(self):
        store, _, query = _store([{"id": "comm-9"}])
        communication = Communication(
            organization_id="org-1",
            lead_id="lead-1",
            channel="sms",
            body="Hi",
            sent_at=datetime(2025, 3, 11, 18, 0, tzinfo=timezone.utc),
        )

        assert await store.insert_communication(communication) == "comm-9"
        assert query.insert.call_args.args[0]["sent_at"] == "2025-03-11T18:00:00Z"

    @pytest.mark.asyncio
    async def test_query_errors_propagate(self):
        store, _, query = _store()
        query.execute.side_effect = RuntimeError("PGRST connection error")

        with pytest.raises(RuntimeError):
            await store.get_lead("lead-1")
