"""
Supabase Outreach Store
OutreachStore implementation over the Supabase PostgREST client
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from leasing_outreach.core.config import get_settings
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import (
    ActivityLogEntry,
    AgentTask,
    CallRecord,
    Communication,
    CostRecord,
    Lead,
    Organization,
    Property,
    Showing,
    TaskStatus,
)

logger = logging.getLogger(__name__)

TASKS = "agent_tasks"
LEADS = "leads"
SHOWINGS = "showings"
PROPERTIES = "properties"
ORGANIZATIONS = "organizations"
ORG_SETTINGS = "organization_settings"
CALLS = "calls"
COMMUNICATIONS = "communications"
CONSENT_LOG = "consent_log"
ACTIVITY_LOG = "agent_activity_log"
COST_RECORDS = "cost_records"
NOTIFICATIONS = "notifications"

PROPERTY_COLUMNS = (
    "id, organization_id, address, unit_number, city, state, bedrooms, bathrooms, "
    "rent_price, status, section_8_accepted, alternative_property_ids"
)


def _property(row: Dict[str, Any]) -> Property:
    row = dict(row)
    row["alternative_property_ids"] = row.get("alternative_property_ids") or []
    return Property(**row)


class SupabaseOutreachStore(OutreachStore):
    """
    Supabase-backed store.

    Query failures propagate to the dispatcher, which owns the failure path.
    """

    def __init__(self, client: Client):
        self._client = client

    # Tasks

    async def get_task(self, task_id: str) -> Optional[AgentTask]:
        response = self._client.table(TASKS).select("*").eq("id", task_id).limit(1).execute()
        if not response.data:
            return None
        return AgentTask.from_record(response.data[0])

    async def fetch_due_tasks(self, now: datetime, limit: int = 20) -> List[AgentTask]:
        response = (
            self._client.table(TASKS)
            .select("*")
            .eq("status", TaskStatus.PENDING.value)
            .lte("scheduled_for", now.isoformat())
            .order("scheduled_for")
            .limit(limit)
            .execute()
        )
        return [AgentTask.from_record(row) for row in response.data or []]

    async def claim_task(self, task_id: str, executed_at: datetime) -> bool:
        # Conditional update: only matches while the row is still pending
        response = (
            self._client.table(TASKS)
            .update({"status": TaskStatus.IN_PROGRESS.value, "executed_at": executed_at.isoformat()})
            .eq("id", task_id)
            .eq("status", TaskStatus.PENDING.value)
            .execute()
        )
        claimed = bool(response.data)
        if not claimed:
            logger.info(f"Task {task_id} already claimed elsewhere")
        return claimed

    async def finish_task(
        self,
        task_id: str,
        status: TaskStatus,
        completed_at: datetime,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        update: Dict[str, Any] = {
            "status": TaskStatus(status).value,
            "completed_at": completed_at.isoformat(),
        }
        if context is not None:
            update["context"] = context
        response = (
            self._client.table(TASKS)
            .update(update)
            .eq("id", task_id)
            .eq("status", TaskStatus.IN_PROGRESS.value)
            .execute()
        )
        return bool(response.data)

    async def insert_task(self, task: AgentTask) -> AgentTask:
        record = task.to_record()
        record.pop("executed_at", None)
        record.pop("completed_at", None)
        response = self._client.table(TASKS).insert(record).execute()
        if response.data:
            return AgentTask.from_record(response.data[0])
        return task

    # Leads / showings / properties

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        response = self._client.table(LEADS).select("*").eq("id", lead_id).limit(1).execute()
        if not response.data:
            return None
        return Lead.from_record(response.data[0])

    async def update_lead(self, lead_id: str, updates: Dict[str, Any]) -> None:
        self._client.table(LEADS).update(updates).eq("id", lead_id).execute()

    async def find_lead_by_phone(self, organization_id: str, phone: str) -> Optional[Lead]:
        response = (
            self._client.table(LEADS)
            .select("*")
            .eq("organization_id", organization_id)
            .eq("phone", phone)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return Lead.from_record(response.data[0])

    async def get_showing(self, showing_id: str) -> Optional[Showing]:
        response = self._client.table(SHOWINGS).select("*").eq("id", showing_id).limit(1).execute()
        if not response.data:
            return None
        return Showing.from_record(response.data[0])

    async def update_showing(self, showing_id: str, updates: Dict[str, Any]) -> None:
        self._client.table(SHOWINGS).update(updates).eq("id", showing_id).execute()

    async def has_active_future_showing(
        self,
        lead_id: str,
        now: datetime,
        exclude_showing_id: Optional[str] = None,
    ) -> bool:
        query = (
            self._client.table(SHOWINGS)
            .select("id")
            .eq("lead_id", lead_id)
            .in_("status", ["scheduled", "confirmed"])
            .gt("scheduled_at", now.isoformat())
        )
        if exclude_showing_id:
            query = query.neq("id", exclude_showing_id)
        response = query.limit(1).execute()
        return bool(response.data)

    async def get_next_scheduled_showing(self, lead_id: str, now: datetime) -> Optional[Showing]:
        response = (
            self._client.table(SHOWINGS)
            .select("*")
            .eq("lead_id", lead_id)
            .eq("status", "scheduled")
            .gt("scheduled_at", now.isoformat())
            .order("scheduled_at")
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return Showing.from_record(response.data[0])

    async def get_property(self, property_id: str) -> Optional[Property]:
        response = (
            self._client.table(PROPERTIES).select(PROPERTY_COLUMNS).eq("id", property_id).limit(1).execute()
        )
        if not response.data:
            return None
        return _property(response.data[0])

    async def get_properties(self, property_ids: List[str]) -> List[Property]:
        if not property_ids:
            return []
        response = self._client.table(PROPERTIES).select(PROPERTY_COLUMNS).in_("id", property_ids).execute()
        return [_property(row) for row in response.data or []]

    async def find_available_properties(
        self,
        organization_id: str,
        bedrooms: Optional[int],
        exclude_ids: Optional[List[str]] = None,
        limit: int = 3,
    ) -> List[Property]:
        query = (
            self._client.table(PROPERTIES)
            .select(PROPERTY_COLUMNS)
            .eq("organization_id", organization_id)
            .eq("status", "available")
        )
        if bedrooms is not None:
            query = query.eq("bedrooms", bedrooms)
        # Over-fetch so excluded ids do not shrink the result below limit
        response = query.order("rent_price").limit(limit + len(exclude_ids or [])).execute()
        excluded = set(exclude_ids or [])
        return [_property(row) for row in response.data or [] if row["id"] not in excluded][:limit]

    # Organization

    async def get_organization(self, organization_id: str) -> Optional[Organization]:
        response = self._client.table(ORGANIZATIONS).select("*").eq("id", organization_id).limit(1).execute()
        if not response.data:
            return None
        return Organization(**response.data[0])

    async def find_organization_by_sms_number(self, phone: str) -> Optional[Organization]:
        response = self._client.table(ORGANIZATIONS).select("*").eq("sms_from_number", phone).limit(1).execute()
        if not response.data:
            return None
        return Organization(**response.data[0])

    async def get_org_settings(self, organization_id: str) -> Dict[str, Any]:
        response = (
            self._client.table(ORG_SETTINGS)
            .select("key, value")
            .eq("organization_id", organization_id)
            .execute()
        )
        return {row["key"]: row["value"] for row in response.data or [] if row.get("key")}

    # Communications / calls

    async def get_recent_calls(self, lead_id: str, limit: int = 1) -> List[Dict[str, Any]]:
        response = (
            self._client.table(CALLS)
            .select("id, transcript, summary, property_id, status, created_at")
            .eq("lead_id", lead_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return response.data or []

    async def count_outbound_since(self, lead_id: str, channel: str, since: datetime) -> int:
        response = (
            self._client.table(COMMUNICATIONS)
            .select("id", count="exact")
            .eq("lead_id", lead_id)
            .eq("channel", channel)
            .eq("direction", "outbound")
            .gte("sent_at", since.isoformat())
            .execute()
        )
        if response.count is not None:
            return response.count
        return len(response.data or [])

    async def insert_communication(self, communication: Communication) -> Optional[str]:
        response = self._client.table(COMMUNICATIONS).insert(communication.to_record()).execute()
        return response.data[0].get("id") if response.data else None

    async def update_communication_by_ref(self, provider_ref: str, updates: Dict[str, Any]) -> None:
        self._client.table(COMMUNICATIONS).update(updates).eq("provider_ref", provider_ref).execute()

    async def insert_call(self, call: CallRecord) -> Optional[str]:
        response = self._client.table(CALLS).insert(call.to_record()).execute()
        return response.data[0].get("id") if response.data else None

    async def insert_consent_log(self, record: Dict[str, Any]) -> None:
        self._client.table(CONSENT_LOG).insert(record).execute()

    # Audit / metering / notifications

    async def insert_activity(self, entry: ActivityLogEntry) -> None:
        self._client.table(ACTIVITY_LOG).insert(entry.to_record()).execute()

    async def insert_cost(self, cost: CostRecord) -> None:
        self._client.table(COST_RECORDS).insert(cost.to_record()).execute()

    async def insert_notification(self, record: Dict[str, Any]) -> None:
        self._client.table(NOTIFICATIONS).insert(record).execute()


_store: Optional[SupabaseOutreachStore] = None


def get_supabase_store() -> SupabaseOutreachStore:
    """Get or create the SupabaseOutreachStore singleton."""
    global _store
    if _store is None:
        settings = get_settings()
        if not settings.supabase_url or not settings.supabase_service_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        _store = SupabaseOutreachStore(create_client(settings.supabase_url, settings.supabase_service_key))
    return _store
