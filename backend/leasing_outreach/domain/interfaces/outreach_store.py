"""
Outreach Store Interface
Abstract durable store for tasks, leads, showings and audit rows
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

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


class OutreachStore(ABC):
    """
    Abstract base class for the relational store backing the dispatcher.

    Every table is partitioned by organization_id. The only concurrency
    control point is claim_task, which must be an atomic conditional update.
    """

    # Tasks

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[AgentTask]:
        pass

    @abstractmethod
    async def fetch_due_tasks(self, now: datetime, limit: int = 20) -> List[AgentTask]:
        """Pending tasks with scheduled_for <= now, oldest first."""
        pass

    @abstractmethod
    async def claim_task(self, task_id: str, executed_at: datetime) -> bool:
        """
        Move a task from pending to in_progress.

        Returns:
            False if the task was no longer pending (claimed elsewhere)
        """
        pass

    @abstractmethod
    async def finish_task(
        self,
        task_id: str,
        status: TaskStatus,
        completed_at: datetime,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Move an in_progress task to a terminal status."""
        pass

    @abstractmethod
    async def insert_task(self, task: AgentTask) -> AgentTask:
        """Persist a new pending task and return it with its id."""
        pass

    # Leads / showings / properties

    @abstractmethod
    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        pass

    @abstractmethod
    async def update_lead(self, lead_id: str, updates: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def find_lead_by_phone(self, organization_id: str, phone: str) -> Optional[Lead]:
        """Lead in the organization whose phone matches an E.164 number."""
        pass

    @abstractmethod
    async def get_showing(self, showing_id: str) -> Optional[Showing]:
        pass

    @abstractmethod
    async def update_showing(self, showing_id: str, updates: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def has_active_future_showing(
        self,
        lead_id: str,
        now: datetime,
        exclude_showing_id: Optional[str] = None,
    ) -> bool:
        """True if the lead has a scheduled/confirmed showing after now."""
        pass

    @abstractmethod
    async def get_next_scheduled_showing(self, lead_id: str, now: datetime) -> Optional[Showing]:
        """Earliest still-unconfirmed showing after now."""
        pass

    @abstractmethod
    async def get_property(self, property_id: str) -> Optional[Property]:
        pass

    @abstractmethod
    async def get_properties(self, property_ids: List[str]) -> List[Property]:
        pass

    @abstractmethod
    async def find_available_properties(
        self,
        organization_id: str,
        bedrooms: Optional[int],
        exclude_ids: Optional[List[str]] = None,
        limit: int = 3,
    ) -> List[Property]:
        """Available properties with the given bedroom count, cheapest first."""
        pass

    # Organization

    @abstractmethod
    async def get_organization(self, organization_id: str) -> Optional[Organization]:
        pass

    @abstractmethod
    async def find_organization_by_sms_number(self, phone: str) -> Optional[Organization]:
        """Organization that sends SMS from the given number."""
        pass

    @abstractmethod
    async def get_org_settings(self, organization_id: str) -> Dict[str, Any]:
        """Raw key/value organization settings."""
        pass

    # Communications / calls

    @abstractmethod
    async def get_recent_calls(self, lead_id: str, limit: int = 1) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def count_outbound_since(self, lead_id: str, channel: str, since: datetime) -> int:
        pass

    @abstractmethod
    async def insert_communication(self, communication: Communication) -> Optional[str]:
        pass

    @abstractmethod
    async def update_communication_by_ref(self, provider_ref: str, updates: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def insert_call(self, call: CallRecord) -> Optional[str]:
        pass

    @abstractmethod
    async def insert_consent_log(self, record: Dict[str, Any]) -> None:
        pass

    # Audit / metering / notifications

    @abstractmethod
    async def insert_activity(self, entry: ActivityLogEntry) -> None:
        pass

    @abstractmethod
    async def insert_cost(self, cost: CostRecord) -> None:
        pass

    @abstractmethod
    async def insert_notification(self, record: Dict[str, Any]) -> None:
        pass
