"""
Agent Task Model
Represents a single scheduled outreach attempt in the task store
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, Optional, Set
from datetime import datetime, timezone
from enum import Enum

from leasing_outreach.domain.exceptions import InvalidTransitionError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentType(str, Enum):
    """Behavioral category of an outreach task"""
    RECAPTURE = "recapture"
    SHOWING_CONFIRMATION = "showing_confirmation"
    NO_SHOW_FOLLOWUP = "no_show_followup"
    WELCOME_SEQUENCE = "welcome_sequence"
    OUTBOUND_CALLBACK = "outbound_callback"
    SEND_APPLICATION = "send_application"
    NOTIFY = "notify"


class ActionType(str, Enum):
    """Channel a task acts through"""
    CALL = "call"
    SMS = "sms"
    EMAIL = "email"
    NOTIFY = "notify"


class TaskStatus(str, Enum):
    """Lifecycle status of a task"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: Set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
    TaskStatus.CANCELLED,
}

# pending -> in_progress -> {completed | failed | cancelled}
TASK_TRANSITIONS: Dict[TaskStatus, Set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: set(TERMINAL_STATUSES),
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
    TaskStatus.CANCELLED: set(),
}


def can_transition_task(current: TaskStatus, target: TaskStatus) -> bool:
    """Check whether a task may move from current to target status."""
    return TaskStatus(target) in TASK_TRANSITIONS[TaskStatus(current)]


class AgentTask(BaseModel):
    """
    A unit of scheduled outreach.

    Tasks are never re-executed once terminal: a retry is a new task with
    attempt_number + 1. Rows are never deleted so the chain stays auditable.
    """

    # Identity
    id: Optional[str] = Field(default=None, description="Task UUID (assigned by the store)")
    organization_id: str = Field(..., description="Tenant partition key")
    lead_id: str = Field(..., description="Lead this outreach targets")

    # Task definition
    agent_type: AgentType
    action_type: ActionType

    # Scheduling
    scheduled_for: datetime = Field(default_factory=utcnow)

    # Attempt tracking
    attempt_number: int = Field(default=1, ge=1)
    max_attempts: int = Field(default=1, ge=1)

    # Status
    status: TaskStatus = Field(default=TaskStatus.PENDING)

    # References to showing/property/call ids, trigger source, prior outcomes
    context: Dict[str, Any] = Field(default_factory=dict)

    # Timing
    created_at: datetime = Field(default_factory=utcnow)
    executed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"use_enum_values": False}

    @field_validator("scheduled_for", "created_at", "executed_at", "completed_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _attempt_within_max(self) -> "AgentTask":
        if self.attempt_number > self.max_attempts:
            raise ValueError(
                f"attempt_number {self.attempt_number} exceeds max_attempts {self.max_attempts}"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def has_attempts_remaining(self) -> bool:
        return self.attempt_number < self.max_attempts

    @property
    def showing_id(self) -> Optional[str]:
        return self.context.get("showing_id")

    @property
    def property_id(self) -> Optional[str]:
        return self.context.get("property_id") or self.context.get("interested_property_id")

    def is_due(self, now: Optional[datetime] = None) -> bool:
        """A task is eligible only while pending and once scheduled_for has passed."""
        now = now or utcnow()
        return self.status == TaskStatus.PENDING and self.scheduled_for <= now

    def transition(self, target: TaskStatus) -> None:
        """Apply a status transition in memory, enforcing monotonic order."""
        if not can_transition_task(self.status, target):
            raise InvalidTransitionError("task", self.status.value, TaskStatus(target).value)
        self.status = TaskStatus(target)

    def next_attempt(self, scheduled_for: datetime, context: Optional[Dict[str, Any]] = None) -> "AgentTask":
        """
        Build the follow-up task for this chain.

        Raises:
            ValueError: if this task is already the final attempt
        """
        if not self.has_attempts_remaining:
            raise ValueError("No attempts remaining for this task chain")

        next_context = {**self.context, **(context or {})}
        next_context["previous_task_id"] = self.id
        next_context["attempt_number"] = self.attempt_number + 1

        return AgentTask(
            organization_id=self.organization_id,
            lead_id=self.lead_id,
            agent_type=self.agent_type,
            action_type=self.action_type,
            scheduled_for=scheduled_for,
            attempt_number=self.attempt_number + 1,
            max_attempts=self.max_attempts,
            context=next_context,
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialize for the task store."""
        record = {
            "organization_id": self.organization_id,
            "lead_id": self.lead_id,
            "agent_type": self.agent_type.value,
            "action_type": self.action_type.value,
            "scheduled_for": self.scheduled_for.isoformat(),
            "attempt_number": self.attempt_number,
            "max_attempts": self.max_attempts,
            "status": self.status.value,
            "context": self.context,
            "created_at": self.created_at.isoformat(),
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if self.id:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "AgentTask":
        """Deserialize from a task store row."""
        data = dict(data)
        for dt_field in ["scheduled_for", "created_at", "executed_at", "completed_at"]:
            if data.get(dt_field) and isinstance(data[dt_field], str):
                data[dt_field] = datetime.fromisoformat(data[dt_field].replace("Z", "+00:00"))
        if data.get("created_at") is None:
            data.pop("created_at", None)
        data["context"] = data.get("context") or {}
        known = set(cls.model_fields)
        return cls(**{k: v for k, v in data.items() if k in known})

    def __repr__(self) -> str:
        task_id = self.id[:8] if self.id else "new"
        return (
            f"AgentTask(id={task_id}, "
            f"agent={self.agent_type.value}, "
            f"status={self.status.value}, "
            f"attempt={self.attempt_number}/{self.max_attempts})"
        )
