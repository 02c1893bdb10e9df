"""
Audit and Metering Records
Append-only rows written for every dispatch outcome
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from enum import Enum


class ActivityStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"
    PARTIAL = "partial"


class ActivityLogEntry(BaseModel):
    """One row in the operator activity feed. Never mutated."""

    organization_id: str
    agent_type: str
    action: str
    status: ActivityStatus
    message: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)
    lead_id: Optional[str] = None
    showing_id: Optional[str] = None
    task_id: Optional[str] = None
    execution_ms: Optional[int] = None

    def to_record(self) -> Dict[str, Any]:
        record = self.model_dump(mode="json")
        record["status"] = self.status.value
        return record


class CostRecord(BaseModel):
    """Per-action metering. Never mutated."""

    organization_id: str
    service: str
    usage_quantity: float
    usage_unit: str
    unit_cost: float
    total_cost: Optional[float] = None
    lead_id: Optional[str] = None
    communication_id: Optional[str] = None
    call_id: Optional[str] = None

    def model_post_init(self, __context: Any) -> None:
        if self.total_cost is None:
            self.total_cost = round(self.usage_quantity * self.unit_cost, 6)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class Communication(BaseModel):
    """Outbound or inbound message/call record tied to a lead."""

    organization_id: str
    lead_id: str
    channel: str
    direction: str = "outbound"
    body: Optional[str] = None
    subject: Optional[str] = None
    status: str = "sent"
    provider_ref: Optional[str] = None
    sent_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class CallRecord(BaseModel):
    """Completed voice call, written when the provider's result webhook arrives."""

    organization_id: str
    lead_id: str
    bland_call_id: str
    agent_type: Optional[str] = None
    direction: str = "outbound"
    phone_number: Optional[str] = None
    status: str = "completed"
    duration_seconds: int = 0
    recording_url: Optional[str] = None
    transcript: Optional[str] = None
    summary: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    cost_bland: float = 0.0
    cost_twilio: float = 0.0

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
