"""
Showing Model
A scheduled property visit and its lifecycle
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Set
from datetime import datetime, timezone
from enum import Enum

from leasing_outreach.domain.exceptions import InvalidTransitionError


class ShowingStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


ACTIVE_SHOWING_STATUSES: Set[ShowingStatus] = {ShowingStatus.SCHEDULED, ShowingStatus.CONFIRMED}

SHOWING_TRANSITIONS: Dict[ShowingStatus, Set[ShowingStatus]] = {
    ShowingStatus.SCHEDULED: {
        ShowingStatus.CONFIRMED,
        ShowingStatus.COMPLETED,
        ShowingStatus.NO_SHOW,
        ShowingStatus.CANCELLED,
        ShowingStatus.RESCHEDULED,
    },
    ShowingStatus.CONFIRMED: {
        ShowingStatus.COMPLETED,
        ShowingStatus.NO_SHOW,
        ShowingStatus.CANCELLED,
        ShowingStatus.RESCHEDULED,
    },
    ShowingStatus.RESCHEDULED: {ShowingStatus.CANCELLED},
    ShowingStatus.COMPLETED: set(),
    ShowingStatus.NO_SHOW: set(),
    ShowingStatus.CANCELLED: set(),
}


def can_transition_showing(current: ShowingStatus, target: ShowingStatus) -> bool:
    return ShowingStatus(target) in SHOWING_TRANSITIONS[ShowingStatus(current)]


class Showing(BaseModel):
    """Scheduled property visit"""

    id: str
    organization_id: Optional[str] = None
    lead_id: str
    property_id: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: int = 30
    status: ShowingStatus = ShowingStatus.SCHEDULED
    confirmation_attempts: int = 0
    last_confirmation_attempt_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    model_config = {"extra": "ignore"}

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SHOWING_STATUSES

    def is_past(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.scheduled_at <= now

    def can_confirm(self, now: Optional[datetime] = None) -> bool:
        """A showing whose time has passed can never become confirmed."""
        return (
            self.status == ShowingStatus.SCHEDULED
            and not self.is_past(now)
        )

    def transition(self, target: ShowingStatus, now: Optional[datetime] = None) -> None:
        target = ShowingStatus(target)
        if target == ShowingStatus.CONFIRMED and not self.can_confirm(now):
            raise InvalidTransitionError("showing", self.status.value, target.value)
        if not can_transition_showing(self.status, target):
            raise InvalidTransitionError("showing", self.status.value, target.value)
        self.status = target

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Showing":
        data = dict(data)
        if isinstance(data.get("scheduled_at"), str):
            data["scheduled_at"] = datetime.fromisoformat(data["scheduled_at"].replace("Z", "+00:00"))
        if data.get("confirmation_attempts") is None:
            data["confirmation_attempts"] = 0
        return cls(**data)
