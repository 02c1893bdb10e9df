"""
Lead Model
A prospective tenant moving through the leasing funnel
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum


class LeadStatus(str, Enum):
    """Funnel status, in funnel order"""
    NEW = "new"
    CONTACTED = "contacted"
    ENGAGED = "engaged"
    NURTURING = "nurturing"
    QUALIFIED = "qualified"
    SHOWING_SCHEDULED = "showing_scheduled"
    SHOWED = "showed"
    IN_APPLICATION = "in_application"
    CONVERTED = "converted"
    LOST = "lost"


FUNNEL_ORDER: List[LeadStatus] = [
    LeadStatus.NEW,
    LeadStatus.CONTACTED,
    LeadStatus.ENGAGED,
    LeadStatus.NURTURING,
    LeadStatus.QUALIFIED,
    LeadStatus.SHOWING_SCHEDULED,
    LeadStatus.SHOWED,
    LeadStatus.IN_APPLICATION,
    LeadStatus.CONVERTED,
]

CLOSED_STATUSES = {LeadStatus.CONVERTED, LeadStatus.LOST}


def funnel_rank(status: LeadStatus) -> int:
    """Position in the funnel; lost ranks below everything."""
    status = LeadStatus(status)
    if status == LeadStatus.LOST:
        return -1
    return FUNNEL_ORDER.index(status)


def can_transition_lead(current: LeadStatus, target: LeadStatus) -> bool:
    """
    Funnel order is a guideline, not enforced.

    Any open status may move anywhere; lost and converted are reachable from
    every status. A closed lead only moves again through an operator.
    """
    return LeadStatus(current) != LeadStatus(target)


def should_advance(current: LeadStatus, target: LeadStatus) -> bool:
    """Automated updates only move a lead forward, never backward."""
    current = LeadStatus(current)
    if current in CLOSED_STATUSES:
        return False
    return funnel_rank(target) > funnel_rank(current)


class Lead(BaseModel):
    """Prospective tenant record"""

    id: str
    organization_id: str

    # Contact
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    preferred_language: str = "en"

    # Consent
    sms_consent: bool = False
    sms_consent_at: Optional[datetime] = None
    call_consent: bool = False
    call_consent_at: Optional[datetime] = None
    do_not_contact: bool = False

    # Funnel
    status: LeadStatus = LeadStatus.NEW
    is_human_controlled: bool = False
    interested_property_id: Optional[str] = None
    source: Optional[str] = None

    model_config = {"extra": "ignore"}

    @property
    def display_name(self) -> str:
        if self.first_name:
            return self.first_name
        if self.full_name:
            return self.full_name.split(" ")[0]
        return "there"

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    def has_consent_for(self, channel: str) -> bool:
        """Explicit consent for the channel. Email needs an address, not opt-in."""
        if channel == "call":
            return self.call_consent
        if channel == "sms":
            return self.sms_consent
        if channel == "email":
            return bool(self.email)
        return True

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Lead":
        return cls(**data)
