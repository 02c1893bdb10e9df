"""
Compliance Verdict Model
Ephemeral result of a compliance gate evaluation
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List
from enum import Enum


class ViolationScope(str, Enum):
    """Lead-level violations block every channel; channel-level only one."""
    LEAD = "lead"
    CHANNEL = "channel"


class ViolationCode(str, Enum):
    DO_NOT_CONTACT = "do_not_contact"
    HUMAN_CONTROLLED = "human_controlled"
    NO_CALL_CONSENT = "no_call_consent"
    NO_SMS_CONSENT = "no_sms_consent"
    NO_EMAIL_ADDRESS = "no_email_address"
    NO_PHONE = "no_phone"
    CHANNEL_DISABLED = "channel_disabled"
    FREQUENCY_CAP = "frequency_cap_exceeded"
    QUIET_HOURS = "quiet_hours"


class Violation(BaseModel):
    code: ViolationCode
    message: str
    scope: ViolationScope = ViolationScope.CHANNEL


class ComplianceVerdict(BaseModel):
    """Result of a single compliance check for one lead and one channel."""

    channel: str
    passed: bool = True
    violations: List[Violation] = Field(default_factory=list)

    @classmethod
    def from_violations(cls, channel: str, violations: List[Violation]) -> "ComplianceVerdict":
        return cls(channel=channel, passed=not violations, violations=violations)

    @property
    def lead_blocked(self) -> bool:
        """True when the block applies to the lead globally, so no fallback may run."""
        return any(v.scope == ViolationScope.LEAD for v in self.violations)

    @property
    def violation_codes(self) -> List[str]:
        return [v.code.value for v in self.violations]

    def to_log(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "passed": self.passed,
            "violations": self.violation_codes,
        }
