"""
Compliance Gate
Decides whether an outreach action toward a lead is permitted right now
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from leasing_outreach.domain.exceptions import NotFoundError
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import (
    ComplianceVerdict,
    Lead,
    OutreachRules,
    Violation,
    ViolationCode,
    ViolationScope,
)
from leasing_outreach.domain.services.organization_settings import OrganizationSettingsService

logger = logging.getLogger(__name__)

# Email is not subject to time-of-day restrictions
QUIET_HOURS_CHANNELS = {"call", "sms"}


HUMAN_CONTROL = Violation(
    code=ViolationCode.HUMAN_CONTROLLED,
    message="Lead is under human control",
    scope=ViolationScope.LEAD,
)


def human_control_hold(lead: Lead, channel: str) -> Optional[ComplianceVerdict]:
    """
    Blocking verdict for a lead under human control, else None.

    Applies to every task type, including operator notifications, so it is
    checked before any per-channel evaluation.
    """
    if not lead.is_human_controlled:
        return None
    return ComplianceVerdict.from_violations(channel, [HUMAN_CONTROL])


def evaluate(
    lead: Lead,
    channel: str,
    rules: OutreachRules,
    sent_last_24h: int = 0,
    now: Optional[datetime] = None,
) -> ComplianceVerdict:
    """
    Evaluate the compliance rules for one lead and channel.

    Pure: every input is a snapshot loaded by the caller.

    Rules checked:
    1. Lead not flagged do-not-contact (lead level)
    2. Lead not human-controlled (lead level)
    3. Explicit consent / address present for the channel
    4. Organization has the channel enabled
    5. Daily frequency cap not exceeded
    6. Inside the contact window (call and SMS only)
    """
    now = now or datetime.now(timezone.utc)
    violations: List[Violation] = []

    if lead.do_not_contact:
        violations.append(Violation(
            code=ViolationCode.DO_NOT_CONTACT,
            message="Lead is flagged do-not-contact",
            scope=ViolationScope.LEAD,
        ))
    if lead.is_human_controlled:
        violations.append(HUMAN_CONTROL)

    if channel in ("call", "sms") and not lead.phone:
        violations.append(Violation(code=ViolationCode.NO_PHONE, message="Lead has no phone number"))
    elif channel == "call" and not lead.call_consent:
        violations.append(Violation(code=ViolationCode.NO_CALL_CONSENT, message="No call consent on file"))
    elif channel == "sms" and not lead.sms_consent:
        violations.append(Violation(code=ViolationCode.NO_SMS_CONSENT, message="No SMS consent on file"))
    elif channel == "email" and not lead.email:
        violations.append(Violation(code=ViolationCode.NO_EMAIL_ADDRESS, message="Lead has no email address"))

    if not rules.channel_enabled(channel):
        violations.append(Violation(
            code=ViolationCode.CHANNEL_DISABLED,
            message=f"{channel} outreach is disabled for this organization",
        ))

    cap = rules.daily_cap_for(channel)
    if cap is not None and sent_last_24h >= cap:
        violations.append(Violation(
            code=ViolationCode.FREQUENCY_CAP,
            message=f"{sent_last_24h}/{cap} {channel} attempts in the last 24h",
        ))

    if channel in QUIET_HOURS_CHANNELS:
        in_window, window_reason = rules.is_within_contact_window(now)
        if not in_window:
            violations.append(Violation(code=ViolationCode.QUIET_HOURS, message=window_reason))

    return ComplianceVerdict.from_violations(channel, violations)


class ComplianceGate:
    """
    Loads fresh lead and settings state and evaluates compliance.

    Never caches: consent or do-not-contact may change between scheduling and
    execution, so every attempt re-reads the store.
    """

    def __init__(self, store: OutreachStore, settings: Optional[OrganizationSettingsService] = None):
        self._store = store
        self._settings = settings or OrganizationSettingsService(store)

    async def check(
        self,
        organization_id: str,
        lead_id: str,
        action_type: str,
        agent_type: str,
        now: Optional[datetime] = None,
    ) -> ComplianceVerdict:
        """
        Check whether action_type toward lead_id is permitted now.

        Raises:
            NotFoundError: if the lead no longer exists
        """
        now = now or datetime.now(timezone.utc)

        lead = await self._store.get_lead(lead_id)
        if lead is None:
            raise NotFoundError("lead", lead_id)

        rules = await self._settings.get_rules(organization_id)
        sent = await self._store.count_outbound_since(lead_id, action_type, now - timedelta(hours=24))

        verdict = evaluate(lead, action_type, rules, sent_last_24h=sent, now=now)
        if not verdict.passed:
            logger.info(
                f"Compliance blocked {agent_type}/{action_type} for lead {lead_id}: "
                f"{verdict.violation_codes}"
            )
        return verdict
