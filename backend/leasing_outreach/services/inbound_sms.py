"""
Inbound SMS Processing
Applies a lead's text reply: STOP/START consent keywords, HELP, YES/NO
showing replies, and plain conversation
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from leasing_outreach.domain.interfaces.channel_provider import mask_phone, normalize_phone
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import (
    ActivityStatus,
    Communication,
    Lead,
    LeadStatus,
    Organization,
    ShowingStatus,
    should_advance,
)
from leasing_outreach.services.activity_logger import ActivityLogger
from leasing_outreach.services.outreach_triggers import OutreachTriggers

logger = logging.getLogger(__name__)

AGENT_KEY = "sms_inbound"
OPT_OUT_LINE = "Reply STOP to unsubscribe."

STOP_KEYWORDS = {"STOP", "STOPALL", "UNSUBSCRIBE", "CANCEL", "END", "QUIT"}
START_KEYWORDS = {"START", "UNSTOP"}


@dataclass
class InboundSMSResult:
    """What was done with one inbound text, and the reply to send back (if any)."""
    action: str
    reply: Optional[str] = None
    lead_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, "lead_id": self.lead_id, "replied": self.reply is not None, **self.details}


class InboundSMSProcessor:
    """
    Handles one inbound text from the SMS provider.

    The organization is found by the number the text was sent to and the
    lead by the sender's number, both normalized to E.164.
    """

    def __init__(
        self,
        store: OutreachStore,
        triggers: Optional[OutreachTriggers] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._triggers = triggers or OutreachTriggers(store, clock=self._clock)
        self._activity = ActivityLogger(store)

    async def process(
        self,
        from_number: str,
        to_number: str,
        body: str,
        message_sid: Optional[str] = None,
    ) -> InboundSMSResult:
        sender = normalize_phone(from_number or "")
        receiver = normalize_phone(to_number or "")
        text = (body or "").strip()
        keyword = text.upper()

        org = await self._store.find_organization_by_sms_number(receiver)
        if org is None:
            logger.warning(f"Inbound SMS to unknown number {mask_phone(receiver)}")
            return InboundSMSResult(action="unknown_organization")

        lead = await self._store.find_lead_by_phone(org.id, sender)
        logger.info(
            f"Inbound SMS for org {org.id} from {mask_phone(sender)} "
            f"(lead={lead.id if lead else None}, keyword={keyword if len(keyword) <= 12 else '-'})"
        )

        if keyword in STOP_KEYWORDS:
            return await self._set_consent(org, lead, sender, granted=False)
        if keyword in START_KEYWORDS:
            return await self._set_consent(org, lead, sender, granted=True)
        if keyword == "HELP":
            await self._log(org, "sms_help_received", "Help request received", {"phone": mask_phone(sender)})
            return InboundSMSResult(
                action="help",
                reply=f"Thanks for reaching out! Call us at {_org_phone(org)} for assistance. {OPT_OUT_LINE}",
                lead_id=lead.id if lead else None,
            )

        if lead is not None and keyword in ("YES", "NO"):
            result = await self._showing_reply(org, lead, keyword)
            if result is not None:
                return result

        return await self._conversation(org, lead, sender, receiver, text, message_sid)

    async def _set_consent(
        self,
        org: Organization,
        lead: Optional[Lead],
        sender: str,
        granted: bool,
    ) -> InboundSMSResult:
        action = "sms_start_received" if granted else "sms_stop_received"
        now = self._clock()
        if lead is not None:
            await self._store.update_lead(lead.id, {
                "sms_consent": granted,
                "sms_consent_at": now.isoformat(),
            })
            await self._store.insert_consent_log({
                "organization_id": org.id,
                "lead_id": lead.id,
                "consent_type": "sms",
                "granted": granted,
                "method": "sms_keyword",
                "evidence_text": "START" if granted else "STOP",
            })
        else:
            logger.info(f"Consent keyword from {mask_phone(sender)} matches no lead in org {org.id}")

        message = "Lead opted back in via START keyword" if granted else "Lead opted out via STOP keyword"
        await self._log(org, action, message, {"phone": mask_phone(sender)}, lead_id=lead.id if lead else None)

        reply = None
        if granted:
            reply = f"Welcome back! You've been re-subscribed to messages from {_org_name(org)}. {OPT_OUT_LINE}"
        # The carrier answers STOP itself
        return InboundSMSResult(action=action, reply=reply, lead_id=lead.id if lead else None)

    async def _showing_reply(self, org: Organization, lead: Lead, keyword: str) -> Optional[InboundSMSResult]:
        """YES confirms and NO asks an operator to reschedule the lead's next showing."""
        now = self._clock()
        showing = await self._store.get_next_scheduled_showing(lead.id, now)
        if showing is None:
            return None

        if keyword == "YES":
            if not showing.can_confirm(now):
                return None
            showing.transition(ShowingStatus.CONFIRMED, now)
            await self._store.update_showing(showing.id, {
                "status": ShowingStatus.CONFIRMED.value,
                "confirmed_at": now.isoformat(),
            })
            await self._log(
                org, "showing_confirmed_sms", "Showing confirmed via SMS YES reply",
                {"showing_id": showing.id}, lead_id=lead.id, showing_id=showing.id,
            )
            return InboundSMSResult(
                action="showing_confirmed",
                reply=(
                    "Great! Your showing is confirmed. We look forward to seeing you! "
                    f"Call {_org_phone(org)} if you need anything."
                ),
                lead_id=lead.id,
                details={"showing_id": showing.id},
            )

        notify = await self._triggers.notify_operator(
            "showing_reschedule_requested",
            lead_id=lead.id,
            organization_id=org.id,
            context={"showing_id": showing.id, "property_id": showing.property_id, "trigger": "sms_no_reply"},
        )
        await self._log(
            org, "showing_reschedule_requested", "Lead requested reschedule via SMS NO reply",
            {"showing_id": showing.id}, lead_id=lead.id, showing_id=showing.id,
        )
        return InboundSMSResult(
            action="reschedule_requested",
            reply=f"No problem! Reply with what day/time works better, or call us at {_org_phone(org)} to reschedule.",
            lead_id=lead.id,
            details={"showing_id": showing.id, "notification_task_id": notify.id},
        )

    async def _conversation(
        self,
        org: Organization,
        lead: Optional[Lead],
        sender: str,
        receiver: str,
        text: str,
        message_sid: Optional[str],
    ) -> InboundSMSResult:
        if lead is None:
            await self._log(org, "sms_unknown_sender", "SMS received from unknown number", {
                "phone": mask_phone(sender),
                "body": text[:200],
            })
            return InboundSMSResult(
                action="unknown_sender",
                reply=f"Thanks for texting {_org_name(org)}! Call us at {_org_phone(org)} to get started. {OPT_OUT_LINE}",
            )

        now = self._clock()
        await self._store.insert_communication(Communication(
            organization_id=org.id,
            lead_id=lead.id,
            channel="sms",
            direction="inbound",
            body=text,
            status="received",
            provider_ref=message_sid,
            sent_at=now,
            metadata={"to": receiver},
        ))

        updates: Dict[str, Any] = {"last_contact_at": now.isoformat()}
        if lead.status in (LeadStatus.NEW, LeadStatus.CONTACTED) and should_advance(lead.status, LeadStatus.ENGAGED):
            updates["status"] = LeadStatus.ENGAGED.value
        await self._store.update_lead(lead.id, updates)

        if lead.is_human_controlled:
            await self._log(
                org, "sms_received_human_controlled", "SMS received from human-controlled lead (no auto-reply)",
                {"body": text[:200]}, lead_id=lead.id,
            )
            return InboundSMSResult(action="human_controlled", lead_id=lead.id)

        reply = (
            f"Thanks for your message, {lead.display_name}! A team member will get back to you shortly. "
            f"Call {_org_phone(org)} if you need immediate help. {OPT_OUT_LINE}"
        )
        await self._store.insert_communication(Communication(
            organization_id=org.id,
            lead_id=lead.id,
            channel="sms",
            direction="outbound",
            body=reply,
            status="sent",
            sent_at=now,
            metadata={"auto_reply": True},
        ))
        await self._log(
            org, "sms_auto_replied", "SMS received and auto-reply sent",
            {"inbound_body": text[:200], "lead_status": lead.status.value}, lead_id=lead.id,
        )
        return InboundSMSResult(action="auto_replied", reply=reply, lead_id=lead.id)

    async def _log(
        self,
        org: Organization,
        action: str,
        message: str,
        details: Dict[str, Any],
        lead_id: Optional[str] = None,
        showing_id: Optional[str] = None,
    ) -> None:
        await self._activity.log(
            organization_id=org.id,
            agent_type=AGENT_KEY,
            action=action,
            status=ActivityStatus.SUCCESS,
            message=message,
            details=details,
            lead_id=lead_id,
            showing_id=showing_id,
        )


def _org_name(org: Organization) -> str:
    return org.name or "our team"


def _org_phone(org: Organization) -> str:
    return org.phone or org.sms_from_number or ""
