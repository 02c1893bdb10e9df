"""
Channel Executor
Dispatches one outreach attempt on one channel and meters it
"""
import logging
from typing import Any, Dict, Optional

from leasing_outreach.core.config import ConfigManager
from leasing_outreach.domain.interfaces.channel_provider import (
    DispatchResult,
    EmailProvider,
    SMSProvider,
    VoiceProvider,
    mask_phone,
)
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import AgentTask, Communication, CostRecord, Lead

logger = logging.getLogger(__name__)

DEFAULT_SMS_COST = 0.0079
DEFAULT_EMAIL_COST = 0.0009
DEFAULT_CALL_DISPATCH_FEE = 0.0


class ChannelExecutor:
    """
    Sends calls, SMS and email through the configured providers.

    On a successful dispatch a Communication and a CostRecord are written.
    Failures come back as DispatchResult(dispatched=False) and write nothing.
    """

    def __init__(
        self,
        store: OutreachStore,
        voice: VoiceProvider,
        sms: SMSProvider,
        email: EmailProvider,
        webhook_base_url: str = "http://localhost:8000",
        config: Optional[ConfigManager] = None,
    ):
        self._store = store
        self._voice = voice
        self._sms = sms
        self._email = email
        self._webhook_base_url = webhook_base_url.rstrip("/")
        self._config = config or ConfigManager()

    @property
    def call_webhook_url(self) -> str:
        return f"{self._webhook_base_url}/api/v1/webhooks/voice/call-result"

    def _max_duration(self, agent_type: str) -> Optional[int]:
        durations = self._config.get("providers.voice.max_duration_minutes", {}) or {}
        return durations.get(agent_type)

    async def place_call(
        self,
        task: AgentTask,
        lead: Lead,
        script: str,
        voice_id: Optional[str] = None,
    ) -> DispatchResult:
        metadata: Dict[str, Any] = {
            "organization_id": task.organization_id,
            "lead_id": lead.id,
            "task_id": task.id,
            "agent_type": task.agent_type.value,
            "attempt_number": task.attempt_number,
        }
        if task.showing_id:
            metadata["showing_id"] = task.showing_id

        result = await self._voice.place_call(
            phone=lead.phone,
            script=script,
            metadata=metadata,
            webhook_url=self.call_webhook_url,
            voice=voice_id,
            max_duration_minutes=self._max_duration(task.agent_type.value),
        )
        if not result.dispatched:
            logger.warning(f"Call to {mask_phone(lead.phone)} not dispatched: {result.error}")
            return result

        fee = float(self._config.get("providers.voice.cost.dispatch_fee", DEFAULT_CALL_DISPATCH_FEE))
        await self._record(
            task,
            lead,
            channel="call",
            body=f"AI {task.agent_type.value.replace('_', ' ')} call initiated",
            result=result,
            cost=CostRecord(
                organization_id=task.organization_id,
                service=f"{result.provider}_call_dispatch",
                usage_quantity=1,
                usage_unit="calls",
                unit_cost=fee,
                lead_id=lead.id,
            ),
        )
        return result

    async def send_sms(self, task: AgentTask, lead: Lead, body: str, from_number: Optional[str] = None) -> DispatchResult:
        result = await self._sms.send_message(lead.phone, body, from_number=from_number)
        if not result.dispatched:
            logger.warning(f"SMS to {mask_phone(lead.phone)} not sent: {result.error}")
            return result

        unit_cost = float(self._config.get("providers.sms.cost.per_message", DEFAULT_SMS_COST))
        await self._record(
            task,
            lead,
            channel="sms",
            body=body,
            result=result,
            cost=CostRecord(
                organization_id=task.organization_id,
                service=f"{result.provider}_sms",
                usage_quantity=1,
                usage_unit="messages",
                unit_cost=unit_cost,
                lead_id=lead.id,
            ),
        )
        return result

    async def send_email(self, task: AgentTask, lead: Lead, subject: str, html: str) -> DispatchResult:
        result = await self._email.send_email(lead.email, subject, html)
        if not result.dispatched:
            logger.warning(f"Email for lead {lead.id} not sent: {result.error}")
            return result

        unit_cost = float(self._config.get("providers.email.cost.per_email", DEFAULT_EMAIL_COST))
        await self._record(
            task,
            lead,
            channel="email",
            body=html,
            subject=subject,
            result=result,
            cost=CostRecord(
                organization_id=task.organization_id,
                service=f"{result.provider}_email",
                usage_quantity=1,
                usage_unit="emails",
                unit_cost=unit_cost,
                lead_id=lead.id,
            ),
        )
        return result

    async def _record(
        self,
        task: AgentTask,
        lead: Lead,
        channel: str,
        body: str,
        result: DispatchResult,
        cost: CostRecord,
        subject: Optional[str] = None,
    ) -> None:
        # A dispatched message stays dispatched even if these writes fail
        communication = Communication(
            organization_id=task.organization_id,
            lead_id=lead.id,
            channel=channel,
            direction="outbound",
            body=body,
            subject=subject,
            status="sent" if channel != "call" else "initiated",
            provider_ref=result.provider_ref,
            metadata={"task_id": task.id, "agent_type": task.agent_type.value, "provider": result.provider},
        )
        try:
            communication_id = await self._store.insert_communication(communication)
            cost.communication_id = communication_id
        except Exception as e:
            logger.error(f"Failed to write {channel} communication for lead {lead.id}: {e}")
        try:
            await self._store.insert_cost(cost)
        except Exception as e:
            logger.error(f"Failed to write {channel} cost record for lead {lead.id}: {e}")
