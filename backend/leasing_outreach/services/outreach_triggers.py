"""
Outreach Triggers
The single enqueue contract and the external events that use it
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from leasing_outreach.domain.exceptions import NotFoundError
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import ActionType, AgentTask, AgentType
from leasing_outreach.domain.services.cadence_policy import CadencePolicy
from leasing_outreach.domain.services.organization_settings import OrganizationSettingsService

logger = logging.getLogger(__name__)

DEFAULT_ACTIONS: Dict[AgentType, ActionType] = {
    AgentType.RECAPTURE: ActionType.CALL,
    AgentType.SHOWING_CONFIRMATION: ActionType.CALL,
    AgentType.NO_SHOW_FOLLOWUP: ActionType.CALL,
    AgentType.WELCOME_SEQUENCE: ActionType.SMS,
    AgentType.OUTBOUND_CALLBACK: ActionType.CALL,
    AgentType.SEND_APPLICATION: ActionType.EMAIL,
    AgentType.NOTIFY: ActionType.NOTIFY,
}

CALLBACK_FALLBACK_DELAY = timedelta(hours=24)


def parse_callback_time(value: Optional[str], now: datetime) -> datetime:
    """Requested callback time; anything unparseable becomes now + 24h."""
    if value:
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except ValueError:
            logger.info(f"Unparseable callback time {value!r}, scheduling in 24h")
    return now + CALLBACK_FALLBACK_DELAY


class OutreachTriggers:
    """
    Enqueues tasks on behalf of booking flows, lead intake and inbound call
    pathways. Also used by the dispatcher to chain follow-up tasks.
    """

    def __init__(
        self,
        store: OutreachStore,
        settings: Optional[OrganizationSettingsService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._settings = settings or OrganizationSettingsService(store)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def enqueue_task(
        self,
        agent_type: AgentType,
        lead_id: str,
        scheduled_for: Optional[datetime] = None,
        context: Optional[Dict[str, Any]] = None,
        action_type: Optional[ActionType] = None,
        organization_id: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> AgentTask:
        """
        Create attempt 1 of a new task chain.

        The organization comes from the lead when not given; max_attempts
        defaults to the organization's cadence for the agent type.

        Raises:
            NotFoundError: if the lead does not exist
        """
        agent_type = AgentType(agent_type)
        if organization_id is None:
            lead = await self._store.get_lead(lead_id)
            if lead is None:
                raise NotFoundError("lead", lead_id)
            organization_id = lead.organization_id

        if max_attempts is None:
            rules = await self._settings.get_rules(organization_id)
            max_attempts = CadencePolicy(rules).max_attempts(agent_type)

        task = AgentTask(
            organization_id=organization_id,
            lead_id=lead_id,
            agent_type=agent_type,
            action_type=action_type or DEFAULT_ACTIONS[agent_type],
            scheduled_for=scheduled_for or self._clock(),
            attempt_number=1,
            max_attempts=max_attempts,
            context=context or {},
        )
        saved = await self._store.insert_task(task)
        logger.info(
            f"Enqueued {agent_type.value} task {saved.id} for lead {lead_id} at {saved.scheduled_for.isoformat()}"
        )
        return saved

    async def on_lead_created(self, lead_id: str, source: str = "lead_created") -> AgentTask:
        return await self.enqueue_task(AgentType.WELCOME_SEQUENCE, lead_id, context={"source": source})

    async def on_showing_scheduled(self, showing_id: str) -> AgentTask:
        """First confirmation attempt, confirmation_hours_before the showing."""
        showing = await self._store.get_showing(showing_id)
        if showing is None:
            raise NotFoundError("showing", showing_id)
        lead = await self._store.get_lead(showing.lead_id)
        if lead is None:
            raise NotFoundError("lead", showing.lead_id)

        rules = await self._settings.get_rules(lead.organization_id)
        now = self._clock()
        when = max(showing.scheduled_at - timedelta(hours=rules.confirmation_hours_before), now)

        return await self.enqueue_task(
            AgentType.SHOWING_CONFIRMATION,
            lead.id,
            scheduled_for=when,
            organization_id=lead.organization_id,
            context={
                "source": "showing_scheduled",
                "showing_id": showing.id,
                "property_id": showing.property_id,
            },
        )

    async def on_showing_no_show(self, showing_id: str) -> AgentTask:
        """No-show follow-up attempt 1, no_show_delay_hours after the event."""
        showing = await self._store.get_showing(showing_id)
        if showing is None:
            raise NotFoundError("showing", showing_id)
        lead = await self._store.get_lead(showing.lead_id)
        if lead is None:
            raise NotFoundError("lead", showing.lead_id)

        rules = await self._settings.get_rules(lead.organization_id)
        now = self._clock()
        return await self.enqueue_task(
            AgentType.NO_SHOW_FOLLOWUP,
            lead.id,
            scheduled_for=now + timedelta(hours=rules.no_show_delay_hours),
            organization_id=lead.organization_id,
            context={
                "source": "showing_no_show",
                "showing_id": showing.id,
                "property_id": showing.property_id,
                "no_show_at": now.isoformat(),
            },
        )

    async def create_callback(
        self,
        lead_id: str,
        callback_time: Optional[str] = None,
        organization_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> AgentTask:
        when = parse_callback_time(callback_time, self._clock())
        return await self.enqueue_task(
            AgentType.OUTBOUND_CALLBACK,
            lead_id,
            scheduled_for=when,
            organization_id=organization_id,
            context={"source": "pathway", "callback_time": callback_time, **(context or {})},
        )

    async def send_application(
        self,
        lead_id: str,
        organization_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> AgentTask:
        """Application link by email, or by SMS when the lead has no email."""
        lead = await self._store.get_lead(lead_id)
        if lead is None:
            raise NotFoundError("lead", lead_id)
        action = ActionType.EMAIL if lead.email else ActionType.SMS
        return await self.enqueue_task(
            AgentType.SEND_APPLICATION,
            lead_id,
            action_type=action,
            organization_id=organization_id or lead.organization_id,
            context={"source": "pathway", **(context or {})},
        )

    async def notify_operator(
        self,
        notification_type: str,
        lead_id: str,
        organization_id: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> AgentTask:
        return await self.enqueue_task(
            AgentType.NOTIFY,
            lead_id,
            organization_id=organization_id,
            context={"notification_type": notification_type, **(context or {})},
        )
