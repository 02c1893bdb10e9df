"""
Cadence Policy
Per-agent-type retry delays and attempt limits
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from leasing_outreach.domain.models import AgentTask, AgentType, OutreachRules, Showing

logger = logging.getLogger(__name__)

NOTIFY_RETRY_MINUTES = 5
NOTIFY_MAX_ATTEMPTS = 3

# Never schedule a confirmation attempt closer than this to the showing
CONFIRMATION_CUTOFF = timedelta(minutes=30)

# Where a delay is measured from
ANCHOR_NOW = "now"
ANCHOR_TASK = "task"
ANCHOR_NO_SHOW = "no_show"


@dataclass(frozen=True)
class NextAttempt:
    """Delay before the next attempt, measured from anchor."""
    delay: timedelta
    max_attempts: int
    anchor: str = ANCHOR_NOW


class CadencePolicy:
    """
    Maps (agent_type, attempt) to the next attempt for one organization.

    Built from an OutreachRules snapshot; holds no other state.
    """

    def __init__(self, rules: Optional[OutreachRules] = None):
        self.rules = rules or OutreachRules.default()

    def max_attempts(self, agent_type: AgentType) -> int:
        agent_type = AgentType(agent_type)
        if agent_type == AgentType.RECAPTURE:
            return self.rules.recapture_max_attempts
        if agent_type == AgentType.SHOWING_CONFIRMATION:
            return self.rules.confirmation_max_attempts
        if agent_type == AgentType.NO_SHOW_FOLLOWUP:
            return self.rules.no_show_max_attempts
        if agent_type in (AgentType.OUTBOUND_CALLBACK, AgentType.SEND_APPLICATION):
            return self.rules.callback_max_attempts
        if agent_type == AgentType.NOTIFY:
            return NOTIFY_MAX_ATTEMPTS
        return 1

    def next_attempt(self, agent_type: AgentType, current_attempt: int) -> Optional[NextAttempt]:
        """
        Delay before attempt current_attempt + 1.

        Returns:
            None when the chain has no further attempts
        """
        agent_type = AgentType(agent_type)
        max_attempts = self.max_attempts(agent_type)
        if current_attempt >= max_attempts:
            return None

        if agent_type == AgentType.RECAPTURE:
            schedule = self.rules.recapture_schedule
            if current_attempt >= len(schedule):
                return None
            gap_days = schedule[current_attempt] - schedule[current_attempt - 1]
            return NextAttempt(timedelta(days=max(gap_days, 0)), max_attempts, ANCHOR_TASK)

        if agent_type == AgentType.SHOWING_CONFIRMATION:
            return NextAttempt(timedelta(hours=self.rules.confirmation_retry_hours), max_attempts)

        if agent_type == AgentType.NO_SHOW_FOLLOWUP:
            schedule = self.rules.no_show_schedule_days
            if current_attempt > len(schedule):
                return None
            return NextAttempt(timedelta(days=schedule[current_attempt - 1]), max_attempts, ANCHOR_NO_SHOW)

        if agent_type in (AgentType.OUTBOUND_CALLBACK, AgentType.SEND_APPLICATION):
            return NextAttempt(timedelta(minutes=self.rules.callback_retry_minutes), max_attempts)

        if agent_type == AgentType.NOTIFY:
            return NextAttempt(timedelta(minutes=NOTIFY_RETRY_MINUTES), max_attempts)

        # welcome_sequence is one-shot
        return None

    def schedule_next(
        self,
        task: AgentTask,
        now: datetime,
        showing: Optional[Showing] = None,
    ) -> Optional[datetime]:
        """
        Absolute time for the task's next attempt, or None.

        Outreach is shifted into the contact window. Confirmation retries are
        clamped before the showing and dropped when no slot remains.
        """
        step = self.next_attempt(task.agent_type, task.attempt_number)
        if step is None or task.attempt_number >= task.max_attempts:
            return None

        if step.anchor == ANCHOR_TASK:
            base = task.scheduled_for
        elif step.anchor == ANCHOR_NO_SHOW:
            base = _parse_time(task.context.get("no_show_at")) or task.scheduled_for
        else:
            base = now
        when = max(base + step.delay, now)

        if task.agent_type != AgentType.NOTIFY:
            when = self.rules.align_to_contact_window(when)

        if task.agent_type == AgentType.SHOWING_CONFIRMATION and showing is not None:
            latest = showing.scheduled_at - CONFIRMATION_CUTOFF
            when = min(when, latest)
            if when <= now:
                logger.info(f"No confirmation slot left before showing {showing.id}")
                return None

        return when

    def welcome_recapture_at(self, now: datetime) -> datetime:
        """When the recapture chained from a welcome sequence starts."""
        when = now + timedelta(hours=self.rules.recapture_first_delay_hours)
        return self.rules.align_to_contact_window(when)


def _parse_time(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable timestamp in task context: {value!r}")
    return None
