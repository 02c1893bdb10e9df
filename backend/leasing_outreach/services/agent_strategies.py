"""
Agent Strategies
Strategy table mapping each agent type to its channels, goal check,
terminal condition and chaining behavior

Adding an outreach behavior means adding one AgentStrategy entry.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from leasing_outreach.domain.exceptions import GoalAlreadySatisfied
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import (
    ActionType,
    AgentTask,
    AgentType,
    Lead,
    LeadStatus,
    Showing,
    ShowingStatus,
)
from leasing_outreach.domain.models.lead import funnel_rank
from leasing_outreach.domain.services.cadence_policy import CadencePolicy

logger = logging.getLogger(__name__)


class DispatchMode(str, Enum):
    FALLBACK = "fallback"  # primary, then fallback in the same invocation
    PARALLEL = "parallel"  # every channel attempted, each gated on its own
    SINGLE = "single"      # the task's own action_type only
    NOTIFY = "notify"      # operator notification, not addressed to the lead


@dataclass
class TaskSnapshot:
    """State loaded for one dispatcher invocation."""
    store: OutreachStore
    task: AgentTask
    lead: Lead
    showing: Optional[Showing]
    now: datetime
    cadence: CadencePolicy


GoalCheck = Callable[[TaskSnapshot], Awaitable[None]]
AttemptHook = Callable[[TaskSnapshot], Awaitable[None]]
TerminalCheck = Callable[[TaskSnapshot], bool]
TerminalEffect = Callable[[TaskSnapshot, Any], Awaitable[Dict[str, Any]]]
ChainHook = Callable[[TaskSnapshot, Any], Awaitable[Dict[str, Any]]]
ChainExhaustedHook = Callable[[TaskSnapshot, Any, bool], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class AgentStrategy:
    agent_type: AgentType
    mode: DispatchMode
    channels: Tuple[ActionType, ...] = ()
    requires_showing: bool = False
    retry_on_success: bool = True
    goal_check: Optional[GoalCheck] = None
    on_attempt: Optional[AttemptHook] = None
    terminal_check: Optional[TerminalCheck] = None
    terminal_effect: Optional[TerminalEffect] = None
    chain: Optional[ChainHook] = None
    # Runs when cadence leaves no slot for a retry while attempts remain
    chain_exhausted: Optional[ChainExhaustedHook] = None

    def channels_for(self, task: AgentTask) -> List[ActionType]:
        if self.mode == DispatchMode.SINGLE or not self.channels:
            return [task.action_type]
        return list(self.channels)


# Goal checks raise GoalAlreadySatisfied to short-circuit the task

async def check_lead_open(snap: TaskSnapshot) -> None:
    if snap.lead.status == LeadStatus.LOST:
        raise GoalAlreadySatisfied("lead_closed", cancel=True)
    if snap.lead.status == LeadStatus.CONVERTED:
        raise GoalAlreadySatisfied("lead_converted")


async def check_showing_confirmation_goal(snap: TaskSnapshot) -> None:
    await check_lead_open(snap)
    showing = snap.showing
    if showing.status == ShowingStatus.CONFIRMED:
        raise GoalAlreadySatisfied("already_confirmed")
    if not showing.is_active:
        raise GoalAlreadySatisfied(f"showing_{showing.status.value}", cancel=True)
    if showing.is_past(snap.now):
        raise GoalAlreadySatisfied("showing_in_past", cancel=True)


async def check_no_show_goal(snap: TaskSnapshot) -> None:
    await check_lead_open(snap)
    rescheduled = await snap.store.has_active_future_showing(
        snap.lead.id, snap.now, exclude_showing_id=snap.task.showing_id
    )
    if rescheduled:
        raise GoalAlreadySatisfied("already_rescheduled", flags={"already_rescheduled": True})


async def check_recapture_goal(snap: TaskSnapshot) -> None:
    await check_lead_open(snap)
    if funnel_rank(snap.lead.status) >= funnel_rank(LeadStatus.SHOWING_SCHEDULED):
        raise GoalAlreadySatisfied("lead_advanced", flags={"lead_status": snap.lead.status.value})
    if await snap.store.has_active_future_showing(snap.lead.id, snap.now):
        raise GoalAlreadySatisfied("showing_scheduled")


# Showing confirmation bookkeeping and exhaustion

def _confirmation_attempt(snap: TaskSnapshot) -> int:
    return max(snap.task.attempt_number, snap.showing.confirmation_attempts)


async def record_confirmation_attempt(snap: TaskSnapshot) -> None:
    showing = snap.showing
    showing.confirmation_attempts = showing.confirmation_attempts + 1
    showing.last_confirmation_attempt_at = snap.now
    await snap.store.update_showing(showing.id, {
        "confirmation_attempts": showing.confirmation_attempts,
        "last_confirmation_attempt_at": snap.now.isoformat(),
    })


def confirmation_exhausted(snap: TaskSnapshot) -> bool:
    """Final attempt ran and the showing is still unconfirmed."""
    max_attempts = min(snap.task.max_attempts, snap.cadence.max_attempts(AgentType.SHOWING_CONFIRMATION))
    return (
        snap.showing is not None
        and snap.showing.status == ShowingStatus.SCHEDULED
        and _confirmation_attempt(snap) >= max_attempts
    )


async def cancel_unconfirmed_showing(snap: TaskSnapshot, triggers: Any) -> Dict[str, Any]:
    """Cancel the showing and enqueue exactly one operator notification."""
    showing = snap.showing
    reason = f"No confirmation after {_confirmation_attempt(snap)} attempts"
    showing.transition(ShowingStatus.CANCELLED, snap.now)
    showing.cancellation_reason = reason
    await snap.store.update_showing(showing.id, {
        "status": ShowingStatus.CANCELLED.value,
        "cancellation_reason": reason,
        "cancelled_at": snap.now.isoformat(),
    })
    notify = await triggers.notify_operator(
        "showing_cancelled",
        lead_id=snap.lead.id,
        organization_id=snap.task.organization_id,
        context={
            "showing_id": showing.id,
            "property_id": showing.property_id,
            "cancellation_reason": reason,
            "source_task_id": snap.task.id,
        },
    )
    logger.info(f"Showing {showing.id} auto-cancelled: {reason}")
    return {"showing_cancelled": True, "cancellation_reason": reason, "notification_task_id": notify.id}


async def settle_unconfirmed_showing(snap: TaskSnapshot, triggers: Any, dispatched: bool) -> Dict[str, Any]:
    """
    No confirmation slot is left before the showing.

    With nothing sent this invocation the showing is cancelled as if the
    attempts were exhausted. A dispatched call may still confirm it, so the
    showing stays scheduled and an operator is asked to follow up.
    """
    showing = snap.showing
    if showing is None or showing.status != ShowingStatus.SCHEDULED:
        return {}
    if not dispatched:
        return await cancel_unconfirmed_showing(snap, triggers)
    notify = await triggers.notify_operator(
        "showing_unconfirmed",
        lead_id=snap.lead.id,
        organization_id=snap.task.organization_id,
        context={
            "showing_id": showing.id,
            "property_id": showing.property_id,
            "source_task_id": snap.task.id,
        },
    )
    return {"showing_unconfirmed": True, "notification_task_id": notify.id}


# Welcome sequence hands off to recapture

async def chain_welcome_recapture(snap: TaskSnapshot, triggers: Any) -> Dict[str, Any]:
    if await snap.store.has_active_future_showing(snap.lead.id, snap.now):
        return {"recapture_scheduled": False}
    recapture = await triggers.enqueue_task(
        AgentType.RECAPTURE,
        snap.lead.id,
        scheduled_for=snap.cadence.welcome_recapture_at(snap.now),
        organization_id=snap.task.organization_id,
        context={"source": "welcome_sequence", "welcome_task_id": snap.task.id},
    )
    return {"recapture_scheduled": True, "recapture_task_id": recapture.id}


STRATEGIES: Dict[AgentType, AgentStrategy] = {
    AgentType.RECAPTURE: AgentStrategy(
        agent_type=AgentType.RECAPTURE,
        mode=DispatchMode.FALLBACK,
        channels=(ActionType.CALL, ActionType.SMS),
        goal_check=check_recapture_goal,
    ),
    AgentType.SHOWING_CONFIRMATION: AgentStrategy(
        agent_type=AgentType.SHOWING_CONFIRMATION,
        mode=DispatchMode.FALLBACK,
        channels=(ActionType.CALL, ActionType.SMS),
        requires_showing=True,
        goal_check=check_showing_confirmation_goal,
        on_attempt=record_confirmation_attempt,
        terminal_check=confirmation_exhausted,
        terminal_effect=cancel_unconfirmed_showing,
        chain_exhausted=settle_unconfirmed_showing,
    ),
    AgentType.NO_SHOW_FOLLOWUP: AgentStrategy(
        agent_type=AgentType.NO_SHOW_FOLLOWUP,
        mode=DispatchMode.FALLBACK,
        channels=(ActionType.CALL, ActionType.SMS),
        goal_check=check_no_show_goal,
    ),
    AgentType.WELCOME_SEQUENCE: AgentStrategy(
        agent_type=AgentType.WELCOME_SEQUENCE,
        mode=DispatchMode.PARALLEL,
        channels=(ActionType.SMS, ActionType.EMAIL),
        retry_on_success=False,
        goal_check=check_lead_open,
        chain=chain_welcome_recapture,
    ),
    AgentType.OUTBOUND_CALLBACK: AgentStrategy(
        agent_type=AgentType.OUTBOUND_CALLBACK,
        mode=DispatchMode.SINGLE,
        retry_on_success=False,
        goal_check=check_lead_open,
    ),
    AgentType.SEND_APPLICATION: AgentStrategy(
        agent_type=AgentType.SEND_APPLICATION,
        mode=DispatchMode.SINGLE,
        retry_on_success=False,
        goal_check=check_lead_open,
    ),
    AgentType.NOTIFY: AgentStrategy(
        agent_type=AgentType.NOTIFY,
        mode=DispatchMode.NOTIFY,
        retry_on_success=False,
    ),
}


def get_strategy(agent_type: AgentType) -> AgentStrategy:
    return STRATEGIES[AgentType(agent_type)]
