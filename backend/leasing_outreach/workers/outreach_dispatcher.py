"""
Outreach Dispatcher
Executes one due task: claim, goal check, compliance, channel fallback,
terminal side effects, retry chaining and audit

Invocations share no mutable state; the only coordination point is the
store's conditional pending -> in_progress claim.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from leasing_outreach.core.config import ConfigManager, get_settings
from leasing_outreach.domain.exceptions import (
    AgentDisabledError,
    ComplianceBlockedError,
    GoalAlreadySatisfied,
    NotFoundError,
    ProviderDispatchError,
    ProviderTimeoutError,
)
from leasing_outreach.domain.interfaces.channel_provider import DispatchResult
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import (
    ActionType,
    ActivityStatus,
    AgentTask,
    Lead,
    LeadStatus,
    TaskStatus,
    should_advance,
)
from leasing_outreach.domain.services.cadence_policy import CadencePolicy
from leasing_outreach.domain.services.compliance_gate import ComplianceGate, human_control_hold
from leasing_outreach.domain.services.organization_settings import OrganizationSettingsService
from leasing_outreach.domain.services.script_builder import ScriptContext
from leasing_outreach.infrastructure.connectors.email.resend_email import build_resend_provider
from leasing_outreach.infrastructure.connectors.sms.twilio_sms import build_twilio_provider
from leasing_outreach.infrastructure.telephony.bland_caller import build_bland_provider
from leasing_outreach.services.activity_logger import ActivityLogger
from leasing_outreach.services.agent_strategies import (
    AgentStrategy,
    DispatchMode,
    TaskSnapshot,
    get_strategy,
)
from leasing_outreach.services.channel_executor import ChannelExecutor
from leasing_outreach.services.notification_sink import NotificationSink
from leasing_outreach.services.outreach_content import OutreachContent
from leasing_outreach.services.outreach_triggers import OutreachTriggers

logger = logging.getLogger(__name__)


@dataclass
class DispatchOutcome:
    """What one dispatcher invocation did with one task."""
    task_id: Optional[str]
    claimed: bool
    status: Optional[TaskStatus] = None
    reason: str = ""
    agent_type: Optional[str] = None
    channels: List[Dict[str, Any]] = field(default_factory=list)
    verdicts: List[Dict[str, Any]] = field(default_factory=list)
    next_task_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def dispatched(self) -> bool:
        return any(c.get("dispatched") for c in self.channels)

    def record_channel(self, channel: str, result: DispatchResult) -> None:
        entry = result.to_dict()
        entry["channel"] = channel
        if not result.dispatched:
            entry["error_type"] = ProviderTimeoutError.reason if result.timed_out else ProviderDispatchError.reason
        self.channels.append(entry)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "claimed": self.claimed,
            "status": self.status.value if self.status else None,
            "reason": self.reason,
            "agent_type": self.agent_type,
            "dispatched": self.dispatched,
            "channels": self.channels,
            "compliance": self.verdicts,
            "next_task_id": self.next_task_id,
            "details": self.details,
        }


class OutreachDispatcher:
    """
    Runs the per-task dispatch algorithm.

    Steps per task:
    1. Claim (pending -> in_progress), stamping executed_at
    2. Load lead/showing; a human-controlled lead or a disabled agent type
       stops here, then short-circuit when the goal is already met
    3. Compliance gate for the primary channel; a lead-level block fails the task
    4. Primary channel, then the fallback channel on failure or channel block
    5. Terminal side effect (e.g. cancel an unconfirmed showing)
    6. Chain the next attempt per cadence when attempts remain; a showing
       confirmation with no slot left is settled instead
    7. Finish completed/failed and write exactly one activity entry
    """

    def __init__(
        self,
        store: OutreachStore,
        executor: ChannelExecutor,
        notifications: NotificationSink,
        gate: Optional[ComplianceGate] = None,
        settings: Optional[OrganizationSettingsService] = None,
        triggers: Optional[OutreachTriggers] = None,
        content: Optional[OutreachContent] = None,
        activity: Optional[ActivityLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._executor = executor
        self._notifications = notifications
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._settings = settings or OrganizationSettingsService(store)
        self._gate = gate or ComplianceGate(store, self._settings)
        self._triggers = triggers or OutreachTriggers(store, self._settings, clock=self._clock)
        self._content = content or OutreachContent(store)
        self._activity = activity or ActivityLogger(store)

    async def run_due(self, limit: int = 20) -> List[DispatchOutcome]:
        """Dispatch every due task in one batch, oldest first."""
        tasks = await self._store.fetch_due_tasks(self._clock(), limit=limit)
        outcomes = []
        for task in tasks:
            try:
                outcomes.append(await self.dispatch(task))
            except Exception as e:
                logger.error(f"Dispatch of task {task.id} aborted before it was claimed: {e}", exc_info=True)
                outcomes.append(DispatchOutcome(
                    task_id=task.id,
                    claimed=False,
                    reason="claim_error",
                    agent_type=task.agent_type.value,
                    details={"error": str(e)},
                ))
        return outcomes

    async def dispatch_by_id(self, task_id: str) -> DispatchOutcome:
        task = await self._store.get_task(task_id)
        if task is None:
            return DispatchOutcome(task_id=task_id, claimed=False, reason="task_not_found")
        return await self.dispatch(task)

    async def dispatch(self, task: AgentTask) -> DispatchOutcome:
        started = time.monotonic()
        now = self._clock()
        outcome = DispatchOutcome(task_id=task.id, claimed=False, agent_type=task.agent_type.value)

        if not task.is_due(now):
            outcome.reason = "not_due"
            return outcome

        if not await self._store.claim_task(task.id, now):
            outcome.reason = "already_claimed"
            return outcome

        outcome.claimed = True
        task.transition(TaskStatus.IN_PROGRESS)
        task.executed_at = now
        logger.info(f"Dispatching {task!r} for lead {task.lead_id}")

        try:
            status, reason = await self._execute(task, now, outcome)
        except GoalAlreadySatisfied as e:
            status = TaskStatus.CANCELLED if e.cancel else TaskStatus.COMPLETED
            reason = e.reason
            outcome.details.update(e.flags)
        except ComplianceBlockedError as e:
            status, reason = TaskStatus.FAILED, e.reason
            outcome.details["violations"] = e.verdict.violation_codes
        except AgentDisabledError as e:
            logger.info(f"Task {task.id} skipped: {e.message}")
            status, reason = TaskStatus.FAILED, e.reason
        except NotFoundError as e:
            logger.warning(f"Task {task.id} references missing data: {e.message}")
            status, reason = TaskStatus.FAILED, e.reason
        except Exception as e:
            logger.error(f"Unexpected error dispatching task {task.id}: {e}", exc_info=True)
            status, reason = TaskStatus.FAILED, "unexpected_error"
            outcome.details["error"] = str(e)

        outcome.status = status
        outcome.reason = reason
        await self._finish(task, outcome, started)
        return outcome

    async def _execute(self, task: AgentTask, now: datetime, outcome: DispatchOutcome) -> Tuple[TaskStatus, str]:
        strategy = get_strategy(task.agent_type)

        lead = await self._store.get_lead(task.lead_id)
        if lead is None:
            raise NotFoundError("lead", task.lead_id)

        hold = human_control_hold(lead, task.action_type.value)
        if hold is not None:
            outcome.verdicts.append(hold.to_log())
            raise ComplianceBlockedError(hold)

        showing = None
        if task.showing_id:
            showing = await self._store.get_showing(task.showing_id)
            if showing is None and strategy.requires_showing:
                raise NotFoundError("showing", task.showing_id)
        elif strategy.requires_showing:
            raise NotFoundError("showing", None)

        rules = await self._settings.get_rules(task.organization_id)
        if not rules.agent_enabled(task.agent_type.value):
            raise AgentDisabledError(task.agent_type.value)

        snap = TaskSnapshot(
            store=self._store,
            task=task,
            lead=lead,
            showing=showing,
            now=now,
            cadence=CadencePolicy(rules),
        )

        if strategy.goal_check:
            await strategy.goal_check(snap)

        if strategy.mode == DispatchMode.NOTIFY:
            result = await self._notifications.deliver(task, lead)
            outcome.record_channel(ActionType.NOTIFY.value, result)
        else:
            ctx = await self._content.load_context(task, lead, showing, rules)
            await self._dispatch_channels(strategy, snap, ctx, rules.bland_voice_id, outcome)

        if outcome.dispatched:
            await self._advance_lead(lead)

        if strategy.terminal_check and strategy.terminal_check(snap):
            outcome.details.update(await strategy.terminal_effect(snap, self._triggers))
            return TaskStatus.COMPLETED, "terminal_condition"

        if not outcome.dispatched or strategy.retry_on_success:
            chained = await self._chain_next(task, snap, outcome)
            if not chained and task.has_attempts_remaining and strategy.chain_exhausted:
                effect = await strategy.chain_exhausted(snap, self._triggers, outcome.dispatched)
                outcome.details.update(effect)
                if effect.get("showing_cancelled"):
                    return TaskStatus.COMPLETED, "terminal_condition"

        if strategy.chain:
            outcome.details.update(await strategy.chain(snap, self._triggers))

        if outcome.dispatched:
            return TaskStatus.COMPLETED, "dispatched"
        if outcome.verdicts and not any(v["passed"] for v in outcome.verdicts):
            return TaskStatus.FAILED, "channel_blocked"
        return TaskStatus.FAILED, "dispatch_failed"

    async def _dispatch_channels(
        self,
        strategy: AgentStrategy,
        snap: TaskSnapshot,
        ctx: ScriptContext,
        voice_id: str,
        outcome: DispatchOutcome,
    ) -> None:
        """
        Gate and send each channel in order. Never sends two channels at once.

        The attempt hook runs once, just before the first channel that passed
        the gate, so blocked invocations are not counted as attempts.
        """
        task, lead = snap.task, snap.lead
        attempted = False
        for channel in strategy.channels_for(task):
            verdict = await self._gate.check(
                task.organization_id, lead.id, channel.value, task.agent_type.value, now=snap.now
            )
            outcome.verdicts.append(verdict.to_log())
            if verdict.lead_blocked:
                raise ComplianceBlockedError(verdict)
            if not verdict.passed:
                continue

            if not attempted and strategy.on_attempt:
                await strategy.on_attempt(snap)
            attempted = True

            result = await self._send(channel, task, lead, ctx, voice_id)
            outcome.record_channel(channel.value, result)
            if result.dispatched and strategy.mode == DispatchMode.FALLBACK:
                return

    async def _send(
        self,
        channel: ActionType,
        task: AgentTask,
        lead: Lead,
        ctx: ScriptContext,
        voice_id: str,
    ) -> DispatchResult:
        if channel == ActionType.CALL:
            script = self._content.call_script(task.agent_type, ctx)
            return await self._executor.place_call(task, lead, script, voice_id=voice_id)
        if channel == ActionType.SMS:
            body = self._content.sms_body(task.agent_type, ctx)
            from_number = ctx.organization.sms_from_number if ctx.organization else None
            return await self._executor.send_sms(task, lead, body, from_number=from_number)
        if channel == ActionType.EMAIL:
            rendered = self._content.email(task.agent_type, ctx)
            return await self._executor.send_email(task, lead, rendered.subject, rendered.html)
        return DispatchResult.failed("none", f"Unsupported channel: {channel.value}")

    async def _advance_lead(self, lead: Lead) -> None:
        if lead.status == LeadStatus.NEW and should_advance(lead.status, LeadStatus.CONTACTED):
            await self._store.update_lead(lead.id, {"status": LeadStatus.CONTACTED.value})
            lead.status = LeadStatus.CONTACTED

    async def _chain_next(self, task: AgentTask, snap: TaskSnapshot, outcome: DispatchOutcome) -> bool:
        """Insert the next attempt. False when no attempt remains or cadence has no slot."""
        if not task.has_attempts_remaining:
            return False
        next_at = snap.cadence.schedule_next(task, snap.now, snap.showing)
        if next_at is None:
            return False
        next_task = task.next_attempt(next_at, context={"previous_outcome": outcome.channels})
        saved = await self._store.insert_task(next_task)
        outcome.next_task_id = saved.id
        logger.info(
            f"Scheduled {task.agent_type.value} attempt {saved.attempt_number}/{saved.max_attempts} "
            f"for lead {task.lead_id} at {next_at.isoformat()}"
        )
        return True

    async def _finish(self, task: AgentTask, outcome: DispatchOutcome, started: float) -> None:
        completed_at = self._clock()
        task.transition(outcome.status)
        task.completed_at = completed_at

        context = dict(task.context)
        context["result"] = {
            "reason": outcome.reason,
            "dispatched": outcome.dispatched,
            **{k: v for k, v in outcome.details.items() if k in ("already_rescheduled", "showing_cancelled")},
        }
        try:
            finished = await self._store.finish_task(task.id, outcome.status, completed_at, context)
            if not finished:
                logger.error(f"Task {task.id} was no longer in_progress when finishing as {outcome.status.value}")
        except Exception as e:
            logger.error(f"Failed to finish task {task.id} as {outcome.status.value}: {e}")

        await self._activity.log(
            organization_id=task.organization_id,
            agent_type=task.agent_type.value,
            action=f"{task.action_type.value}_attempt",
            status=_activity_status(outcome),
            message=_activity_message(task, outcome),
            details={
                "reason": outcome.reason,
                "attempt_number": task.attempt_number,
                "max_attempts": task.max_attempts,
                "channels": outcome.channels,
                "compliance": outcome.verdicts,
                "next_task_id": outcome.next_task_id,
                **outcome.details,
            },
            lead_id=task.lead_id,
            showing_id=task.showing_id,
            task_id=task.id,
            execution_ms=int((time.monotonic() - started) * 1000),
        )


def _activity_status(outcome: DispatchOutcome) -> ActivityStatus:
    if outcome.status == TaskStatus.COMPLETED:
        if outcome.dispatched and all(c.get("dispatched") for c in outcome.channels):
            return ActivityStatus.SUCCESS
        if outcome.dispatched or outcome.reason == "terminal_condition":
            return ActivityStatus.PARTIAL
        return ActivityStatus.SKIPPED
    skipped_reasons = (ComplianceBlockedError.reason, AgentDisabledError.reason)
    if outcome.status == TaskStatus.CANCELLED or outcome.reason in skipped_reasons:
        return ActivityStatus.SKIPPED
    return ActivityStatus.FAILURE


def _activity_message(task: AgentTask, outcome: DispatchOutcome) -> str:
    label = f"{task.agent_type.value} attempt {task.attempt_number}/{task.max_attempts}"
    sent = [c["channel"] for c in outcome.channels if c.get("dispatched")]
    if sent:
        return f"{label}: sent via {', '.join(sent)}"
    return f"{label}: {outcome.reason}"


def build_dispatcher(
    store: OutreachStore,
    config: Optional[ConfigManager] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> OutreachDispatcher:
    """Wire a dispatcher against the configured Bland, Twilio and Resend providers."""
    settings = get_settings()
    config = config or ConfigManager()
    email = build_resend_provider(config)
    executor = ChannelExecutor(
        store,
        voice=build_bland_provider(settings.bland_api_key, config),
        sms=build_twilio_provider(config),
        email=email,
        webhook_base_url=settings.api_base_url,
        config=config,
    )
    return OutreachDispatcher(
        store,
        executor,
        NotificationSink(store, email=email),
        content=OutreachContent(store, application_base_url=settings.application_base_url),
        clock=clock,
    )
