"""
Unit Tests for the Task, Lead and Showing state machines
"""
import pytest
from datetime import timedelta

from leasing_outreach.domain.exceptions import InvalidTransitionError
from leasing_outreach.domain.models import (
    AgentTask,
    AgentType,
    ActionType,
    LeadStatus,
    Showing,
    ShowingStatus,
    TaskStatus,
)
from leasing_outreach.domain.models.agent_task import can_transition_task
from leasing_outreach.domain.models.lead import can_transition_lead, funnel_rank, should_advance
from leasing_outreach.domain.models.showing import can_transition_showing

from fakes import NOW, make_lead, make_showing, make_task


class TestTaskTransitions:
    """Tests for the task status machine"""

    def test_pending_only_moves_to_in_progress(self):
        assert can_transition_task(TaskStatus.PENDING, TaskStatus.IN_PROGRESS)
        assert not can_transition_task(TaskStatus.PENDING, TaskStatus.COMPLETED)
        assert not can_transition_task(TaskStatus.PENDING, TaskStatus.CANCELLED)

    @pytest.mark.parametrize("target", [TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED])
    def test_in_progress_reaches_every_terminal(self, target):
        assert can_transition_task(TaskStatus.IN_PROGRESS, target)

    @pytest.mark.parametrize("terminal", [TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED])
    def test_terminal_statuses_are_final(self, terminal):
        for target in TaskStatus:
            assert not can_transition_task(terminal, target)

    def test_transition_raises_on_skip(self):
        task = make_task()
        with pytest.raises(InvalidTransitionError) as exc:
            task.transition(TaskStatus.COMPLETED)
        assert exc.value.current == "pending"
        assert exc.value.target == "completed"

    def test_transition_in_order(self):
        task = make_task()
        task.transition(TaskStatus.IN_PROGRESS)
        task.transition(TaskStatus.FAILED)
        assert task.is_terminal


class TestAgentTaskModel:
    """Tests for AgentTask"""

    def test_attempt_cannot_exceed_max(self):
        with pytest.raises(ValueError):
            make_task(attempt_number=4, max_attempts=3)

    def test_is_due(self):
        task = make_task(scheduled_for=NOW)
        assert task.is_due(NOW)
        assert not task.is_due(NOW - timedelta(seconds=1))

    def test_non_pending_is_never_due(self):
        task = make_task(status=TaskStatus.IN_PROGRESS)
        assert not task.is_due(NOW + timedelta(days=1))

    def test_next_attempt_links_chain(self):
        task = make_task(id="task-1", context={"showing_id": "showing-1"})
        follow_up = task.next_attempt(NOW + timedelta(days=1), context={"previous_outcome": {"call": {}}})

        assert follow_up.id is None
        assert follow_up.attempt_number == 2
        assert follow_up.max_attempts == task.max_attempts
        assert follow_up.status == TaskStatus.PENDING
        assert follow_up.context["previous_task_id"] == "task-1"
        assert follow_up.context["showing_id"] == "showing-1"
        assert "previous_outcome" in follow_up.context

    def test_final_attempt_has_no_successor(self):
        task = make_task(attempt_number=3, max_attempts=3)
        assert not task.has_attempts_remaining
        with pytest.raises(ValueError):
            task.next_attempt(NOW)

    def test_record_round_trip_parses_iso_strings(self):
        record = make_task(id="task-9").to_record()
        record["scheduled_for"] = "2025-03-11T17:59:00Z"

        task = AgentTask.from_record({**record, "unknown_column": 1})

        assert task.id == "task-9"
        assert task.agent_type == AgentType.RECAPTURE
        assert task.action_type == ActionType.CALL
        assert task.scheduled_for == NOW - timedelta(minutes=1)

    def test_property_id_falls_back_to_interest(self):
        task = make_task(context={"interested_property_id": "prop-2"})
        assert task.property_id == "prop-2"

    def test_naive_timestamps_are_utc(self):
        task = make_task(scheduled_for=NOW.replace(tzinfo=None))

        assert task.scheduled_for == NOW
        assert task.is_due(NOW)
        assert not task.is_due(NOW - timedelta(seconds=1))

    def test_naive_record_timestamp_compares_with_aware_clock(self):
        record = make_task(id="task-9").to_record()
        record["scheduled_for"] = "2025-03-11T17:59:00"

        task = AgentTask.from_record(record)

        assert task.scheduled_for.tzinfo is not None
        assert task.is_due(NOW)


class TestLeadFunnel:
    """Tests for lead status rules"""

    def test_any_open_status_may_move_anywhere(self):
        assert can_transition_lead(LeadStatus.QUALIFIED, LeadStatus.CONTACTED)
        assert can_transition_lead(LeadStatus.NEW, LeadStatus.LOST)
        assert not can_transition_lead(LeadStatus.NEW, LeadStatus.NEW)

    def test_automation_only_moves_forward(self):
        assert should_advance(LeadStatus.NEW, LeadStatus.CONTACTED)
        assert not should_advance(LeadStatus.QUALIFIED, LeadStatus.CONTACTED)

    def test_closed_leads_never_advance(self):
        assert not should_advance(LeadStatus.LOST, LeadStatus.CONTACTED)
        assert not should_advance(LeadStatus.CONVERTED, LeadStatus.CONTACTED)

    def test_lost_ranks_lowest(self):
        assert funnel_rank(LeadStatus.LOST) < funnel_rank(LeadStatus.NEW)

    def test_consent_per_channel(self):
        lead = make_lead(sms_consent=False, email=None)
        assert lead.has_consent_for("call")
        assert not lead.has_consent_for("sms")
        assert not lead.has_consent_for("email")

    def test_display_name_fallbacks(self):
        assert make_lead(first_name=None).display_name == "Maria"
        assert make_lead(first_name=None, full_name=None).display_name == "there"


class TestShowingTransitions:
    """Tests for the showing status machine"""

    def test_scheduled_can_confirm_before_start(self):
        showing = make_showing()
        showing.transition(ShowingStatus.CONFIRMED, now=NOW)
        assert showing.status == ShowingStatus.CONFIRMED

    def test_past_showing_cannot_confirm(self):
        """Test that a showing whose time has passed never becomes confirmed"""
        showing = make_showing(scheduled_at=NOW - timedelta(minutes=5))
        with pytest.raises(InvalidTransitionError):
            showing.transition(ShowingStatus.CONFIRMED, now=NOW)

    def test_confirmed_cannot_return_to_scheduled(self):
        assert not can_transition_showing(ShowingStatus.CONFIRMED, ShowingStatus.SCHEDULED)
        assert not can_transition_showing(ShowingStatus.CONFIRMED, ShowingStatus.CONFIRMED)

    def test_terminal_showing_statuses(self):
        for terminal in (ShowingStatus.COMPLETED, ShowingStatus.NO_SHOW, ShowingStatus.CANCELLED):
            for target in ShowingStatus:
                assert not can_transition_showing(terminal, target)

    def test_rescheduled_only_cancels(self):
        assert can_transition_showing(ShowingStatus.RESCHEDULED, ShowingStatus.CANCELLED)
        assert not can_transition_showing(ShowingStatus.RESCHEDULED, ShowingStatus.CONFIRMED)

    def test_from_record_defaults_attempts(self):
        showing = make_showing().model_dump()
        showing["scheduled_at"] = "2025-03-12T18:00:00Z"
        showing["confirmation_attempts"] = None
        parsed = Showing.from_record(showing)
        assert parsed.confirmation_attempts == 0
        assert parsed.scheduled_at == NOW + timedelta(days=1)
