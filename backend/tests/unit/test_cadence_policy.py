"""
Unit Tests for Cadence Policy, Outreach Rules and organization settings parsing
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from leasing_outreach.domain.models import AgentType, ActionType, OutreachRules
from leasing_outreach.domain.services.cadence_policy import CadencePolicy
from leasing_outreach.domain.services.organization_settings import (
    OrganizationSettingsService,
    parse_rules,
)

from fakes import NOW, make_showing, make_task


class TestContactWindow:
    """Tests for OutreachRules contact window helpers"""

    def test_inside_window(self):
        allowed, reason = OutreachRules().is_within_contact_window(NOW)
        assert allowed
        assert reason == "within_contact_window"

    def test_after_hours(self):
        late = datetime(2025, 3, 12, 2, 0, tzinfo=timezone.utc)
        allowed, reason = OutreachRules().is_within_contact_window(late)
        assert not allowed
        assert reason == "outside_contact_window_09:00_20:00"

    def test_next_window_same_day_before_open(self):
        early = datetime(2025, 3, 11, 11, 0, tzinfo=timezone.utc)  # 07:00 local
        assert OutreachRules().get_next_window_start(early) == datetime(2025, 3, 11, 13, 0, tzinfo=timezone.utc)

    def test_next_window_skips_sunday(self):
        saturday_night = datetime(2025, 3, 16, 2, 0, tzinfo=timezone.utc)  # Sat 22:00 local
        assert OutreachRules().get_next_window_start(saturday_night) == datetime(2025, 3, 17, 13, 0, tzinfo=timezone.utc)

    def test_align_keeps_moments_inside_window(self):
        assert OutreachRules().align_to_contact_window(NOW) == NOW

    def test_unknown_timezone_falls_back_to_utc(self):
        rules = OutreachRules(timezone="Mars/Olympus", working_hours_start="17:00", working_hours_end="19:00")
        assert rules.is_within_contact_window(NOW)[0]


class TestCadencePolicy:
    """Tests for CadencePolicy"""

    def test_max_attempts_per_agent(self):
        policy = CadencePolicy()
        assert policy.max_attempts(AgentType.RECAPTURE) == 7
        assert policy.max_attempts(AgentType.SHOWING_CONFIRMATION) == 3
        assert policy.max_attempts(AgentType.NO_SHOW_FOLLOWUP) == 3
        assert policy.max_attempts(AgentType.OUTBOUND_CALLBACK) == 3
        assert policy.max_attempts(AgentType.WELCOME_SEQUENCE) == 1

    def test_recapture_uses_schedule_gaps(self):
        policy = CadencePolicy()
        assert policy.next_attempt(AgentType.RECAPTURE, 1).delay == timedelta(days=1)
        assert policy.next_attempt(AgentType.RECAPTURE, 3).delay == timedelta(days=3)
        assert policy.next_attempt(AgentType.RECAPTURE, 6).delay == timedelta(days=7)
        assert policy.next_attempt(AgentType.RECAPTURE, 7) is None

    def test_recapture_anchored_on_previous_task(self):
        task = make_task(attempt_number=3, scheduled_for=NOW - timedelta(hours=2))
        when = CadencePolicy().schedule_next(task, NOW)
        assert when == NOW - timedelta(hours=2) + timedelta(days=3)

    def test_welcome_is_one_shot(self):
        assert CadencePolicy().next_attempt(AgentType.WELCOME_SEQUENCE, 1) is None

    def test_callback_retry_minutes(self):
        task = make_task(AgentType.OUTBOUND_CALLBACK, max_attempts=3)
        assert CadencePolicy().schedule_next(task, NOW) == NOW + timedelta(minutes=120)

    def test_no_show_measured_from_event(self):
        no_show_at = NOW - timedelta(hours=2)
        task = make_task(
            AgentType.NO_SHOW_FOLLOWUP,
            ActionType.SMS,
            attempt_number=2,
            max_attempts=3,
            context={"no_show_at": no_show_at.isoformat()},
        )
        assert CadencePolicy().schedule_next(task, NOW) == no_show_at + timedelta(days=3)

    def test_retry_moved_into_contact_window(self):
        late = datetime(2025, 3, 11, 23, 30, tzinfo=timezone.utc)  # 19:30 local
        task = make_task(AgentType.OUTBOUND_CALLBACK, max_attempts=3)
        assert CadencePolicy().schedule_next(task, late) == datetime(2025, 3, 12, 13, 0, tzinfo=timezone.utc)

    def test_notify_not_aligned(self):
        late = datetime(2025, 3, 12, 2, 0, tzinfo=timezone.utc)
        task = make_task(AgentType.NOTIFY, ActionType.NOTIFY, max_attempts=3)
        assert CadencePolicy().schedule_next(task, late) == late + timedelta(minutes=5)

    def test_confirmation_clamped_before_showing(self):
        showing = make_showing(scheduled_at=NOW + timedelta(hours=2))
        task = make_task(AgentType.SHOWING_CONFIRMATION, max_attempts=3)
        assert CadencePolicy().schedule_next(task, NOW, showing) == NOW + timedelta(hours=1, minutes=30)

    def test_confirmation_without_slot_returns_none(self):
        showing = make_showing(scheduled_at=NOW + timedelta(minutes=20))
        task = make_task(AgentType.SHOWING_CONFIRMATION, max_attempts=3)
        assert CadencePolicy().schedule_next(task, NOW, showing) is None

    def test_final_attempt_returns_none(self):
        task = make_task(AgentType.OUTBOUND_CALLBACK, attempt_number=3, max_attempts=3)
        assert CadencePolicy().schedule_next(task, NOW) is None

    def test_welcome_recapture_starts_after_first_delay(self):
        assert CadencePolicy().welcome_recapture_at(NOW) == NOW + timedelta(hours=24)


class TestParseRules:
    """Tests for organization settings parsing"""

    def test_empty_settings_use_defaults(self):
        assert parse_rules(None) == OutreachRules.default()
        assert parse_rules({}) == OutreachRules.default()

    def test_working_days_stored_sunday_first(self):
        rules = parse_rules({"working_days": [1, 2, 3, 4, 5]})
        assert rules.working_days == [0, 1, 2, 3, 4]

    def test_sunday_maps_to_six(self):
        assert parse_rules({"working_days": [0, 6]}).working_days == [5, 6]

    def test_unknown_keys_ignored(self):
        rules = parse_rules({"favorite_color": "blue", "max_calls_per_day": 5})
        assert rules.max_calls_per_day == 5

    def test_invalid_value_falls_back_per_key(self):
        rules = parse_rules({"max_calls_per_day": -1, "working_hours_start": "10:00"})
        assert rules.max_calls_per_day == 3
        assert rules.working_hours_start == "10:00"

    def test_invalid_schedule_entry(self):
        rules = parse_rules({"recapture_schedule": ["soon"], "recapture_max_attempts": 4})
        assert rules.recapture_schedule == OutreachRules().recapture_schedule
        assert rules.recapture_max_attempts == 4

    def test_agents_enabled_defaults_on(self):
        rules = parse_rules({"agents_enabled": {"recapture": False}})
        assert not rules.agent_enabled("recapture")
        assert rules.agent_enabled("showing_confirmation")
        assert OutreachRules().agent_enabled("notify")


class TestOrganizationSettingsService:
    """Tests for OrganizationSettingsService"""

    @pytest.mark.asyncio
    async def test_store_error_uses_defaults(self):
        store = AsyncMock()
        store.get_org_settings.side_effect = RuntimeError("connection reset")

        rules = await OrganizationSettingsService(store).get_rules("org-1")

        assert rules == OutreachRules.default()

    @pytest.mark.asyncio
    async def test_reads_every_call(self):
        store = AsyncMock()
        store.get_org_settings.side_effect = [{"max_sms_per_day": 1}, {"max_sms_per_day": 2}]
        service = OrganizationSettingsService(store)

        assert (await service.get_rules("org-1")).max_sms_per_day == 1
        assert (await service.get_rules("org-1")).max_sms_per_day == 2
