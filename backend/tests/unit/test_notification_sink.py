"""
Unit Tests for NotificationSink, ActivityLogger and ChannelExecutor
"""
import pytest

from leasing_outreach.domain.models import ActionType, ActivityStatus, AgentType
from leasing_outreach.services.activity_logger import ActivityLogger
from leasing_outreach.services.channel_executor import ChannelExecutor
from leasing_outreach.services.notification_sink import (
    DEFAULT_ROUTE,
    NotificationSink,
    build_content,
    route_for,
)

from fakes import FakeEmailProvider, FakeSMSProvider, FakeVoiceProvider, ORG_ID, make_lead, make_task


def _notify_task(notification_type, **context):
    return make_task(
        AgentType.NOTIFY,
        ActionType.NOTIFY,
        max_attempts=3,
        context={"notification_type": notification_type, **context},
    )


class TestNotificationRouting:
    """Tests for routing and content"""

    def test_known_route(self):
        route = route_for("showing_cancelled")
        assert route.urgency == "warning"
        assert "email" in route.channels

    def test_unknown_type_uses_default(self):
        assert route_for("mystery") is DEFAULT_ROUTE
        assert route_for(None) is DEFAULT_ROUTE

    def test_cancelled_content_names_lead(self):
        title, message = build_content("showing_cancelled", {"cancellation_reason": "no confirmation"}, make_lead())
        assert title == "Showing Auto-Cancelled"
        assert message.startswith("Maria Lopez's showing was cancelled automatically")

    def test_unconfirmed_showing_alert(self):
        route = route_for("showing_unconfirmed")
        title, message = build_content("showing_unconfirmed", {}, make_lead())
        assert route.urgency == "warning"
        assert title == "Showing Unconfirmed"
        assert message.startswith("Maria Lopez's showing is coming up")

    def test_content_without_lead(self):
        _, message = build_content("failed_contact_attempts", {}, None)
        assert "A lead" in message

    def test_generic_message(self):
        assert build_content(None, {"message": "Heads up"}, None) == ("Notification", "Heads up")


class TestNotificationSink:
    """Tests for NotificationSink.deliver"""

    @pytest.mark.asyncio
    async def test_in_app_row_written(self, store):
        sink = NotificationSink(store)

        result = await sink.deliver(_notify_task("showing_no_show", showing_id="showing-1"), make_lead())

        assert result.dispatched
        record = store.notifications[0]
        assert record["title"] == "Showing No-Show"
        assert record["related_showing_id"] == "showing-1"
        assert record["recipient_roles"] == ["assigned_agent", "editor"]

    @pytest.mark.asyncio
    async def test_email_to_owner_for_email_routes(self, store):
        email = FakeEmailProvider()
        sink = NotificationSink(store, email=email)

        await sink.deliver(_notify_task("priority_lead", priority_reason="Ready to sign"), make_lead())

        assert email.emails[0]["to"] == "owner@example.com"
        assert email.emails[0]["subject"] == "[URGENT] Priority Lead Alert"

    @pytest.mark.asyncio
    async def test_in_app_only_route_sends_no_email(self, store):
        email = FakeEmailProvider()
        sink = NotificationSink(store, email=email)

        await sink.deliver(_notify_task("human_takeover"), make_lead())

        assert email.emails == []

    @pytest.mark.asyncio
    async def test_failed_email_does_not_fail_delivery(self, store):
        sink = NotificationSink(store, email=FakeEmailProvider(succeed=False))

        result = await sink.deliver(_notify_task("system_error", error_message="boom"))

        assert result.dispatched

    @pytest.mark.asyncio
    async def test_store_failure_is_failed_dispatch(self, store):
        async def broken(record):
            raise RuntimeError("notifications table unavailable")

        store.insert_notification = broken

        result = await NotificationSink(store).deliver(_notify_task("priority_lead"))

        assert not result.dispatched
        assert "unavailable" in result.error


class TestActivityLogger:
    """Tests for ActivityLogger"""

    @pytest.mark.asyncio
    async def test_log_writes_entry(self, store):
        ok = await ActivityLogger(store).log(
            ORG_ID, "recapture", "call_attempt", ActivityStatus.SUCCESS,
            message="Call placed", details={"attempt_number": 1}, lead_id="lead-1", task_id="task-1",
        )

        assert ok is True
        entry = store.activity[0]
        assert entry.to_record()["status"] == "success"
        assert entry.details == {"attempt_number": 1}

    @pytest.mark.asyncio
    async def test_write_failure_swallowed(self, store):
        store.fail_activity_writes = True

        ok = await ActivityLogger(store).log(ORG_ID, "recapture", "call_attempt", ActivityStatus.FAILURE)

        assert ok is False


class TestChannelExecutor:
    """Tests for ChannelExecutor metering"""

    @pytest.mark.asyncio
    async def test_call_metadata_and_records(self, executor, store, voice):
        task = make_task(AgentType.SHOWING_CONFIRMATION, max_attempts=3, id="task-1", context={"showing_id": "showing-1"})

        result = await executor.place_call(task, make_lead(), "script", voice_id="maya")

        assert result.dispatched
        sent = voice.calls[0]
        assert sent["webhook_url"] == "https://api.example.com/api/v1/webhooks/voice/call-result"
        assert sent["metadata"]["showing_id"] == "showing-1"
        assert sent["metadata"]["task_id"] == "task-1"
        assert sent["max_duration_minutes"] == 5
        communication = store.communications[0]
        assert communication.status == "initiated"
        assert communication.provider_ref == "call-1"
        assert store.costs[0].communication_id == "comm-1"

    @pytest.mark.asyncio
    async def test_sms_cost_from_config(self, executor, store):
        await executor.send_sms(make_task(action_type=ActionType.SMS), make_lead(), "Hello")

        cost = store.costs[0]
        assert cost.service == "fake_sms_sms"
        assert cost.unit_cost == pytest.approx(0.0079)

    @pytest.mark.asyncio
    async def test_failed_dispatch_writes_nothing(self, store, config):
        executor = ChannelExecutor(store, FakeVoiceProvider(), FakeSMSProvider(succeed=False), FakeEmailProvider(), config=config)

        result = await executor.send_sms(make_task(action_type=ActionType.SMS), make_lead(), "Hello")

        assert not result.dispatched
        assert store.communications == []
        assert store.costs == []

    @pytest.mark.asyncio
    async def test_email_records_subject(self, executor, store, email):
        await executor.send_email(make_task(AgentType.SEND_APPLICATION, ActionType.EMAIL, max_attempts=3), make_lead(), "Apply", "<p/>")

        assert email.emails[0]["to"] == "maria@example.com"
        assert store.communications[0].subject == "Apply"
