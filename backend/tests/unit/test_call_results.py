"""
Unit Tests for Call Result Processing
Bland.ai call-result webhook side effects
"""
import pytest
from datetime import timedelta

from leasing_outreach.domain.models import LeadStatus, ShowingStatus
from leasing_outreach.services.call_results import (
    CallResultProcessor,
    detect_verbal_consent,
    extract_transcript,
    map_call_status,
    showing_confirmed_in,
)

from fakes import NOW, ORG_ID, make_lead, make_showing


CONSENT_TRANSCRIPT = (
    "agent: Is it okay if we text you about new listings?\n"
    "user: Yes, please. That works for me."
)


def _payload(**overrides):
    payload = {
        "call_id": "bland-123",
        "status": "completed",
        "to": "2165550101",
        "duration": 120,
        "transcript": "agent: Hi Maria\nuser: I'm not interested right now, thanks.",
        "recording_url": "https://recordings.example.com/bland-123.mp3",
        "metadata": {"organization_id": ORG_ID, "lead_id": "lead-1", "agent_type": "recapture"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def processor(store, config, clock):
    return CallResultProcessor(store, config, clock=clock)


class TestHelpers:
    """Tests for payload helpers"""

    def test_status_mapping(self):
        assert map_call_status("answered") == "completed"
        assert map_call_status("canceled") == "cancelled"
        assert map_call_status("NO_ANSWER") == "no_answer"
        assert map_call_status("something-new") == "completed"
        assert map_call_status(None) == "completed"

    def test_transcript_from_turns(self):
        payload = {"transcripts": [{"speaker": "agent", "text": "Hi"}, {"speaker": "user", "text": "Hello"}]}
        assert extract_transcript(payload) == "agent: Hi\nuser: Hello"

    def test_concatenated_transcript(self):
        assert extract_transcript({"concatenated_transcript": "all of it"}) == "all of it"
        assert extract_transcript({}) is None

    def test_consent_needs_follow_up_question(self):
        assert detect_verbal_consent(CONSENT_TRANSCRIPT)
        assert not detect_verbal_consent("user: sure, see you at the showing")
        assert not detect_verbal_consent("agent: can we text you?\nuser: no thank you")
        assert not detect_verbal_consent(None)

    def test_showing_confirmed_values(self):
        assert showing_confirmed_in({"showing_confirmed": True})
        assert showing_confirmed_in({"confirmed": "Yes"})
        assert not showing_confirmed_in({"showing_confirmed": "no"})
        assert not showing_confirmed_in(None)


class TestCallResultProcessor:
    """Tests for CallResultProcessor"""

    @pytest.mark.asyncio
    async def test_missing_metadata(self, processor, store):
        result = await processor.process(_payload(metadata={"lead_id": "lead-1"}))

        assert result == {"success": False, "error": "Missing metadata"}
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_records_call_and_costs(self, processor, store):
        result = await processor.process(_payload())

        assert result["success"] is True
        assert result["call_id"] == "call-1"
        call = store.calls[0]
        assert call.bland_call_id == "bland-123"
        assert call.phone_number == "+12165550101"
        assert call.duration_seconds == 120
        assert call.started_at == NOW - timedelta(seconds=120)
        assert call.cost_bland == pytest.approx(0.18)

        assert [(c.service, c.usage_quantity) for c in store.costs] == [("bland_ai", 2.0), ("twilio_voice", 2.0)]
        assert store.costs[1].total_cost == pytest.approx(0.028)

    @pytest.mark.asyncio
    async def test_updates_communication_by_provider_ref(self, processor, store):
        await processor.process(_payload(status="no_answer", duration=0))

        ref, updates = store.communication_updates[0]
        assert ref == "bland-123"
        assert updates["status"] == "no_answer"
        assert store.costs == []

    @pytest.mark.asyncio
    async def test_new_lead_becomes_contacted(self, processor, store):
        await processor.process(_payload())

        assert store.leads["lead-1"].status == LeadStatus.CONTACTED
        assert "last_contact_at" in store.lead_updates[0][1]

    @pytest.mark.asyncio
    async def test_advanced_lead_keeps_status(self, processor, store):
        store.add_lead(make_lead(status="qualified"))

        await processor.process(_payload())

        assert store.leads["lead-1"].status == LeadStatus.QUALIFIED

    @pytest.mark.asyncio
    async def test_verbal_consent_captured(self, processor, store):
        store.add_lead(make_lead(call_consent=False, sms_consent=False))

        result = await processor.process(_payload(transcript=CONSENT_TRANSCRIPT))

        assert result["consent_captured"] is True
        lead = store.leads["lead-1"]
        assert lead.call_consent and lead.sms_consent
        assert store.consent_log[0]["method"] == "verbal_ai_call"
        assert store.consent_log[0]["consent_type"] == "call_and_sms"

    @pytest.mark.asyncio
    async def test_confirms_showing_from_analysis(self, processor, store):
        store.add_showing(make_showing())
        payload = _payload(analysis={"showing_confirmed": True})
        payload["metadata"]["showing_id"] = "showing-1"

        result = await processor.process(payload)

        assert result["showing_confirmed"] is True
        assert store.showings["showing-1"].status == ShowingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_past_showing_not_confirmed(self, processor, store):
        store.add_showing(make_showing(scheduled_at=NOW - timedelta(minutes=10)))
        payload = _payload(analysis={"confirmed": "yes"})
        payload["metadata"]["showing_id"] = "showing-1"

        result = await processor.process(payload)

        assert result["showing_confirmed"] is False
        assert store.showings["showing-1"].status == ShowingStatus.SCHEDULED
        assert store.showing_updates == []
