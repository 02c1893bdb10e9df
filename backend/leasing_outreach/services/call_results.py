"""
Call Result Processing
Applies the voice provider's asynchronous call-result webhook to
Call, Communication, Lead, Showing and cost records
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from leasing_outreach.core.config import ConfigManager
from leasing_outreach.domain.interfaces.channel_provider import normalize_phone
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import (
    CallRecord,
    CostRecord,
    LeadStatus,
    ShowingStatus,
)

logger = logging.getLogger(__name__)

# Bland.ai status to our call status; unknown statuses count as completed
BLAND_STATUS_MAP = {
    "completed": "completed",
    "answered": "completed",
    "no_answer": "no_answer",
    "busy": "busy",
    "failed": "failed",
    "voicemail": "voicemail",
    "canceled": "cancelled",
}

CONSENT_PHRASES = [
    "yes you can", "yes, you can", "that's fine", "that is fine", "sure",
    "yes please", "yes, please", "of course", "definitely", "absolutely",
]
FOLLOW_UP_CUES = ["follow up", "text", "call you"]

DEFAULT_BLAND_PER_MINUTE = 0.09
DEFAULT_CARRIER_PER_MINUTE = 0.014


def map_call_status(status: Optional[str]) -> str:
    return BLAND_STATUS_MAP.get((status or "").lower(), "completed")


def extract_transcript(payload: Dict[str, Any]) -> Optional[str]:
    """Bland sends the transcript under several names."""
    text = payload.get("transcript") or payload.get("concatenated_transcript")
    if text:
        return text
    turns = payload.get("transcripts")
    if isinstance(turns, list) and turns:
        return "\n".join(f"{t.get('speaker', '')}: {t.get('text', '')}" for t in turns)
    return None


def detect_verbal_consent(transcript: Optional[str]) -> bool:
    """Affirmative answer to a follow-up question counts as call and SMS consent."""
    if not transcript:
        return False
    lowered = transcript.lower()
    if not any(cue in lowered for cue in FOLLOW_UP_CUES):
        return False
    return any(phrase in lowered for phrase in CONSENT_PHRASES)


def showing_confirmed_in(analysis: Optional[Dict[str, Any]]) -> bool:
    if not analysis:
        return False
    value = analysis.get("showing_confirmed", analysis.get("confirmed"))
    if isinstance(value, str):
        return value.strip().lower() in ("yes", "true", "confirmed")
    return bool(value)


class CallResultProcessor:
    """Handles one Bland.ai call-result event."""

    def __init__(
        self,
        store: OutreachStore,
        config: Optional[ConfigManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._config = config or ConfigManager()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def process(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Record the call and apply its side effects.

        Returns:
            Summary dict; success=False when correlation metadata is missing
        """
        metadata = payload.get("metadata") or {}
        org_id = metadata.get("organization_id")
        lead_id = metadata.get("lead_id")
        if not org_id or not lead_id:
            logger.error("Call result missing organization_id or lead_id in metadata")
            return {"success": False, "error": "Missing metadata"}

        now = self._clock()
        bland_call_id = payload.get("call_id") or ""
        call_status = map_call_status(payload.get("status"))
        transcript = extract_transcript(payload)
        analysis = payload.get("analysis") or {}
        duration = int(payload.get("duration") or 0)
        minutes = duration / 60

        bland_rate = float(self._config.get("providers.voice.cost.per_minute", DEFAULT_BLAND_PER_MINUTE))
        carrier_rate = float(self._config.get("providers.voice.cost.carrier_per_minute", DEFAULT_CARRIER_PER_MINUTE))

        call_id = await self._store.insert_call(CallRecord(
            organization_id=org_id,
            lead_id=lead_id,
            bland_call_id=bland_call_id,
            agent_type=metadata.get("agent_type"),
            phone_number=normalize_phone(payload.get("to") or payload.get("from") or ""),
            status=call_status,
            duration_seconds=duration,
            recording_url=payload.get("recording_url"),
            transcript=transcript,
            summary=payload.get("summary"),
            started_at=now - timedelta(seconds=duration),
            ended_at=now,
            cost_bland=round(minutes * bland_rate, 6),
            cost_twilio=round(minutes * carrier_rate, 6),
        ))

        if bland_call_id:
            await self._store.update_communication_by_ref(bland_call_id, {
                "status": call_status,
                "metadata": {"call_id": call_id, "duration_seconds": duration},
            })

        consent = detect_verbal_consent(transcript)
        await self._update_lead(lead_id, now, consent)
        if consent:
            await self._store.insert_consent_log({
                "organization_id": org_id,
                "lead_id": lead_id,
                "consent_type": "call_and_sms",
                "granted": True,
                "method": "verbal_ai_call",
                "call_id": call_id,
                "evidence_text": "Consent captured during AI call - affirmative response to follow-up question",
            })

        if minutes > 0:
            for service, rate in (("bland_ai", bland_rate), ("twilio_voice", carrier_rate)):
                await self._store.insert_cost(CostRecord(
                    organization_id=org_id,
                    service=service,
                    usage_quantity=minutes,
                    usage_unit="minutes",
                    unit_cost=rate,
                    lead_id=lead_id,
                    call_id=call_id,
                ))

        confirmed = False
        showing_id = metadata.get("showing_id")
        if showing_id and showing_confirmed_in(analysis):
            confirmed = await self._confirm_showing(showing_id, now)

        logger.info(
            f"Call {bland_call_id} for lead {lead_id} recorded: status={call_status}, "
            f"duration={duration}s, consent={consent}, showing_confirmed={confirmed}"
        )
        return {
            "success": True,
            "call_id": call_id,
            "status": call_status,
            "consent_captured": consent,
            "showing_confirmed": confirmed,
        }

    async def _update_lead(self, lead_id: str, now: datetime, consent: bool) -> None:
        updates: Dict[str, Any] = {"last_contact_at": now.isoformat()}
        lead = await self._store.get_lead(lead_id)
        if lead is not None and lead.status == LeadStatus.NEW:
            updates["status"] = LeadStatus.CONTACTED.value
        if consent:
            updates.update({
                "call_consent": True,
                "call_consent_at": now.isoformat(),
                "sms_consent": True,
                "sms_consent_at": now.isoformat(),
            })
        await self._store.update_lead(lead_id, updates)

    async def _confirm_showing(self, showing_id: str, now: datetime) -> bool:
        showing = await self._store.get_showing(showing_id)
        if showing is None or not showing.can_confirm(now):
            logger.info(f"Showing {showing_id} not confirmable from call result")
            return False
        showing.transition(ShowingStatus.CONFIRMED, now)
        await self._store.update_showing(showing_id, {
            "status": ShowingStatus.CONFIRMED.value,
            "confirmed_at": now.isoformat(),
        })
        return True
