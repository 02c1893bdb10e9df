"""
Webhooks API Endpoints
Handles incoming webhooks from the voice provider (Bland.ai):
asynchronous call results and in-call pathway actions, plus inbound
texts from the SMS provider (Twilio)
"""
import logging
from typing import Optional
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from leasing_outreach.api.v1.dependencies import get_call_results, get_inbound_sms, get_store, get_triggers
from leasing_outreach.domain.exceptions import NotFoundError
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import ActivityLogEntry, ActivityStatus
from leasing_outreach.services.activity_logger import ActivityLogger
from leasing_outreach.services.call_results import CallResultProcessor
from leasing_outreach.services.inbound_sms import InboundSMSProcessor
from leasing_outreach.services.outreach_triggers import OutreachTriggers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class PathwayRequest(BaseModel):
    """Action posted by a Bland pathway node during a live call."""
    action: str
    organization_id: str
    lead_id: str
    property_id: Optional[str] = None
    property_address: Optional[str] = None
    callback_time: Optional[str] = None
    callback_window: Optional[str] = None
    call_id: Optional[str] = None


@router.post("/voice/call-result")
async def voice_call_result(
    request: Request,
    processor: CallResultProcessor = Depends(get_call_results),
    store: OutreachStore = Depends(get_store),
):
    """
    Handle the Bland.ai call-result webhook.

    Always answers 200 so the provider does not retry; processing errors are
    logged to the activity feed instead.
    """
    org_id = None
    lead_id = None
    try:
        data = await request.json()
        metadata = data.get("metadata") or {}
        org_id = metadata.get("organization_id")
        lead_id = metadata.get("lead_id")
        logger.info(f"Call result webhook: call_id={data.get('call_id')}, status={data.get('status')}")

        return await processor.process(data)

    except Exception as e:
        logger.error(f"Error in voice_call_result: {e}", exc_info=True)
        if org_id:
            await ActivityLogger(store).record(ActivityLogEntry(
                organization_id=org_id,
                agent_type="voice_webhook",
                action="webhook_error",
                status=ActivityStatus.FAILURE,
                message=f"Call result processing error: {e}",
                details={"error": str(e)},
                lead_id=lead_id,
            ))
        return {"success": False, "error": str(e)}


@router.post("/pathway")
async def pathway_action(
    payload: PathwayRequest,
    triggers: OutreachTriggers = Depends(get_triggers),
):
    """
    Handle pathway actions requested by the caller mid-call.

    - create_callback: outbound callback at the requested time
    - send_application: application link now
    """
    context = {
        "property_id": payload.property_id,
        "property_address": payload.property_address,
        "call_id": payload.call_id,
    }
    context = {k: v for k, v in context.items() if v is not None}

    try:
        if payload.action == "create_callback":
            if payload.callback_window:
                context["callback_window"] = payload.callback_window
            task = await triggers.create_callback(
                payload.lead_id,
                callback_time=payload.callback_time,
                organization_id=payload.organization_id,
                context=context,
            )
            return {
                "success": True,
                "message": "Callback scheduled. We'll call you back at the requested time.",
                "task_id": task.id,
                "scheduled_for": task.scheduled_for.isoformat(),
            }

        if payload.action == "send_application":
            task = await triggers.send_application(
                payload.lead_id,
                organization_id=payload.organization_id,
                context=context,
            )
            return {
                "success": True,
                "message": "Application request received. We'll send the application link shortly.",
                "task_id": task.id,
                "channel": task.action_type.value,
            }

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    raise HTTPException(status_code=400, detail=f"Unknown action: {payload.action}")


def twiml(message: Optional[str] = None) -> Response:
    """TwiML answer; an empty Response element sends no reply."""
    body = f"<Message>{escape(message)}</Message>" if message else ""
    xml = f'<?xml version="1.0" encoding="UTF-8"?><Response>{body}</Response>'
    return Response(content=xml, media_type="application/xml")


@router.post("/sms/inbound")
async def sms_inbound(
    request: Request,
    processor: InboundSMSProcessor = Depends(get_inbound_sms),
):
    """
    Handle an inbound text from Twilio (form-encoded).

    STOP/START update SMS consent, YES confirms the lead's next showing and
    NO asks an operator to reschedule it. Always answers valid TwiML.
    """
    try:
        form = await request.form()
        from_number = form.get("From")
        to_number = form.get("To")
        if not from_number or not to_number:
            logger.error("Inbound SMS missing From or To")
            return twiml()

        result = await processor.process(
            from_number=str(from_number),
            to_number=str(to_number),
            body=str(form.get("Body") or ""),
            message_sid=form.get("MessageSid"),
        )
        logger.info(f"Inbound SMS handled: {result.action}")
        return twiml(result.reply)

    except Exception as e:
        logger.error(f"Error in sms_inbound: {e}", exc_info=True)
        return twiml()
