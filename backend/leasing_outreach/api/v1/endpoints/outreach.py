"""
Outreach API Endpoints
Cron entry point for dispatching due tasks and the enqueue contract
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from leasing_outreach.api.v1.dependencies import get_dispatcher, get_triggers
from leasing_outreach.domain.exceptions import NotFoundError
from leasing_outreach.domain.models import AgentType
from leasing_outreach.services.outreach_triggers import OutreachTriggers
from leasing_outreach.workers.outreach_dispatcher import OutreachDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/outreach", tags=["outreach"])


class DispatchRequest(BaseModel):
    limit: int = Field(default=20, ge=1, le=100)


class EnqueueRequest(BaseModel):
    agent_type: AgentType
    lead_id: str
    scheduled_for: Optional[datetime] = None
    context: Dict[str, Any] = Field(default_factory=dict)


@router.post("/dispatch")
async def dispatch_due_tasks(
    request: Optional[DispatchRequest] = None,
    dispatcher: OutreachDispatcher = Depends(get_dispatcher),
):
    """
    Dispatch one batch of due tasks.

    Called on a schedule; overlapping runs are safe because every task is
    claimed atomically before it executes.
    """
    limit = request.limit if request else 20
    outcomes = await dispatcher.run_due(limit=limit)
    claimed = [o for o in outcomes if o.claimed]
    logger.info(f"Dispatch run: {len(outcomes)} due, {len(claimed)} claimed")
    return {
        "processed": len(claimed),
        "skipped": len(outcomes) - len(claimed),
        "results": [o.to_dict() for o in outcomes],
    }


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def enqueue_task(
    request: EnqueueRequest,
    triggers: OutreachTriggers = Depends(get_triggers),
):
    """Enqueue attempt 1 of a task chain for a lead."""
    try:
        task = await triggers.enqueue_task(
            request.agent_type,
            request.lead_id,
            scheduled_for=request.scheduled_for,
            context=request.context,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return {"task_id": task.id, "scheduled_for": task.scheduled_for.isoformat()}
