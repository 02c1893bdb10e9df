"""
Activity Logger
Best-effort writer for the operator activity feed
"""
import logging
from typing import Any, Dict, Optional

from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import ActivityLogEntry, ActivityStatus

logger = logging.getLogger(__name__)


class ActivityLogger:
    """
    Writes ActivityLogEntry rows.

    A failed write is logged and swallowed so it can never mask the dispatch
    outcome it describes.
    """

    def __init__(self, store: OutreachStore):
        self._store = store

    async def record(self, entry: ActivityLogEntry) -> bool:
        try:
            await self._store.insert_activity(entry)
            return True
        except Exception as e:
            logger.error(
                f"Failed to write activity log ({entry.agent_type}/{entry.action} "
                f"task={entry.task_id}): {e}"
            )
            return False

    async def log(
        self,
        organization_id: str,
        agent_type: str,
        action: str,
        status: ActivityStatus,
        message: str = "",
        details: Optional[Dict[str, Any]] = None,
        lead_id: Optional[str] = None,
        showing_id: Optional[str] = None,
        task_id: Optional[str] = None,
        execution_ms: Optional[int] = None,
    ) -> bool:
        entry = ActivityLogEntry(
            organization_id=organization_id,
            agent_type=agent_type,
            action=action,
            status=status,
            message=message,
            details=details or {},
            lead_id=lead_id,
            showing_id=showing_id,
            task_id=task_id,
            execution_ms=execution_ms,
        )
        return await self.record(entry)
