"""
Notification Sink
Operator-facing alerts delivered by notify tasks
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from leasing_outreach.domain.interfaces.channel_provider import DispatchResult, EmailProvider
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import AgentTask, Lead
from leasing_outreach.domain.services.email_template_manager import (
    EmailTemplateManager,
    get_email_template_manager,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRoute:
    recipients: Tuple[str, ...]
    channels: Tuple[str, ...]
    urgency: str
    category: str


NOTIFICATION_ROUTING: Dict[str, NotificationRoute] = {
    "priority_lead": NotificationRoute(("admin", "editor"), ("in_app", "email"), "urgent", "lead"),
    "showing_cancelled": NotificationRoute(("assigned_agent", "editor"), ("in_app", "email"), "warning", "showing"),
    "showing_no_show": NotificationRoute(("assigned_agent", "editor"), ("in_app",), "warning", "showing"),
    "showing_unconfirmed": NotificationRoute(("assigned_agent", "editor"), ("in_app", "email"), "warning", "showing"),
    "showing_reschedule_requested": NotificationRoute(("assigned_agent", "editor"), ("in_app",), "info", "showing"),
    "failed_contact_attempts": NotificationRoute(("editor",), ("in_app",), "warning", "lead"),
    "human_takeover": NotificationRoute(("admin",), ("in_app",), "info", "lead"),
    "system_error": NotificationRoute(("admin",), ("in_app", "email"), "urgent", "system"),
}

DEFAULT_ROUTE = NotificationRoute(("admin",), ("in_app",), "info", "system")


def route_for(notification_type: Optional[str]) -> NotificationRoute:
    route = NOTIFICATION_ROUTING.get(notification_type or "")
    if route is None:
        logger.info(f"Unknown notification type {notification_type!r}, using default routing")
        return DEFAULT_ROUTE
    return route


def build_content(notification_type: Optional[str], context: Dict[str, Any], lead: Optional[Lead]) -> Tuple[str, str]:
    """(title, message) for a notification."""
    lead_name = (lead.full_name or lead.first_name) if lead else None
    lead_name = lead_name or "A lead"

    if notification_type == "showing_cancelled":
        reason = context.get("cancellation_reason") or "no confirmation"
        return "Showing Auto-Cancelled", f"{lead_name}'s showing was cancelled automatically ({reason}). Follow up manually."
    if notification_type == "showing_no_show":
        return "Showing No-Show", f"{lead_name} did not show up for their scheduled showing. The no-show follow-up sequence has been initiated."
    if notification_type == "showing_unconfirmed":
        return "Showing Unconfirmed", f"{lead_name}'s showing is coming up and is still unconfirmed. No automated attempt fits before it; please call them."
    if notification_type == "showing_reschedule_requested":
        return "Reschedule Requested", f"{lead_name} replied NO to their showing confirmation and wants a different time."
    if notification_type == "failed_contact_attempts":
        return "Contact Attempts Failed", f"Multiple attempts to reach {lead_name} have failed. Human intervention may be needed."
    if notification_type == "human_takeover":
        return "Human Takeover", f"{lead_name} has been placed under human control. {context.get('reason', '')}".strip()
    if notification_type == "priority_lead":
        return "Priority Lead Alert", f"{lead_name} has been flagged as a priority lead. {context.get('priority_reason', 'Requires immediate attention.')}"
    if notification_type == "system_error":
        return "System Error", f"A system error occurred: {context.get('error_message', 'Unknown error')}. Please check the system logs."
    return "Notification", context.get("message") or "You have a new notification."


class NotificationSink:
    """
    Writes an in-app notification row, plus an email to the organization
    owner when the route includes email.

    The in-app row decides success; a failed email is only logged.
    """

    def __init__(
        self,
        store: OutreachStore,
        email: Optional[EmailProvider] = None,
        templates: Optional[EmailTemplateManager] = None,
    ):
        self._store = store
        self._email = email
        self._templates = templates or get_email_template_manager()

    async def deliver(self, task: AgentTask, lead: Optional[Lead] = None) -> DispatchResult:
        notification_type = task.context.get("notification_type")
        route = route_for(notification_type)
        title, message = build_content(notification_type, task.context, lead)

        record = {
            "organization_id": task.organization_id,
            "title": title,
            "message": message,
            "type": route.urgency,
            "category": route.category,
            "recipient_roles": list(route.recipients),
            "related_lead_id": task.lead_id,
            "related_showing_id": task.context.get("showing_id"),
            "related_property_id": task.context.get("property_id"),
        }
        try:
            await self._store.insert_notification(record)
        except Exception as e:
            logger.error(f"Failed to write notification {notification_type} for org {task.organization_id}: {e}")
            return DispatchResult.failed("in_app", str(e))

        if "email" in route.channels:
            await self._send_email(task, route, title, message)

        return DispatchResult.ok("in_app", None, notification_type=notification_type)

    async def _send_email(self, task: AgentTask, route: NotificationRoute, title: str, message: str) -> None:
        if self._email is None or not self._email.is_configured():
            return
        organization = await self._store.get_organization(task.organization_id)
        if organization is None or not organization.owner_email:
            return
        rendered = self._templates.render_template(
            "operator_notification",
            {"priority": route.urgency, "title": title, "message": message, "org_name": organization.name},
        )
        result = await self._email.send_email(organization.owner_email, rendered.subject, rendered.html)
        if not result.dispatched:
            logger.warning(f"Notification email failed for org {task.organization_id}: {result.error}")
