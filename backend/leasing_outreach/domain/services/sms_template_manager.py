"""
SMS Template Manager
Templates for outreach text messages
"""
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class SMSTemplateType(str, Enum):
    """Types of SMS templates available."""
    RECAPTURE = "recapture"
    SHOWING_CONFIRMATION = "showing_confirmation"
    NO_SHOW_FOLLOWUP = "no_show_followup"
    WELCOME = "welcome"
    CALLBACK = "callback"
    SEND_APPLICATION = "send_application"


@dataclass
class SMSTemplate:
    """SMS template with content and metadata."""
    name: str
    template_type: SMSTemplateType
    content: str
    required_vars: List[str]
    max_length: int = 160

    def render(self, **kwargs) -> str:
        """
        Render the template with provided variables.

        Raises:
            ValueError: If required variables are missing
        """
        missing = [var for var in self.required_vars if var not in kwargs]
        if missing:
            raise ValueError(f"Missing required template variables: {missing}")

        try:
            rendered = self.content.format(**kwargs)
        except KeyError as e:
            raise ValueError(f"Template variable not provided: {e}")

        rendered = " ".join(rendered.split())
        if len(rendered) > self.max_length:
            logger.warning(
                f"SMS template '{self.name}' rendered to {len(rendered)} chars "
                f"(exceeds {self.max_length})"
            )
        return rendered


OPT_OUT = "Reply STOP to unsubscribe."

SMS_TEMPLATES: Dict[str, SMSTemplate] = {
    SMSTemplateType.RECAPTURE.value: SMSTemplate(
        name="Recapture",
        template_type=SMSTemplateType.RECAPTURE,
        content="Hi {name}, we tried reaching you about {property_mention}. {contact_line} " + OPT_OUT,
        required_vars=["name", "property_mention", "contact_line"],
    ),
    SMSTemplateType.SHOWING_CONFIRMATION.value: SMSTemplate(
        name="Showing Confirmation",
        template_type=SMSTemplateType.SHOWING_CONFIRMATION,
        content="Hi {name}! Showing at {address}, {date} at {time}. "
                "Reply YES to confirm{reschedule_line}. " + OPT_OUT,
        required_vars=["name", "address", "date", "time", "reschedule_line"],
    ),
    SMSTemplateType.NO_SHOW_FOLLOWUP.value: SMSTemplate(
        name="No-Show Follow-up",
        template_type=SMSTemplateType.NO_SHOW_FOLLOWUP,
        content="Hi {name}, we missed you at {address}. No worries! Reply to reschedule{call_line}. " + OPT_OUT,
        required_vars=["name", "address", "call_line"],
    ),
    SMSTemplateType.WELCOME.value: SMSTemplate(
        name="Welcome",
        template_type=SMSTemplateType.WELCOME,
        content="Hi {name}! Thanks for your interest in {property_mention}. "
                "A team member will reach out shortly to help you find the perfect home! " + OPT_OUT,
        required_vars=["name", "property_mention"],
    ),
    SMSTemplateType.CALLBACK.value: SMSTemplate(
        name="Callback",
        template_type=SMSTemplateType.CALLBACK,
        content="Hi {name}, this is {org_name} returning your call. Reply here or call us back anytime. " + OPT_OUT,
        required_vars=["name", "org_name"],
    ),
    SMSTemplateType.SEND_APPLICATION.value: SMSTemplate(
        name="Application Link",
        template_type=SMSTemplateType.SEND_APPLICATION,
        content="Hi {name}, here is your rental application from {org_name}: {application_url} " + OPT_OUT,
        required_vars=["name", "org_name", "application_url"],
    ),
}


# agent_type -> template name where they differ
AGENT_TEMPLATES = {
    "welcome_sequence": SMSTemplateType.WELCOME.value,
    "outbound_callback": SMSTemplateType.CALLBACK.value,
}


class SMSTemplateManager:
    """Template lookup and rendering for outreach SMS."""

    def __init__(self, custom_templates: Optional[Dict[str, SMSTemplate]] = None):
        self._templates = {**SMS_TEMPLATES}
        if custom_templates:
            self._templates.update(custom_templates)

    def get_template(self, template_name: str) -> SMSTemplate:
        if template_name not in self._templates:
            available = ", ".join(self._templates.keys())
            raise ValueError(f"Unknown SMS template: {template_name}. Available: {available}")
        return self._templates[template_name]

    def render_template(self, template_name: str, **kwargs) -> str:
        return self.get_template(template_name).render(**kwargs)

    def render_for_agent(self, agent_type: str, **kwargs) -> str:
        """
        Render the SMS for an agent type with forgiving defaults.

        Optional phone/address pieces collapse to empty strings when absent.
        """
        org_phone = kwargs.pop("org_phone", None) or ""
        context: Dict[str, Any] = {
            "name": kwargs.pop("name", None) or "there",
            "property_mention": kwargs.pop("property_mention", None) or "your home search",
            "address": kwargs.pop("address", None) or "the property",
            "org_name": kwargs.pop("org_name", None) or "our leasing team",
            "contact_line": f"Call us at {org_phone} or reply to schedule a showing!"
            if org_phone else "Reply to schedule a showing!",
            "reschedule_line": f" or call {org_phone} to reschedule" if org_phone else " or reply to reschedule",
            "call_line": f" or call {org_phone}" if org_phone else "",
        }
        context.update(kwargs)
        return self.render_template(AGENT_TEMPLATES.get(agent_type, agent_type), **context)

    def list_templates(self) -> List[str]:
        return list(self._templates.keys())


_sms_template_manager: Optional[SMSTemplateManager] = None


def get_sms_template_manager() -> SMSTemplateManager:
    """Get or create SMSTemplateManager singleton."""
    global _sms_template_manager
    if _sms_template_manager is None:
        _sms_template_manager = SMSTemplateManager()
    return _sms_template_manager
