"""
Email Template Manager
Jinja2 templates for lead-facing and operator-facing email
"""
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field
from jinja2 import Environment, BaseLoader, select_autoescape
import logging

logger = logging.getLogger(__name__)


class EmailTemplate(BaseModel):
    """Single email template definition."""
    name: str = Field(..., description="Template identifier")
    subject_template: str = Field(..., description="Jinja2 subject template")
    body_html_template: str = Field(..., description="Jinja2 HTML body template")
    variables: List[str] = Field(default_factory=list, description="Variables the template reads")
    description: str = ""


class RenderedEmail(BaseModel):
    """Rendered email ready for sending."""
    subject: str
    html: str
    template_name: str


_LAYOUT_OPEN = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
"""

_LAYOUT_CLOSE = """
<p style="color: #999; font-size: 12px;">You are receiving this email because you contacted {{ org_name }}.</p>
</body>
</html>"""


class EmailTemplateManager:
    """Manages email templates and rendering."""

    def __init__(self):
        self.templates: Dict[str, EmailTemplate] = {}
        self.env = Environment(loader=BaseLoader(), autoescape=select_autoescape(default=True))
        # Subjects are plain text
        self.subject_env = Environment(loader=BaseLoader())
        self._load_default_templates()

    def _load_default_templates(self):
        self.templates["welcome"] = EmailTemplate(
            name="welcome",
            description="First email to a new lead",
            subject_template="Welcome to {{ org_name }}!",
            body_html_template=_LAYOUT_OPEN + """
<h1 style="color: #370d4b; font-size: 24px;">Welcome to {{ org_name }}!</h1>
<p style="font-size: 16px;">Hi {{ lead_name | default('there') }},</p>
<p>Thanks for reaching out about your next home. A member of our team will be in touch shortly.</p>
{% if property_address %}
<div style="margin: 20px 0; padding: 20px; background: #f8f9fa; border-radius: 8px;">
  <h3 style="margin: 0 0 10px 0; color: #370d4b;">{{ property_address }}</h3>
  {% if property_details %}<p style="margin: 0; color: #666;">{{ property_details }}</p>{% endif %}
</div>
{% endif %}
{% if org_phone %}<p>Questions? Call us at <strong>{{ org_phone }}</strong>.</p>{% endif %}
""" + _LAYOUT_CLOSE,
            variables=["org_name", "lead_name", "property_address", "property_details", "org_phone"],
        )

        self.templates["application_link"] = EmailTemplate(
            name="application_link",
            description="Rental application link requested during a call",
            subject_template="Your rental application from {{ org_name }}",
            body_html_template=_LAYOUT_OPEN + """
<p style="font-size: 16px;">Hi {{ lead_name | default('there') }},</p>
<p>As promised, here is the link to start your rental application{% if property_address %} for {{ property_address }}{% endif %}:</p>
<p><a href="{{ application_url }}" style="color: #0066cc;">{{ application_url }}</a></p>
""" + _LAYOUT_CLOSE,
            variables=["org_name", "lead_name", "property_address", "application_url"],
        )

        self.templates["operator_notification"] = EmailTemplate(
            name="operator_notification",
            description="Operator alert for notifications that need attention",
            subject_template="[{{ priority | upper }}] {{ title }}",
            body_html_template=_LAYOUT_OPEN + """
<h2 style="color: #370d4b;">{{ title }}</h2>
<p>{{ message }}</p>
{% if link %}<p><a href="{{ link }}">Open in dashboard</a></p>{% endif %}
""" + _LAYOUT_CLOSE,
            variables=["priority", "title", "message", "link", "org_name"],
        )

    def render_template(self, template_name: str, variables: Optional[Dict[str, Any]] = None) -> RenderedEmail:
        """
        Render a template.

        Raises:
            ValueError: If the template is unknown
        """
        template = self.templates.get(template_name)
        if template is None:
            raise ValueError(f"Template '{template_name}' not found. Available: {list(self.templates.keys())}")

        context = {"org_name": "Our Team"}
        context.update({k: v for k, v in (variables or {}).items() if v is not None})

        subject = self.subject_env.from_string(template.subject_template).render(**context)
        html = self.env.from_string(template.body_html_template).render(**context)

        logger.debug(f"Rendered email template '{template_name}' with {len(context)} variables")
        return RenderedEmail(subject=subject.strip(), html=html, template_name=template_name)

    def add_template(self, template: EmailTemplate) -> None:
        self.templates[template.name] = template
        logger.info(f"Added email template: {template.name}")

    def list_templates(self) -> List[str]:
        return list(self.templates.keys())


_template_manager: Optional[EmailTemplateManager] = None


def get_email_template_manager() -> EmailTemplateManager:
    """Get or create EmailTemplateManager singleton."""
    global _template_manager
    if _template_manager is None:
        _template_manager = EmailTemplateManager()
    return _template_manager
