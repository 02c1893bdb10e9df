"""
Outreach Content
Loads the script snapshot for a task and renders call, SMS and email content
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models import AgentTask, AgentType, Lead, OutreachRules, Showing
from leasing_outreach.domain.services.email_template_manager import (
    EmailTemplateManager,
    RenderedEmail,
    get_email_template_manager,
)
from leasing_outreach.domain.services.script_builder import (
    MAX_ALTERNATIVES,
    ScriptContext,
    build_call_script,
    choose_alternatives,
    format_showing_time,
)
from leasing_outreach.domain.services.sms_template_manager import (
    SMSTemplateManager,
    get_sms_template_manager,
)

logger = logging.getLogger(__name__)


class OutreachContent:
    """Bridges the store and the pure script/template builders."""

    def __init__(
        self,
        store: OutreachStore,
        sms_templates: Optional[SMSTemplateManager] = None,
        email_templates: Optional[EmailTemplateManager] = None,
        application_base_url: str = "https://apply.rentfindercleveland.com",
    ):
        self._store = store
        self._sms = sms_templates or get_sms_template_manager()
        self._email = email_templates or get_email_template_manager()
        self._application_base_url = application_base_url

    async def load_context(
        self,
        task: AgentTask,
        lead: Lead,
        showing: Optional[Showing],
        rules: OutreachRules,
    ) -> ScriptContext:
        """Snapshot of organization, property, alternatives and the last call."""
        organization = await self._store.get_organization(task.organization_id)

        property_id = task.property_id or (showing.property_id if showing else None) or lead.interested_property_id
        prop = await self._store.get_property(property_id) if property_id else None

        alternatives = ()
        if prop is not None and not prop.is_available:
            explicit = await self._store.get_properties(prop.alternative_property_ids)
            similar = []
            if not any(p.is_available for p in explicit):
                similar = await self._store.find_available_properties(
                    task.organization_id, prop.bedrooms, exclude_ids=[prop.id], limit=MAX_ALTERNATIVES
                )
            alternatives = tuple(choose_alternatives(explicit, similar))

        last_call = None
        if task.agent_type == AgentType.RECAPTURE:
            calls = await self._store.get_recent_calls(lead.id, limit=1)
            last_call = calls[0] if calls else None

        return ScriptContext(
            lead=lead,
            organization=organization,
            listing=prop,
            alternatives=alternatives,
            last_call=last_call,
            showing=showing,
            timezone=rules.timezone,
            extra=dict(task.context),
        )

    def call_script(self, agent_type: AgentType, ctx: ScriptContext) -> str:
        return build_call_script(agent_type, ctx)

    def application_url(self, ctx: ScriptContext) -> str:
        params = {"lead": ctx.lead.id}
        if ctx.listing is not None:
            params["property"] = ctx.listing.id
        return f"{self._application_base_url}?{urlencode(params)}"

    def sms_body(self, agent_type: AgentType, ctx: ScriptContext) -> str:
        agent_type = AgentType(agent_type)
        values = {
            "name": ctx.lead_name,
            "org_name": ctx.org_name,
            "org_phone": ctx.org_phone,
        }
        if ctx.listing is not None:
            values["address"] = ctx.listing.label
            values["property_mention"] = ctx.listing.label
        if agent_type == AgentType.SHOWING_CONFIRMATION and ctx.showing is not None:
            values["date"], values["time"] = format_showing_time(ctx.showing, ctx.timezone)
        if agent_type == AgentType.SEND_APPLICATION:
            values["application_url"] = self.application_url(ctx)
        return self._sms.render_for_agent(agent_type.value, **values)

    def email(self, agent_type: AgentType, ctx: ScriptContext) -> RenderedEmail:
        agent_type = AgentType(agent_type)
        variables = {
            "org_name": ctx.organization.name if ctx.organization and ctx.organization.name else None,
            "org_phone": ctx.org_phone or None,
            "lead_name": ctx.lead_name,
            "property_address": ctx.listing.label if ctx.listing else None,
            "property_details": ctx.listing.describe() if ctx.listing else None,
        }
        if agent_type == AgentType.SEND_APPLICATION:
            variables["application_url"] = self.application_url(ctx)
            return self._email.render_template("application_link", variables)
        return self._email.render_template("welcome", variables)
