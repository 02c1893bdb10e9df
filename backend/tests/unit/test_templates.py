"""
Unit Tests for SMS/Email templates and OutreachContent
"""
import pytest
from datetime import datetime, timezone

from leasing_outreach.domain.models import AgentType, OutreachRules
from leasing_outreach.domain.services.email_template_manager import (
    EmailTemplate,
    EmailTemplateManager,
    get_email_template_manager,
)
from leasing_outreach.domain.services.sms_template_manager import (
    SMSTemplateManager,
    get_sms_template_manager,
)
from leasing_outreach.domain.services.script_builder import ScriptContext
from leasing_outreach.services.outreach_content import OutreachContent

from fakes import make_lead, make_property, make_showing, make_task, seeded_store


class TestSMSTemplateManager:
    """Tests for SMSTemplateManager"""

    def test_singleton(self):
        assert get_sms_template_manager() is get_sms_template_manager()

    def test_render_requires_variables(self):
        with pytest.raises(ValueError, match="Missing required template variables"):
            SMSTemplateManager().render_template("callback", name="Maria")

    def test_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown SMS template"):
            SMSTemplateManager().get_template("birthday")

    def test_recapture_with_phone(self):
        body = SMSTemplateManager().render_for_agent(
            "recapture", name="Maria", property_mention="123 Main St", org_phone="+12165550000"
        )
        assert body == (
            "Hi Maria, we tried reaching you about 123 Main St. "
            "Call us at +12165550000 or reply to schedule a showing! Reply STOP to unsubscribe."
        )

    def test_recapture_defaults(self):
        body = SMSTemplateManager().render_for_agent("recapture")
        assert body.startswith("Hi there, we tried reaching you about your home search.")

    def test_welcome_mapped_from_agent_type(self):
        body = SMSTemplateManager().render_for_agent("welcome_sequence", name="Maria")
        assert "Thanks for your interest" in body

    def test_every_template_has_opt_out(self):
        manager = SMSTemplateManager()
        for name in manager.list_templates():
            assert manager.get_template(name).content.endswith("Reply STOP to unsubscribe.")


class TestEmailTemplateManager:
    """Tests for EmailTemplateManager"""

    def test_singleton(self):
        assert get_email_template_manager() is get_email_template_manager()

    def test_welcome_render(self):
        rendered = EmailTemplateManager().render_template(
            "welcome", {"org_name": "Rent Finder Cleveland", "lead_name": "Maria", "property_address": "123 Main St"}
        )
        assert rendered.subject == "Welcome to Rent Finder Cleveland!"
        assert "Hi Maria" in rendered.html
        assert "123 Main St" in rendered.html

    def test_html_is_escaped(self):
        rendered = EmailTemplateManager().render_template("welcome", {"lead_name": "<script>"})
        assert "<script>" not in rendered.html
        assert "&lt;script&gt;" in rendered.html

    def test_none_values_use_defaults(self):
        rendered = EmailTemplateManager().render_template("welcome", {"org_name": None, "lead_name": None})
        assert rendered.subject == "Welcome to Our Team!"
        assert "Hi there" in rendered.html

    def test_operator_subject_has_priority(self):
        rendered = EmailTemplateManager().render_template(
            "operator_notification", {"priority": "urgent", "title": "System Error", "message": "boom"}
        )
        assert rendered.subject == "[URGENT] System Error"

    def test_unknown_template(self):
        with pytest.raises(ValueError, match="not found"):
            EmailTemplateManager().render_template("newsletter")

    def test_add_template(self):
        manager = EmailTemplateManager()
        manager.add_template(EmailTemplate(name="custom", subject_template="Hi {{ lead_name }}", body_html_template="<p/>"))
        assert manager.render_template("custom", {"lead_name": "Maria"}).subject == "Hi Maria"


class TestOutreachContent:
    """Tests for OutreachContent context loading and rendering"""

    @pytest.mark.asyncio
    async def test_load_context_uses_interested_property(self):
        store = seeded_store()
        content = OutreachContent(store)
        lead = await store.get_lead("lead-1")

        ctx = await content.load_context(make_task(), lead, None, OutreachRules())

        assert ctx.listing.id == "prop-1"
        assert ctx.organization.name == "Rent Finder Cleveland"
        assert ctx.alternatives == ()

    @pytest.mark.asyncio
    async def test_unavailable_property_loads_alternatives(self):
        store = seeded_store()
        store.add_property(make_property("prop-1", status="rented", alternative_property_ids=["alt-1"]))
        store.add_property(make_property("alt-1", address="9 Elm Ave"))
        content = OutreachContent(store)
        lead = await store.get_lead("lead-1")

        ctx = await content.load_context(make_task(), lead, None, OutreachRules())

        assert [p.id for p in ctx.alternatives] == ["alt-1"]

    @pytest.mark.asyncio
    async def test_last_call_loaded_for_recapture(self):
        store = seeded_store()
        store.recent_calls["lead-1"] = [{"status": "failed", "transcript": ""}]
        content = OutreachContent(store)
        lead = await store.get_lead("lead-1")

        ctx = await content.load_context(make_task(), lead, None, OutreachRules())

        assert ctx.last_call == {"status": "failed", "transcript": ""}

    @pytest.mark.asyncio
    async def test_showing_property_preferred_over_interest(self):
        store = seeded_store()
        store.add_property(make_property("prop-2", address="77 Lake Rd"))
        content = OutreachContent(store)
        lead = await store.get_lead("lead-1")
        showing = make_showing(property_id="prop-2")

        ctx = await content.load_context(
            make_task(AgentType.SHOWING_CONFIRMATION, max_attempts=3), lead, showing, OutreachRules()
        )

        assert ctx.listing.id == "prop-2"
        assert ctx.last_call is None

    @pytest.mark.asyncio
    async def test_confirmation_sms_has_local_time(self):
        store = seeded_store()
        content = OutreachContent(store)
        lead = await store.get_lead("lead-1")
        showing = make_showing(scheduled_at=datetime(2025, 3, 12, 18, 0, tzinfo=timezone.utc))
        task = make_task(AgentType.SHOWING_CONFIRMATION, max_attempts=3)

        ctx = await content.load_context(task, lead, showing, OutreachRules())
        body = content.sms_body(AgentType.SHOWING_CONFIRMATION, ctx)

        assert "Showing at 123 Main St, Wednesday, March 12 at 2:00 PM." in body
        assert "Reply YES to confirm or call +12165550000 to reschedule." in body
        assert len(body) <= 160

    @pytest.mark.asyncio
    async def test_application_link(self):
        store = seeded_store()
        content = OutreachContent(store, application_base_url="https://apply.example.com")
        lead = await store.get_lead("lead-1")
        ctx = await content.load_context(make_task(AgentType.SEND_APPLICATION, max_attempts=3), lead, None, OutreachRules())

        rendered = content.email(AgentType.SEND_APPLICATION, ctx)

        assert rendered.template_name == "application_link"
        assert "https://apply.example.com?lead=lead-1&amp;property=prop-1" in rendered.html
        assert content.application_url(ctx) == "https://apply.example.com?lead=lead-1&property=prop-1"

    def test_welcome_email_without_property(self):
        content = OutreachContent(seeded_store())
        rendered = content.email(AgentType.WELCOME_SEQUENCE, ScriptContext(lead=make_lead()))

        assert rendered.template_name == "welcome"
        assert rendered.subject == "Welcome to Our Team!"
