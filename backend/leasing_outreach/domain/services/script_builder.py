"""
Script Builder
Pure content selection for voice-call scripts

Every builder takes an immutable ScriptContext snapshot and returns the
prompt handed to the voice provider. Nothing here touches the network.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytz

from leasing_outreach.domain.models import AgentType, Lead, Organization, Property, Showing

# A previous call with a transcript shorter than this is treated as dropped
DROPPED_TRANSCRIPT_CHARS = 50
MAX_ALTERNATIVES = 3

CLOSING_INSTRUCTIONS = """

Your goals:
1. Re-engage the lead and understand their current housing situation
2. Capture any missing info (name, email, move-in timeline, voucher status)
3. Offer to schedule a property showing
4. Get consent for follow-up: "Is it okay if we text you about new listings?"

Be warm, helpful, and not pushy. If they're no longer interested, thank them and wish them well.
At the end, mention: "You can reply STOP to any text to unsubscribe.\""""


@dataclass(frozen=True)
class ScriptContext:
    """Immutable snapshot of everything a script may mention."""
    lead: Lead
    organization: Optional[Organization] = None
    listing: Optional[Property] = None
    alternatives: Tuple[Property, ...] = ()
    last_call: Optional[Dict[str, Any]] = None
    showing: Optional[Showing] = None
    timezone: str = "America/New_York"
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def lead_name(self) -> str:
        return self.lead.display_name

    @property
    def org_name(self) -> str:
        if self.organization and self.organization.name:
            return self.organization.name
        return "our leasing team"

    @property
    def org_phone(self) -> str:
        if self.organization and self.organization.phone:
            return self.organization.phone
        return ""

    @property
    def property_unavailable(self) -> bool:
        return self.listing is not None and not self.listing.is_available


def was_call_dropped(last_call: Optional[Dict[str, Any]]) -> bool:
    """A last call that failed, or barely produced a transcript, was dropped."""
    if not last_call:
        return False
    if last_call.get("status") == "failed":
        return True
    return len(last_call.get("transcript") or "") < DROPPED_TRANSCRIPT_CHARS


def choose_alternatives(
    explicit: Sequence[Property],
    similar: Sequence[Property],
    limit: int = MAX_ALTERNATIVES,
) -> List[Property]:
    """
    Deterministic alternative selection.

    Prefer the property's explicit alternatives that are still available;
    otherwise fall back to same-bedroom available properties, cheapest first.
    """
    available = [p for p in explicit if p.is_available][:limit]
    if available:
        return available
    ranked = sorted(
        (p for p in similar if p.is_available),
        key=lambda p: (p.rent_price is None, p.rent_price or 0.0),
    )
    return ranked[:limit]


def format_showing_time(showing: Showing, tz_name: str) -> Tuple[str, str]:
    """(date, time) strings in the organization's timezone."""
    try:
        tz = pytz.timezone(tz_name)
    except pytz.exceptions.UnknownTimeZoneError:
        tz = pytz.UTC
    local = showing.scheduled_at.astimezone(tz)
    return local.strftime("%A, %B %d"), local.strftime("%I:%M %p").lstrip("0")


def _rent(prop: Property) -> str:
    return f"${prop.rent_price:,.0f}/mo" if prop.rent_price is not None else "price on request"


def _property_summary(prop: Property) -> str:
    location = ", ".join(part for part in (prop.label, prop.city) if part)
    return f"{location} ({prop.bedrooms or '?'}BR/{prop.bathrooms or '?'}BA, {_rent(prop)})"


def _property_context(ctx: ScriptContext) -> str:
    prop = ctx.listing
    if prop is None:
        return ""
    if prop.is_available:
        return f"The lead was interested in {_property_summary(prop)} which is still available."
    text = f"The lead was interested in {prop.label} which is no longer available."
    if ctx.alternatives:
        alts = ", ".join(f"{a.label} ({_rent(a)})" for a in ctx.alternatives)
        text += f" Alternatives: {alts}."
    return text


def build_recapture_script(ctx: ScriptContext) -> str:
    """Dropped-call, alternatives, or generic re-engagement variant."""
    property_context = _property_context(ctx)

    if was_call_dropped(ctx.last_call):
        script = (
            "You are calling back a lead who was speaking with us but got disconnected.\n\n"
            f'Greeting: "Hi {ctx.lead_name}, this is {ctx.org_name}. We were speaking earlier and got '
            'disconnected. I wanted to make sure we could continue helping you find your new home."\n\n'
            f"{property_context}"
        )
    elif ctx.property_unavailable and ctx.alternatives:
        alt_lines = "\n".join(
            f"{a.label} - {a.bedrooms or '?'}BR, {_rent(a)}" for a in ctx.alternatives
        )
        script = (
            "You are calling a lead who previously inquired about a property that's no longer available.\n\n"
            f'Greeting: "Hi {ctx.lead_name}, this is {ctx.org_name}. You recently called about '
            f"{ctx.listing.label}, and I wanted to let you know that property is no longer available. "
            "But we have some similar homes I think you'll love!\"\n\n"
            f"Available alternatives:\n{alt_lines}\n\n"
            "Describe these alternatives enthusiastically. Try to schedule a showing."
        )
    else:
        script = (
            "You are doing a friendly follow-up call with a lead who showed interest but hasn't moved forward yet.\n\n"
            f'Greeting: "Hi {ctx.lead_name}, this is {ctx.org_name}. You recently showed interest in one of '
            'our properties, and I wanted to check in to see if you\'re still looking for a home."\n\n'
            f"{property_context or 'Ask what they are looking for in terms of location, bedrooms, and budget.'}"
        )

    return script + CLOSING_INSTRUCTIONS


def build_confirmation_script(ctx: ScriptContext) -> str:
    if ctx.showing is None:
        raise ValueError("Confirmation script needs a showing")
    date_str, time_str = format_showing_time(ctx.showing, ctx.timezone)
    address = ctx.listing.label if ctx.listing else "the property"
    facts = _property_summary(ctx.listing) if ctx.listing else ""

    return (
        "You are confirming a property showing appointment.\n\n"
        f'Greeting: "Hi {ctx.lead_name}, this is {ctx.org_name} calling to confirm your property showing."\n\n'
        f"Details:\n- Property: {address}\n- Date: {date_str}\n- Time: {time_str}\n\n"
        "Your script:\n"
        f'1. Confirm: "Can you confirm you\'ll be there for your showing at {address} on {date_str} at {time_str}?"\n'
        '2. If YES: "Great! We\'ll see you then. Do you have any questions about the property beforehand?"\n'
        '3. If NO / need to reschedule: "No problem! What day and time would work better for you?"\n'
        '4. Remind them: "Please arrive 5-10 minutes early and bring a valid ID.'
        f'{" Call us at " + ctx.org_phone + " if anything changes." if ctx.org_phone else ""}"\n\n'
        f"Be friendly and helpful. {('Property facts: ' + facts) if facts else ''}"
    ).rstrip()


def build_no_show_script(ctx: ScriptContext) -> str:
    address = ctx.listing.label if ctx.listing else "the property"
    still_available = ctx.listing is not None and ctx.listing.is_available

    lines = [
        "You are following up with a lead who missed their property showing. "
        "Be warm, understanding, and non-accusatory. Do NOT guilt or blame them.",
        "",
        f'Greeting: "Hi {ctx.lead_name}, this is {ctx.org_name}. I hope everything is okay. '
        f'We noticed you weren\'t able to make it to your showing at {address}."',
        "",
        "Key points:",
        '1. Express understanding: "Life gets busy, and things come up. It\'s totally understandable."',
        '2. Check if they\'re still interested: "Are you still looking for a new home?"',
        "3. Offer to reschedule"
        + (f": {address} is still available." if still_available else " at a similar home."),
        '4. Make it easy: "What day and time would be more convenient?"',
        "",
        "If they're no longer interested, wish them well and thank them for their time.",
    ]
    if ctx.org_phone:
        lines.append(f'End with: "Feel free to call us anytime at {ctx.org_phone}."')
    return "\n".join(lines)


def build_callback_script(ctx: ScriptContext) -> str:
    reason = ctx.extra.get("reason") or "their earlier inquiry"
    return (
        f"You are returning a call the lead asked for about {reason}.\n\n"
        f'Greeting: "Hi {ctx.lead_name}, this is {ctx.org_name} calling you back as promised."\n\n'
        f"{_property_context(ctx)}"
        + CLOSING_INSTRUCTIONS
    )


SCRIPT_BUILDERS = {
    AgentType.RECAPTURE: build_recapture_script,
    AgentType.SHOWING_CONFIRMATION: build_confirmation_script,
    AgentType.NO_SHOW_FOLLOWUP: build_no_show_script,
    AgentType.OUTBOUND_CALLBACK: build_callback_script,
}


def build_call_script(agent_type: AgentType, ctx: ScriptContext) -> str:
    builder = SCRIPT_BUILDERS.get(AgentType(agent_type))
    if builder is None:
        raise ValueError(f"No call script for agent type: {agent_type}")
    return builder(ctx)
