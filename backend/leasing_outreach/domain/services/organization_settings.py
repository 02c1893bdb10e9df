"""
Organization Settings Service
Parses organization key/value settings into OutreachRules
"""
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.domain.models.outreach_rules import OutreachRules

logger = logging.getLogger(__name__)


def _js_days_to_weekdays(days: Any) -> Any:
    """Settings store days as 0=Sunday..6=Saturday; rules use 0=Monday."""
    if not isinstance(days, list):
        return days
    return sorted({(int(d) - 1) % 7 for d in days})


def parse_rules(raw: Optional[Dict[str, Any]]) -> OutreachRules:
    """
    Build OutreachRules from raw settings.

    Unknown keys are ignored. A value that fails validation falls back to the
    default for that key and logs a warning.
    """
    if not raw:
        return OutreachRules.default()

    known = set(OutreachRules.model_fields)
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known or value is None:
            continue
        if key == "working_days":
            try:
                value = _js_days_to_weekdays(value)
            except (TypeError, ValueError):
                logger.warning(f"Invalid working_days setting {value!r}, using default")
                continue
        values[key] = value

    try:
        return OutreachRules(**values)
    except ValidationError as e:
        bad_keys = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
        logger.warning(f"Invalid organization settings {sorted(bad_keys)}, using defaults for them")
        cleaned = {k: v for k, v in values.items() if k not in bad_keys}
        return OutreachRules(**cleaned)


class OrganizationSettingsService:
    """Reads organization settings fresh on every call."""

    def __init__(self, store: OutreachStore):
        self._store = store

    async def get_rules(self, organization_id: str) -> OutreachRules:
        try:
            raw = await self._store.get_org_settings(organization_id)
        except Exception as e:
            logger.error(f"Failed to load settings for org {organization_id}: {e}")
            raw = None
        return parse_rules(raw)
