"""
Outreach Rules Model
Organization-configurable cadence, compliance and contact-window settings
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime, time, timedelta
import pytz


DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class OutreachRules(BaseModel):
    """
    Organization-configurable outreach rules.

    Stored as key/value rows in organization_settings and read-only for the
    duration of a dispatcher invocation.
    """

    # Recapture cadence (day offsets from the first attempt)
    recapture_schedule: List[int] = Field(default=[1, 2, 4, 7, 10, 14, 21])
    recapture_max_attempts: int = Field(default=7, ge=1, le=30)
    recapture_first_delay_hours: int = Field(default=24, ge=0, le=720)

    # Showing confirmation
    confirmation_hours_before: int = Field(default=24, ge=1, le=168)
    confirmation_max_attempts: int = Field(default=3, ge=1, le=10)
    confirmation_retry_hours: int = Field(default=4, ge=1, le=48)

    # No-show follow-up (day offsets from the no-show event)
    no_show_delay_hours: int = Field(default=2, ge=0, le=72)
    no_show_schedule_days: List[int] = Field(default=[1, 3])
    no_show_max_attempts: int = Field(default=3, ge=1, le=10)

    # Inbound pathway actions
    callback_retry_minutes: int = Field(default=120, ge=5, le=1440)
    callback_max_attempts: int = Field(default=3, ge=1, le=10)

    # Contact window
    working_hours_start: str = Field(default="09:00", description="HH:MM, organization local time")
    working_hours_end: str = Field(default="20:00", description="HH:MM, organization local time")
    working_days: List[int] = Field(
        default=[0, 1, 2, 3, 4, 5],
        description="Days when outreach is allowed (0=Monday, 6=Sunday)"
    )
    timezone: str = Field(default="America/New_York")

    # Agent types switched on or off; an agent type missing here is enabled
    agents_enabled: Dict[str, bool] = Field(default_factory=dict)

    # Channels
    calls_enabled: bool = True
    sms_enabled: bool = True
    email_enabled: bool = True

    # Frequency caps (outbound attempts per channel in a rolling 24h)
    max_calls_per_day: int = Field(default=3, ge=0)
    max_sms_per_day: int = Field(default=3, ge=0)
    max_emails_per_day: int = Field(default=3, ge=0)

    # Voice
    bland_voice_id: str = "default"

    def _tz(self):
        try:
            return pytz.timezone(self.timezone)
        except pytz.exceptions.UnknownTimeZoneError:
            return pytz.UTC

    def _localize(self, moment: Optional[datetime]) -> datetime:
        tz = self._tz()
        if moment is None:
            return datetime.now(tz)
        if moment.tzinfo is None:
            return tz.localize(moment)
        return moment.astimezone(tz)

    def is_within_contact_window(self, check_time: Optional[datetime] = None) -> tuple[bool, str]:
        """
        Check whether a moment falls inside the organization's contact window.

        Returns:
            (is_allowed, reason)
        """
        local = self._localize(check_time)

        current_day = local.weekday()
        if current_day not in self.working_days:
            return False, f"outreach_not_allowed_on_{DAY_NAMES[current_day]}"

        try:
            start_hour, start_min = map(int, self.working_hours_start.split(":"))
            end_hour, end_min = map(int, self.working_hours_end.split(":"))
        except ValueError:
            return True, "invalid_time_format_default_allow"

        current_time = local.time()
        if time(start_hour, start_min) <= current_time <= time(end_hour, end_min):
            return True, "within_contact_window"
        return False, f"outside_contact_window_{self.working_hours_start}_{self.working_hours_end}"

    def get_next_window_start(self, from_time: Optional[datetime] = None) -> datetime:
        """
        Get the next time the contact window opens, in UTC.
        """
        tz = self._tz()
        local = self._localize(from_time)

        start_hour, start_min = map(int, self.working_hours_start.split(":"))
        today_start = local.replace(hour=start_hour, minute=start_min, second=0, microsecond=0)

        if local.weekday() in self.working_days and local < today_start:
            return today_start.astimezone(pytz.UTC)

        check_date = local.date()
        for _ in range(7):
            check_date = check_date + timedelta(days=1)
            if check_date.weekday() in self.working_days:
                next_window = tz.localize(datetime.combine(check_date, time(start_hour, start_min)))
                return next_window.astimezone(pytz.UTC)

        return (today_start + timedelta(days=1)).astimezone(pytz.UTC)

    def align_to_contact_window(self, moment: datetime) -> datetime:
        """Shift a moment to the next window start when it falls outside the window."""
        allowed, _ = self.is_within_contact_window(moment)
        if allowed:
            return moment
        return self.get_next_window_start(moment)

    def daily_cap_for(self, channel: str) -> Optional[int]:
        return {
            "call": self.max_calls_per_day,
            "sms": self.max_sms_per_day,
            "email": self.max_emails_per_day,
        }.get(channel)

    def channel_enabled(self, channel: str) -> bool:
        return {
            "call": self.calls_enabled,
            "sms": self.sms_enabled,
            "email": self.email_enabled,
        }.get(channel, True)

    def agent_enabled(self, agent_type: str) -> bool:
        return self.agents_enabled.get(agent_type, True)

    @classmethod
    def default(cls) -> "OutreachRules":
        """Create default outreach rules."""
        return cls()

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "OutreachRules":
        """Create from a dictionary (store load)."""
        if data is None:
            return cls.default()
        return cls(**data)
