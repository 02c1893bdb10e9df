"""
Outreach Exceptions
Error taxonomy for task dispatch and channel execution
"""
from typing import Any, Dict, Optional


class OutreachError(Exception):
    """Base class for outreach engine errors."""

    reason: str = "outreach_error"

    def __init__(self, message: str = "", reason: Optional[str] = None):
        self.message = message or self.__class__.__name__
        if reason:
            self.reason = reason
        super().__init__(self.message)


class ComplianceBlockedError(OutreachError):
    """Raised when a lead-level compliance violation blocks every channel."""

    reason = "compliance_blocked"

    def __init__(self, verdict: Any, message: Optional[str] = None):
        self.verdict = verdict
        codes = ", ".join(verdict.violation_codes) if verdict is not None else ""
        super().__init__(message or f"Compliance blocked: {codes}")


class ProviderNotConfiguredError(OutreachError):
    """Raised when a channel provider has no credentials configured."""

    reason = "provider_not_configured"


class ProviderDispatchError(OutreachError):
    """A provider rejected or failed to accept a dispatch."""

    reason = "provider_dispatch_failure"

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ProviderTimeoutError(ProviderDispatchError):
    """A provider call exceeded its timeout. Handled as a dispatch failure."""

    reason = "provider_timeout"


class NotFoundError(OutreachError):
    """A Lead, Showing or Task referenced by a task no longer exists."""

    reason = "not_found"

    def __init__(self, entity: str, entity_id: Optional[str]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found: {entity_id}", reason=f"{entity}_not_found")


class AgentDisabledError(OutreachError):
    """The organization has switched this agent type off."""

    reason = "agent_disabled"

    def __init__(self, agent_type: str):
        self.agent_type = agent_type
        super().__init__(f"Agent {agent_type} is disabled for this organization")


class InvalidTransitionError(OutreachError):
    """A state machine was asked for a transition it does not allow."""

    reason = "invalid_transition"

    def __init__(self, machine: str, current: str, target: str):
        self.machine = machine
        self.current = current
        self.target = target
        super().__init__(f"Invalid {machine} transition: {current} -> {target}")


class GoalAlreadySatisfied(Exception):
    """
    Not an error: the task's goal was reached before it ran.

    The dispatcher completes (or cancels) the task without any communication.
    """

    def __init__(self, reason: str, cancel: bool = False, flags: Optional[Dict[str, Any]] = None):
        self.reason = reason
        self.cancel = cancel
        self.flags = flags or {}
        super().__init__(reason)
