"""Domain models"""

# Task models
from .agent_task import (
    AgentType,
    ActionType,
    TaskStatus,
    TERMINAL_STATUSES,
    AgentTask,
    can_transition_task,
)

# Funnel / showing models
from .lead import (
    LeadStatus,
    Lead,
    can_transition_lead,
    should_advance,
)
from .showing import (
    ShowingStatus,
    ACTIVE_SHOWING_STATUSES,
    Showing,
    can_transition_showing,
)
from .property import (
    Property,
    Organization,
)

# Compliance
from .compliance import (
    ViolationScope,
    ViolationCode,
    Violation,
    ComplianceVerdict,
)

# Audit / metering
from .activity import (
    ActivityStatus,
    ActivityLogEntry,
    CostRecord,
    Communication,
    CallRecord,
)

from .outreach_rules import (
    OutreachRules,
)

__all__ = [
    # Task models
    "AgentType",
    "ActionType",
    "TaskStatus",
    "TERMINAL_STATUSES",
    "AgentTask",
    "can_transition_task",
    # Funnel / showing models
    "LeadStatus",
    "Lead",
    "can_transition_lead",
    "should_advance",
    "ShowingStatus",
    "ACTIVE_SHOWING_STATUSES",
    "Showing",
    "can_transition_showing",
    "Property",
    "Organization",
    # Compliance
    "ViolationScope",
    "ViolationCode",
    "Violation",
    "ComplianceVerdict",
    # Audit / metering
    "ActivityStatus",
    "ActivityLogEntry",
    "CostRecord",
    "Communication",
    "CallRecord",
    "OutreachRules",
]
