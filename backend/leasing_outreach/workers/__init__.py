"""
Workers Package
Task dispatcher and the background worker that drives it

The worker itself is run with:
    python -m leasing_outreach.workers.outreach_worker
"""
from leasing_outreach.workers.outreach_dispatcher import (
    DispatchOutcome,
    OutreachDispatcher,
    build_dispatcher,
)

__all__ = [
    "DispatchOutcome",
    "OutreachDispatcher",
    "build_dispatcher",
]
