"""
Conservation Alert State Machine

Single AlertStatus enum is the source of truth.
Automated progression:
    NEW → OUTREACH_SCHEDULED → OUTREACH_SENT → DRIP_1 → DRIP_2 → DRIP_3
SAVED and LOST are reachable only through agent action and are never
touched by the sweep.

Every status must appear in STATE_CONFIG; a missing entry fails at import.
"""

from datetime import timedelta
from typing import Dict, NamedTuple, Optional, Tuple

from conservation.exceptions import AlertStateError
from conservation.pipeline.models import AlertStatus


GRACE_PERIOD = timedelta(hours=2)


class DripStep(NamedTuple):
    """Follow-up the sweep sends once `delay` has passed since the last one."""
    delay: timedelta
    drip_number: int
    next_status: AlertStatus


STATE_CONFIG: Dict[AlertStatus, dict] = {
    AlertStatus.NEW: {
        "description": "Logged; waiting for the agent",
        "allowed_transitions": [
            AlertStatus.OUTREACH_SENT,
            AlertStatus.SAVED,
            AlertStatus.LOST,
        ],
        "drip": None,
    },
    AlertStatus.OUTREACH_SCHEDULED: {
        "description": "Auto-outreach fires when the grace period ends",
        "allowed_transitions": [
            AlertStatus.OUTREACH_SENT,
            AlertStatus.NEW,  # agent cancelled during the grace period
            AlertStatus.SAVED,
            AlertStatus.LOST,
        ],
        "drip": None,
    },
    AlertStatus.OUTREACH_SENT: {
        "description": "Initial message delivered",
        "allowed_transitions": [AlertStatus.DRIP_1, AlertStatus.SAVED, AlertStatus.LOST],
        "drip": DripStep(timedelta(days=2), 1, AlertStatus.DRIP_1),  # Day 2
    },
    AlertStatus.DRIP_1: {
        "description": "Day-2 follow-up sent",
        "allowed_transitions": [AlertStatus.DRIP_2, AlertStatus.SAVED, AlertStatus.LOST],
        "drip": DripStep(timedelta(days=3), 2, AlertStatus.DRIP_2),  # Day 5
    },
    AlertStatus.DRIP_2: {
        "description": "Day-5 follow-up sent",
        "allowed_transitions": [AlertStatus.DRIP_3, AlertStatus.SAVED, AlertStatus.LOST],
        "drip": DripStep(timedelta(days=2), 3, AlertStatus.DRIP_3),  # Day 7
    },
    AlertStatus.DRIP_3: {
        "description": "Final follow-up sent; automation is done",
        "allowed_transitions": [AlertStatus.SAVED, AlertStatus.LOST],
        "drip": None,
    },
    AlertStatus.SAVED: {
        "description": "Agent kept the policy on the books",
        "allowed_transitions": [],  # Terminal state
        "drip": None,
    },
    AlertStatus.LOST: {
        "description": "Policy could not be saved",
        "allowed_transitions": [],  # Terminal state
        "drip": None,
    },
}


def _validate_config() -> None:
    missing = [status.value for status in AlertStatus if status not in STATE_CONFIG]
    if missing:
        raise AlertStateError(f"STATE_CONFIG has no entry for: {', '.join(missing)}")

    for status, config in STATE_CONFIG.items():
        drip = config["drip"]
        if drip is not None and drip.next_status not in config["allowed_transitions"]:
            raise AlertStateError(
                f"Drip from {status.value} leads to {drip.next_status.value}, "
                f"which is not an allowed transition"
            )


_validate_config()

DRIP_STATUSES: Tuple[AlertStatus, ...] = tuple(
    status for status in AlertStatus if STATE_CONFIG[status]["drip"] is not None
)

RESOLVED_STATUSES = frozenset({AlertStatus.SAVED, AlertStatus.LOST})

MANUAL_OUTREACH_STATUSES = frozenset({AlertStatus.NEW, AlertStatus.OUTREACH_SCHEDULED})


def drip_step_for(status: AlertStatus) -> Optional[DripStep]:
    """Return the follow-up scheduled after `status`, or None."""
    return STATE_CONFIG[AlertStatus(status)]["drip"]


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    return AlertStatus(target) in STATE_CONFIG[AlertStatus(current)]["allowed_transitions"]


def require_transition(current: AlertStatus, target: AlertStatus) -> None:
    """Raise AlertStateError unless current → target is allowed."""
    if not can_transition(current, target):
        raise AlertStateError(
            f"Cannot move alert from {AlertStatus(current).value} to {AlertStatus(target).value}"
        )
