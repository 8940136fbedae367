"""
Overhaul Cycle Tracker

Given a state's current usage and its recurring overhaul policy, works out
time since overhaul (TSO), the next absolute overhaul boundary and whether
the boundary has been reached.

The cycle counter is operator asserted: only completing an overhaul moves it.
The next boundary is cycle indexed, (current_cycle + 1) * interval, and is the
canonical answer. The older TSO based answer, interval - (TSO mod interval),
is kept alongside it for reporting; the two only agree while
hours_at_last_overhaul == current_cycle * interval. An overhaul completed past
its boundary records the actual hours, so hours_at_last_overhaul may sit
anywhere inside the current cycle window
[current_cycle * interval, (current_cycle + 1) * interval).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from models.monitoring import (
    DerivedValue,
    MonitoredState,
    MonitoringStatus,
    OverhaulPolicy,
    ValueSource,
)
from services.errors import ConfigurationError, InvariantViolation, OverhaulRejected

logger = logging.getLogger(__name__)

# Float noise tolerated when comparing usage values
USAGE_TOLERANCE = 1e-6


@dataclass(frozen=True)
class OverhaulProjection:
    tso: float
    next_overhaul_at: float
    hours_to_next: float
    legacy_hours_to_next: float
    overhaul_due: bool
    capacity_exhausted: bool


def computed_next_overhaul(policy: OverhaulPolicy) -> float:
    return (policy.current_cycle + 1) * policy.interval


def project_overhaul(current_value: float, policy: OverhaulPolicy) -> OverhaulProjection:
    """Derive TSO and the next boundary. A MANUAL next boundary is honoured."""
    if policy.interval is None or policy.interval <= 0:
        raise ConfigurationError(
            f"Overhaul policy enabled without a usable interval ({policy.interval})"
        )

    tso = current_value - policy.hours_at_last_overhaul

    if policy.next_overhaul_at.source == ValueSource.MANUAL:
        next_overhaul_at = policy.next_overhaul_at.value
    else:
        next_overhaul_at = computed_next_overhaul(policy)

    return OverhaulProjection(
        tso=tso,
        next_overhaul_at=next_overhaul_at,
        hours_to_next=next_overhaul_at - current_value,
        legacy_hours_to_next=policy.interval - (tso % policy.interval),
        overhaul_due=current_value >= next_overhaul_at,
        capacity_exhausted=policy.current_cycle >= policy.max_cycles,
    )


def check_invariants(policy: OverhaulPolicy) -> List[InvariantViolation]:
    """Invariant breaches found in a persisted policy, empty when consistent"""
    violations = []

    if policy.current_cycle > policy.max_cycles:
        violations.append(InvariantViolation(
            "CYCLE_OVERRUN",
            f"current_cycle {policy.current_cycle} exceeds max_cycles {policy.max_cycles}"
        ))

    window_start = policy.current_cycle * policy.interval
    window_end = window_start + policy.interval
    last = policy.hours_at_last_overhaul
    if last < window_start - USAGE_TOLERANCE or last >= window_end - USAGE_TOLERANCE:
        violations.append(InvariantViolation(
            "TSO_DIVERGENCE",
            f"hours_at_last_overhaul {last} is outside cycle {policy.current_cycle} "
            f"window [{window_start}, {window_end}) for interval {policy.interval}; "
            f"TSO based and cycle based hours to next overhaul disagree"
        ))

    return violations


def resolve_overhaul_branch(
    current_value: float,
    limit_value: float,
    policy: OverhaulPolicy,
    projection: OverhaulProjection,
    alert_threshold: float,
) -> Tuple[MonitoringStatus, bool]:
    """
    Status and overhaul-required flag for an enabled policy.

    Branches are evaluated in order, first match wins.
    """
    at_limit = current_value >= limit_value
    can_overhaul = not projection.capacity_exhausted

    if at_limit and can_overhaul and projection.overhaul_due:
        return MonitoringStatus.OVERHAUL_REQUERIDO, True
    if at_limit and projection.capacity_exhausted:
        # No overhauls left: retired in this position
        return MonitoringStatus.VENCIDO, False
    if at_limit:
        return MonitoringStatus.VENCIDO, False
    if projection.overhaul_due and can_overhaul:
        return MonitoringStatus.OVERHAUL_REQUERIDO, True
    if current_value >= projection.next_overhaul_at - alert_threshold:
        return MonitoringStatus.PROXIMO, False
    return MonitoringStatus.OK, False


def complete_overhaul(
    state: MonitoredState,
    now: datetime,
    notes: Optional[str] = None,
) -> MonitoredState:
    """
    Record a completed overhaul at the state's current value.

    The caller refreshes current_value and overhaul_required first.
    """
    policy = state.overhaul
    if policy is None or not policy.enabled:
        raise OverhaulRejected("Overhauls are not enabled for this state")
    if policy.current_cycle >= policy.max_cycles:
        raise OverhaulRejected(
            f"Maximum overhauls ({policy.max_cycles}) already completed"
        )
    if not policy.overhaul_required:
        raise OverhaulRejected("This state does not require an overhaul")

    policy.current_cycle += 1
    policy.hours_at_last_overhaul = state.current_value.value
    policy.overhaul_required = False
    policy.completed_at = now
    policy.next_overhaul_at = DerivedValue.computed(computed_next_overhaul(policy))
    if notes:
        policy.notes = notes
        prefix = f"{state.notes} | " if state.notes else ""
        state.notes = f"{prefix}Overhaul completed: {notes}"

    logger.info(
        f"Overhaul completed for component {state.component_id} at "
        f"{policy.hours_at_last_overhaul}: cycle {policy.current_cycle} of {policy.max_cycles}"
    )
    return state
