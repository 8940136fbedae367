"""
Status Resolver

resolve_status() is the pure projection of a monitored state: status, alert
flag, next overhaul boundary and semaforo band. It is safe to call from
read-only reporting paths and yields the same output for the same input.

apply_status() is the pre-persist hook: refresh the accumulated value, resolve,
write the derived fields back onto the state and stamp last_updated. Any
exception aborts the save; nothing is retried.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from config import Settings
from models.monitoring import (
    DerivedValue,
    MonitoredState,
    MonitoringStatus,
    StatusResolution,
    ValueSource,
    utcnow,
)
from services.overhaul_tracker import check_invariants, project_overhaul, resolve_overhaul_branch
from services.semaforo import alert_threshold, evaluate
from services.usage_accumulator import UsageSource, refresh_current_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolverConfig:
    default_alert_threshold: float = 50.0
    strict_invariants: bool = False
    semaforo_profile: str = "ESTANDAR"


def resolver_config_from_settings(settings: Settings) -> ResolverConfig:
    return ResolverConfig(
        default_alert_threshold=settings.default_alert_threshold_hours,
        strict_invariants=settings.strict_invariants,
        semaforo_profile=settings.semaforo_default_profile,
    )


def resolve_status(state: MonitoredState, config: ResolverConfig) -> StatusResolution:
    """Fresh status projection for a state, without touching it"""
    current = state.current_value.value
    remaining = state.limit_value - current
    threshold = alert_threshold(state, config.default_alert_threshold)
    policy = state.overhaul

    if policy is None or not policy.enabled:
        if remaining <= 0:
            status = MonitoringStatus.VENCIDO
        elif remaining <= threshold:
            status = MonitoringStatus.PROXIMO
        else:
            status = MonitoringStatus.OK

        semaforo = None
        if state.semaforo and state.semaforo.enabled:
            semaforo = evaluate(remaining, state.semaforo, state.limit_value)

        return StatusResolution(
            status=status,
            alert_active=status != MonitoringStatus.OK,
            current_value=current,
            remaining=remaining,
            alert_threshold=threshold,
            semaforo=semaforo,
        )

    projection = project_overhaul(current, policy)

    violations = check_invariants(policy)
    for violation in violations:
        logger.error(f"State {state.id} (component {state.component_id}): {violation}")
        if config.strict_invariants:
            raise violation

    status, overhaul_required = resolve_overhaul_branch(
        current, state.limit_value, policy, projection, threshold
    )
    if any(v.code == "CYCLE_OVERRUN" for v in violations):
        status, overhaul_required = MonitoringStatus.VENCIDO, False

    semaforo = None
    if policy.semaforo and policy.semaforo.enabled:
        semaforo = evaluate(projection.hours_to_next, policy.semaforo, policy.interval)

    return StatusResolution(
        status=status,
        alert_active=status != MonitoringStatus.OK,
        current_value=current,
        remaining=remaining,
        alert_threshold=threshold,
        next_overhaul_at=projection.next_overhaul_at,
        overhaul_required=overhaul_required,
        tso=projection.tso,
        hours_to_next_overhaul=projection.hours_to_next,
        legacy_hours_to_next_overhaul=projection.legacy_hours_to_next,
        semaforo=semaforo,
        violations=[str(v) for v in violations],
    )


async def apply_status(
    state: MonitoredState,
    source: UsageSource,
    config: ResolverConfig,
    clock: Callable[[], datetime] = utcnow,
) -> StatusResolution:
    """Refresh and resolve a state in place before it is persisted"""
    await refresh_current_value(state, source)

    resolution = resolve_status(state, config)

    state.status = resolution.status
    state.alert_active = resolution.alert_active

    policy = state.overhaul
    if policy is not None and policy.enabled:
        policy.overhaul_required = bool(resolution.overhaul_required)
        if policy.next_overhaul_at.source == ValueSource.COMPUTED:
            policy.next_overhaul_at = DerivedValue.computed(resolution.next_overhaul_at)

    now = clock()
    state.last_updated = now
    state.updated_at = now
    return resolution
