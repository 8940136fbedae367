"""
Overhaul alerts and aircraft summaries for dashboards

Read-only: statuses are resolved from the stored states without saving them.
"""

import logging
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from models.monitoring import (
    AircraftMonitoringSummary,
    MonitoredState,
    MonitoringStatus,
    OverhaulAlert,
    StatusResolution,
)
from services.errors import MonitoringError, NotFoundError
from services.monitoring_repository import MonitoredStateRepository
from services.status_resolver import resolve_status

logger = logging.getLogger(__name__)

STATUS_SEVERITY = {
    MonitoringStatus.VENCIDO: 0,
    MonitoringStatus.OVERHAUL_REQUERIDO: 1,
    MonitoringStatus.PROXIMO: 2,
    MonitoringStatus.OK: 3,
}


def alert_message(state: MonitoredState, resolution: StatusResolution) -> str:
    policy = state.overhaul
    hours = resolution.hours_to_next_overhaul
    prefix = f"{resolution.semaforo.description} - " if resolution.semaforo else ""

    if resolution.status == MonitoringStatus.VENCIDO:
        if policy.current_cycle >= policy.max_cycles:
            return f"Component expired - maximum overhauls ({policy.max_cycles}) reached"
        return f"Component expired - {resolution.current_value}/{state.limit_value}"
    if resolution.status == MonitoringStatus.OVERHAUL_REQUERIDO:
        return f"{prefix}Overhaul required at {resolution.current_value} (interval {policy.interval})"
    if resolution.status == MonitoringStatus.PROXIMO:
        return f"{prefix}Next overhaul in {hours} (alert at {resolution.alert_threshold})"
    return f"{prefix}OK - next overhaul in {hours}"


def build_overhaul_alert(
    state: MonitoredState,
    resolution: StatusResolution,
    component: Optional[dict] = None,
) -> OverhaulAlert:
    component = component or {}
    return OverhaulAlert(
        state_id=state.id,
        component_id=state.component_id,
        serial_number=component.get("serial_number"),
        name=component.get("name"),
        current_value=resolution.current_value,
        next_overhaul_at=resolution.next_overhaul_at,
        hours_to_next_overhaul=resolution.hours_to_next_overhaul,
        alert_threshold=resolution.alert_threshold,
        status=resolution.status,
        overhaul_required=bool(resolution.overhaul_required),
        current_cycle=state.overhaul.current_cycle,
        max_cycles=state.overhaul.max_cycles,
        band=resolution.semaforo.band if resolution.semaforo else None,
        message=alert_message(state, resolution),
    )


def sort_alerts(alerts: List[OverhaulAlert]) -> List[OverhaulAlert]:
    """Most severe first, then closest to the boundary"""
    return sorted(
        alerts,
        key=lambda a: (
            STATUS_SEVERITY[a.status],
            a.band.level if a.band else 5,
            a.hours_to_next_overhaul,
        )
    )


async def _installed_components(db: AsyncIOMotorDatabase, aircraft_id: Optional[str]) -> Dict[str, dict]:
    query = {"aircraft_id": aircraft_id} if aircraft_id else {"aircraft_id": {"$ne": None}}
    cursor = db.components.find(query)
    return {c["_id"]: c for c in await cursor.to_list(length=1000)}


async def overhaul_alerts(
    db: AsyncIOMotorDatabase,
    repo: MonitoredStateRepository,
    aircraft_id: Optional[str] = None,
) -> List[OverhaulAlert]:
    """Active overhaul alerts for one aircraft, or the whole fleet when aircraft_id is None"""
    components = await _installed_components(db, aircraft_id)
    if not components:
        return []

    states = await repo.list_for_components(list(components.keys()), overhaul_only=True)

    alerts = []
    for state in states:
        try:
            resolution = resolve_status(state, repo.config)
        except MonitoringError as e:
            logger.error(f"Error computing overhaul alert for component {state.component_id}: {e}")
            continue
        if resolution.alert_active:
            alerts.append(build_overhaul_alert(state, resolution, components.get(state.component_id)))

    return sort_alerts(alerts)


async def aircraft_summary(
    db: AsyncIOMotorDatabase,
    repo: MonitoredStateRepository,
    aircraft_id: str,
) -> AircraftMonitoringSummary:
    """Status counts for every monitored state of an aircraft's components"""
    aircraft = await db.aircrafts.find_one({"_id": aircraft_id})
    if not aircraft:
        raise NotFoundError(f"Aircraft {aircraft_id} not found")

    components = await _installed_components(db, aircraft_id)
    states = await repo.list_for_components(list(components.keys())) if components else []

    counts = {status: 0 for status in MonitoringStatus}
    per_component = {component_id: [] for component_id in components}
    for state in states:
        counts[state.status] += 1
        per_component[state.component_id].append({
            "state_id": state.id,
            "control_id": state.control_id,
            "status": state.status.value,
            "alert_active": state.alert_active,
            "current_value": state.current_value.value,
            "limit_value": state.limit_value,
        })

    return AircraftMonitoringSummary(
        aircraft_id=aircraft_id,
        registration=aircraft.get("registration"),
        total_states=len(states),
        ok=counts[MonitoringStatus.OK],
        proximo=counts[MonitoringStatus.PROXIMO],
        vencido=counts[MonitoringStatus.VENCIDO],
        overhaul_requerido=counts[MonitoringStatus.OVERHAUL_REQUERIDO],
        components=[
            {
                "component_id": component_id,
                "serial_number": components[component_id].get("serial_number"),
                "name": components[component_id].get("name"),
                "states": component_states,
            }
            for component_id, component_states in per_component.items()
        ],
    )
