"""
Monitoring Routes
Monitored states of components, overhaul completion, alerts and the semaforo classifier
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List
import logging

from database.mongodb import get_database
from models.monitoring import (
    AircraftMonitoringSummary,
    CompleteOverhaulRequest,
    MonitoredState,
    MonitoredStateCreate,
    MonitoredStateUpdate,
    OverhaulAlert,
    SemaforoClassifyRequest,
    SemaforoConfig,
    SemaforoResult,
    StatusResolution,
)
from services.errors import MonitoringError
from services.monitoring_deps import get_state_repository, http_error
from services.monitoring_repository import MonitoredStateRepository
from services.overhaul_alerts import aircraft_summary, overhaul_alerts
from services.semaforo import PRESETS, evaluate, from_legacy_thresholds, get_preset

router = APIRouter(prefix="/api/monitoring", tags=["monitoring"])
logger = logging.getLogger(__name__)


# ============================================================
# MONITORED STATES
# ============================================================

@router.get("/components/{component_id}/states", response_model=List[MonitoredState])
async def list_component_states(
    component_id: str,
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """All monitored states of a component, oldest first"""
    return await repo.list_for_component(component_id)


@router.post(
    "/components/{component_id}/states",
    response_model=MonitoredState,
    status_code=status.HTTP_201_CREATED
)
async def create_component_state(
    component_id: str,
    data: MonitoredStateCreate,
    db: AsyncIOMotorDatabase = Depends(get_database),
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """Link a component to a monitoring control"""
    component = await db.components.find_one({"_id": component_id})
    if not component:
        raise HTTPException(status_code=404, detail="Component not found")

    control = await db.monitoring_controls.find_one({"_id": data.control_id})
    if not control:
        raise HTTPException(status_code=404, detail="Monitoring control not found")

    try:
        return await repo.create(component_id, data)
    except MonitoringError as e:
        raise http_error(e)


@router.put("/states/{state_id}", response_model=MonitoredState)
async def update_state(
    state_id: str,
    data: MonitoredStateUpdate,
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """Partial update, status is recomputed before saving"""
    try:
        return await repo.update(state_id, data)
    except MonitoringError as e:
        raise http_error(e)


@router.delete("/states/{state_id}")
async def delete_state(
    state_id: str,
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    try:
        await repo.delete(state_id)
    except MonitoringError as e:
        raise http_error(e)

    logger.info(f"Monitored state {state_id} deleted")
    return {"message": "Monitored state deleted", "id": state_id}


@router.get("/states/{state_id}/resolution", response_model=StatusResolution)
async def get_state_resolution(
    state_id: str,
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """Fresh projection of a state. Nothing is saved."""
    try:
        _, resolution = await repo.project(state_id)
    except MonitoringError as e:
        raise http_error(e)
    return resolution


@router.post("/states/{state_id}/complete-overhaul", response_model=MonitoredState)
async def complete_state_overhaul(
    state_id: str,
    data: CompleteOverhaulRequest,
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """Record an overhaul performed at the state's current usage"""
    try:
        return await repo.complete_overhaul(state_id, data.notes)
    except MonitoringError as e:
        raise http_error(e)


# ============================================================
# AIRCRAFT AND FLEET VIEWS
# ============================================================

@router.get("/aircraft/{aircraft_id}/summary", response_model=AircraftMonitoringSummary)
async def get_aircraft_summary(
    aircraft_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    try:
        return await aircraft_summary(db, repo, aircraft_id)
    except MonitoringError as e:
        raise http_error(e)


@router.get("/aircraft/{aircraft_id}/overhaul-alerts", response_model=List[OverhaulAlert])
async def get_aircraft_overhaul_alerts(
    aircraft_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """Active overhaul alerts of one aircraft, most severe first"""
    aircraft = await db.aircrafts.find_one({"_id": aircraft_id})
    if not aircraft:
        raise HTTPException(status_code=404, detail="Aircraft not found")
    return await overhaul_alerts(db, repo, aircraft_id)


@router.get("/overhaul-alerts", response_model=List[OverhaulAlert])
async def get_fleet_overhaul_alerts(
    db: AsyncIOMotorDatabase = Depends(get_database),
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """Active overhaul alerts across every installed component"""
    return await overhaul_alerts(db, repo)


# ============================================================
# SEMAFORO
# ============================================================

@router.post("/semaforo/classify", response_model=SemaforoResult)
async def classify_hours(data: SemaforoClassifyRequest):
    if data.legacy_thresholds:
        t = data.legacy_thresholds
        try:
            config = SemaforoConfig(
                thresholds=from_legacy_thresholds(t.morado, t.rojo, t.naranja, t.amarillo, t.verde)
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
    else:
        config = data.config or get_preset(data.preset or "ESTANDAR")

    try:
        return evaluate(data.hours_remaining, config, data.interval)
    except MonitoringError as e:
        raise http_error(e)


@router.get("/semaforo/presets")
async def list_semaforo_presets():
    return {
        name: preset.model_dump(mode="json")
        for name, preset in PRESETS.items()
    }
