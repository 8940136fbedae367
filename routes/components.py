"""
Component Routes
Components carrying usage records, and the monitoring controls catalog
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List, Optional
import logging
import uuid

from database.mongodb import get_database
from models.component import (
    Component,
    ComponentCreate,
    MonitoringControl,
    MonitoringControlCreate,
)
from models.monitoring import utcnow
from services.monitoring_deps import get_state_repository
from services.monitoring_repository import MonitoredStateRepository

router = APIRouter(prefix="/api/components", tags=["components"])
logger = logging.getLogger(__name__)


# ============================================================
# MONITORING CONTROLS CATALOG
# ============================================================

@router.post("/controls", response_model=MonitoringControl, status_code=status.HTTP_201_CREATED)
async def create_control(
    control: MonitoringControlCreate,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    if control.end_hours < control.start_hours:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_hours must not be lower than start_hours"
        )

    control_dict = {
        "_id": str(uuid.uuid4()),
        **control.model_dump(),
        "created_at": utcnow()
    }
    await db.monitoring_controls.insert_one(control_dict)
    logger.info(f"Monitoring control created: {control.description}")
    return MonitoringControl(**control_dict)


@router.get("/controls", response_model=List[MonitoringControl])
async def list_controls(
    active_only: bool = False,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = {"active": True} if active_only else {}
    cursor = db.monitoring_controls.find(query).sort("description", 1)
    return [MonitoringControl(**c) for c in await cursor.to_list(length=500)]


# ============================================================
# COMPONENTS
# ============================================================

@router.post("", response_model=Component, status_code=status.HTTP_201_CREATED)
async def create_component(
    component: ComponentCreate,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    serial_number = component.serial_number.upper().strip()

    existing = await db.components.find_one({"serial_number": serial_number})
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Component with serial number {serial_number} already exists"
        )

    if component.aircraft_id:
        aircraft = await db.aircrafts.find_one({"_id": component.aircraft_id})
        if not aircraft:
            raise HTTPException(status_code=404, detail="Aircraft not found")

    now = utcnow()
    component_dict = {
        "_id": str(uuid.uuid4()),
        **component.model_dump(mode="json"),
        "serial_number": serial_number,
        "created_at": now,
        "updated_at": now
    }
    await db.components.insert_one(component_dict)
    logger.info(f"Component {serial_number} created")
    return Component(**component_dict)


@router.get("", response_model=List[Component])
async def list_components(
    aircraft_id: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = {"aircraft_id": aircraft_id} if aircraft_id else {}
    cursor = db.components.find(query).sort("created_at", 1)
    return [Component(**c) for c in await cursor.to_list(length=1000)]


@router.get("/{component_id}", response_model=Component)
async def get_component(
    component_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    component = await db.components.find_one({"_id": component_id})
    if not component:
        raise HTTPException(status_code=404, detail="Component not found")
    return Component(**component)


@router.delete("/{component_id}")
async def delete_component(
    component_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """Delete a component together with its monitored states"""
    component = await db.components.find_one({"_id": component_id})
    if not component:
        raise HTTPException(status_code=404, detail="Component not found")

    # States only reference the component by id, remove them first
    states_deleted = await repo.delete_for_component(component_id)
    await db.components.delete_one({"_id": component_id})

    logger.info(f"Component {component.get('serial_number')} deleted with {states_deleted} monitored states")
    return {
        "message": "Component deleted",
        "id": component_id,
        "states_deleted": states_deleted
    }
