from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from models.aircraft import Aircraft, AircraftCreate, FlightHoursUpdate, PropagationResult
from models.monitoring import utcnow
from services.errors import MonitoringError
from services.hours_propagation import propagate_aircraft_hours
from services.monitoring_deps import get_state_repository, http_error
from services.monitoring_repository import MonitoredStateRepository
from typing import List
import logging
import uuid

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/aircraft", tags=["aircraft"])

def format_registration(registration: str) -> str:
    """Format registration to uppercase"""
    return registration.upper().strip()

@router.post("", response_model=Aircraft, status_code=status.HTTP_201_CREATED)
async def create_aircraft(
    aircraft: AircraftCreate,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Register a new aircraft"""
    registration = format_registration(aircraft.registration)

    existing = await db.aircrafts.find_one({"registration": registration})
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Aircraft with registration {registration} already exists"
        )

    now = utcnow()
    aircraft_dict = {
        "_id": str(uuid.uuid4()),
        **aircraft.model_dump(mode="json"),
        "registration": registration,
        "created_at": now,
        "updated_at": now
    }

    await db.aircrafts.insert_one(aircraft_dict)
    logger.info(f"Aircraft {registration} created")

    return Aircraft(**aircraft_dict)

@router.get("", response_model=List[Aircraft])
async def list_aircraft(db: AsyncIOMotorDatabase = Depends(get_database)):
    cursor = db.aircrafts.find({}).sort("created_at", -1)
    aircraft_list = await cursor.to_list(length=100)
    return [Aircraft(**aircraft) for aircraft in aircraft_list]

@router.get("/{aircraft_id}", response_model=Aircraft)
async def get_aircraft(
    aircraft_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Get a specific aircraft by ID"""
    aircraft_doc = await db.aircrafts.find_one({"_id": aircraft_id})

    if not aircraft_doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aircraft not found"
        )

    return Aircraft(**aircraft_doc)

@router.put("/{aircraft_id}/hours", response_model=PropagationResult)
async def update_flight_hours(
    aircraft_id: str,
    update: FlightHoursUpdate,
    db: AsyncIOMotorDatabase = Depends(get_database),
    repo: MonitoredStateRepository = Depends(get_state_repository)
):
    """Set the aircraft's flight hours and push the increment to its installed components"""
    try:
        result = await propagate_aircraft_hours(db, repo, aircraft_id, update.flight_hours)
    except MonitoringError as e:
        raise http_error(e)

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="; ".join(result.errors)
        )
    return result
