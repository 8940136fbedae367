from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


class AircraftKind(str, Enum):
    HELICOPTER = "HELICOPTER"
    AIRPLANE = "AIRPLANE"


class AircraftBase(BaseModel):
    registration: str  # Always stored uppercase
    kind: AircraftKind = AircraftKind.HELICOPTER
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    location: Optional[str] = None

    # Accumulated flight hours, propagated to installed components
    flight_hours: float = Field(default=0.0, ge=0)

    notes: Optional[str] = None


class AircraftCreate(AircraftBase):
    pass


class Aircraft(AircraftBase):
    id: str = Field(alias="_id")
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True


class FlightHoursUpdate(BaseModel):
    flight_hours: float = Field(..., ge=0)
    notes: Optional[str] = None


class ComponentPropagation(BaseModel):
    component_id: str
    serial_number: str
    name: str
    updated: bool = False
    states_recomputed: int = 0
    error: Optional[str] = None


class PropagationResult(BaseModel):
    """Outcome of pushing new aircraft hours down to installed components"""
    success: bool = False
    aircraft_id: str
    previous_hours: float = 0.0
    new_hours: float
    increment: float = 0.0
    components_updated: int = 0
    states_recomputed: int = 0
    errors: List[str] = Field(default_factory=list)
    components: List[ComponentPropagation] = Field(default_factory=list)
