"""
Component and Monitoring Control Models

Collections: components, monitoring_controls
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from models.monitoring import UsageRecord, utcnow


class ComponentStatus(str, Enum):
    """Where a component physically is"""
    INSTALLED = "INSTALLED"
    IN_STOCK = "IN_STOCK"
    IN_MAINTENANCE = "IN_MAINTENANCE"
    IN_REPAIR = "IN_REPAIR"
    IN_OVERHAUL = "IN_OVERHAUL"
    PENDING_INSPECTION = "PENDING_INSPECTION"
    RETIRED = "RETIRED"


class ComponentBase(BaseModel):
    serial_number: str
    part_number: str
    name: str
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    aircraft_id: Optional[str] = Field(None, description="Aircraft the component is installed on")
    position: Optional[str] = None  # Ej: "Engine #1", "Main Rotor Hub"
    status: ComponentStatus = ComponentStatus.IN_STOCK
    usage: List[UsageRecord] = Field(default_factory=list)
    notes: Optional[str] = None


class ComponentCreate(ComponentBase):
    pass


class Component(ComponentBase):
    id: str = Field(alias="_id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True


class MonitoringControlCreate(BaseModel):
    """Catalog entry a monitored state is measured against"""
    description: str
    start_hours: float = Field(default=0.0, ge=0)
    end_hours: float = Field(..., ge=0)
    active: bool = True


class MonitoringControl(MonitoringControlCreate):
    id: str = Field(alias="_id")
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True


COMPONENT_INDEXES = [
    {
        "keys": [("serial_number", 1)],
        "unique": True,
        "name": "serial_number_unique"
    },
    {
        "keys": [("aircraft_id", 1), ("status", 1)],
        "name": "aircraft_status_idx"
    },
]
