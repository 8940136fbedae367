"""
Monitored State Model

One document per (component, monitoring control) pair. Tracks the component's
accumulated usage for that control against its limit, the optional recurring
overhaul policy and the semaforo thresholds used to classify urgency.

Collection: monitored_states
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageUnit(str, Enum):
    """Units a life limit can be expressed in"""
    HOURS = "HOURS"
    CYCLES = "CYCLES"
    CALENDAR_MONTHS = "CALENDAR_MONTHS"
    CALENDAR_YEARS = "CALENDAR_YEARS"


class MonitoringStatus(str, Enum):
    """Resolved state of a monitored quantity"""
    OK = "OK"
    PROXIMO = "PROXIMO"  # Within the alert margin of the next boundary
    VENCIDO = "VENCIDO"  # Past the life limit
    OVERHAUL_REQUERIDO = "OVERHAUL_REQUERIDO"


class SemaforoBand(str, Enum):
    """Five colour urgency bands, from least to most severe"""
    VERDE = "VERDE"
    AMARILLO = "AMARILLO"
    NARANJA = "NARANJA"
    ROJO = "ROJO"
    MORADO = "MORADO"  # Overrun past the boundary

    @property
    def level(self) -> int:
        """4 = VERDE ... 0 = MORADO. Lower is more severe."""
        return BAND_LEVELS[self]


BAND_LEVELS = {
    SemaforoBand.VERDE: 4,
    SemaforoBand.AMARILLO: 3,
    SemaforoBand.NARANJA: 2,
    SemaforoBand.ROJO: 1,
    SemaforoBand.MORADO: 0,
}

BAND_COLORS = {
    SemaforoBand.MORADO: "#9333EA",
    SemaforoBand.ROJO: "#DC2626",
    SemaforoBand.NARANJA: "#EA580C",
    SemaforoBand.AMARILLO: "#F59E0B",
    SemaforoBand.VERDE: "#10B981",
}


class SemaforoUnit(str, Enum):
    HOURS = "HOURS"
    PERCENTAGE = "PERCENTAGE"  # Share of the overhaul interval consumed


class ValueSource(str, Enum):
    """Who produced a derived field's current value"""
    COMPUTED = "COMPUTED"
    MANUAL = "MANUAL"


class DerivedValue(BaseModel):
    """A derived number plus the origin of its current value"""
    value: float = 0.0
    source: ValueSource = ValueSource.COMPUTED

    @classmethod
    def manual(cls, value: float) -> "DerivedValue":
        return cls(value=value, source=ValueSource.MANUAL)

    @classmethod
    def computed(cls, value: float) -> "DerivedValue":
        return cls(value=value, source=ValueSource.COMPUTED)


class UsageRecord(BaseModel):
    """Accumulated usage of a component in one unit"""
    unit: UsageUnit
    limit: float = Field(..., ge=0)
    accumulated: float = Field(default=0.0, ge=0)


class SemaforoThresholds(BaseModel):
    """
    Threshold set for the five semaforo bands.

    Each field gates the band of the same name:
    - HOURS: rojo/naranja/amarillo are the hours remaining at or below which
      that band starts; morado is how far past the boundary (in hours) the
      overrun band starts; verde is the hours remaining at which monitoring
      of the interval starts and never changes the band.
    - PERCENTAGE: rojo/naranja/amarillo are the share of the interval consumed
      at or above which that band starts; morado is the overrun past 100%.
    """
    morado: float = Field(..., ge=0)
    rojo: float = Field(..., ge=0)
    naranja: float = Field(..., ge=0)
    amarillo: float = Field(..., ge=0)
    verde: float = Field(default=0.0, ge=0)

    class Config:
        frozen = True


class SemaforoConfig(BaseModel):
    """Custom semaforo attached to an overhaul policy or a plain state"""
    enabled: bool = True
    unit: SemaforoUnit = SemaforoUnit.HOURS
    thresholds: SemaforoThresholds
    descriptions: Dict[SemaforoBand, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_thresholds(self) -> "SemaforoConfig":
        t = self.thresholds
        if self.unit == SemaforoUnit.HOURS:
            # Fewer hours remaining means more severe
            if not (t.rojo <= t.naranja <= t.amarillo):
                raise ValueError("Hour thresholds must satisfy rojo <= naranja <= amarillo")
        else:
            # More of the interval consumed means more severe
            if not (t.amarillo <= t.naranja <= t.rojo):
                raise ValueError("Percentage thresholds must satisfy amarillo <= naranja <= rojo")
            if any(v > 100 for v in (t.rojo, t.naranja, t.amarillo, t.verde)):
                raise ValueError("Percentage thresholds must be between 0 and 100")
        return self


class OverhaulPolicy(BaseModel):
    """Recurring overhaul configuration of a monitored state"""
    enabled: bool = False
    interval: float = Field(default=0.0, description="Usage between overhauls")
    max_cycles: int = Field(default=1, ge=1, description="Overhauls allowed over the component life")
    current_cycle: int = Field(default=0, ge=0, description="Overhauls completed, operator asserted")
    hours_at_last_overhaul: float = Field(default=0.0, ge=0)
    next_overhaul_at: DerivedValue = Field(default_factory=DerivedValue)
    overhaul_required: bool = False
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    semaforo: Optional[SemaforoConfig] = None


class MonitoredStateBase(BaseModel):
    component_id: str = Field(..., description="Component reference (id only)")
    control_id: str = Field(..., description="Monitoring control catalog entry")
    limit_value: float = Field(..., ge=0)
    unit: UsageUnit = UsageUnit.HOURS
    based_on_parent_usage: bool = True
    install_offset: float = Field(
        default=0.0,
        description="Added to the component's accumulated usage to get current_value"
    )
    overhaul: Optional[OverhaulPolicy] = None
    semaforo: Optional[SemaforoConfig] = None
    notes: Optional[str] = None


class MonitoredState(MonitoredStateBase):
    """Full monitored state document"""
    id: str = Field(alias="_id")
    current_value: DerivedValue = Field(default_factory=DerivedValue)
    status: MonitoringStatus = MonitoringStatus.OK
    alert_active: bool = False
    last_updated: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="python")


class MonitoredStateCreate(BaseModel):
    """Link a component to a monitoring control"""
    control_id: str
    limit_value: float = Field(..., ge=0)
    unit: UsageUnit = UsageUnit.HOURS
    current_value: Optional[float] = Field(None, ge=0, description="Initial value, defaults to 0")
    based_on_parent_usage: bool = True
    overhaul: Optional[OverhaulPolicy] = None
    semaforo: Optional[SemaforoConfig] = None
    auto_semaforo: bool = Field(False, description="Derive overhaul thresholds from the interval when none are given")
    notes: Optional[str] = None


class MonitoredStateUpdate(BaseModel):
    """Partial update - only fields that are set are applied"""
    current_value: Optional[float] = Field(None, ge=0)
    limit_value: Optional[float] = Field(None, ge=0)
    unit: Optional[UsageUnit] = None
    based_on_parent_usage: Optional[bool] = None
    next_overhaul_at: Optional[float] = Field(None, ge=0, description="Manual override of the next boundary")
    overhaul: Optional[OverhaulPolicy] = None
    semaforo: Optional[SemaforoConfig] = None
    notes: Optional[str] = None


class CompleteOverhaulRequest(BaseModel):
    notes: Optional[str] = None


class SemaforoClassifyRequest(BaseModel):
    """Ad hoc classification, with a named preset or an explicit config"""
    hours_remaining: float
    interval: Optional[float] = Field(None, gt=0)
    preset: Optional[str] = None
    config: Optional[SemaforoConfig] = None
    legacy_thresholds: Optional[SemaforoThresholds] = Field(
        None, description="Hour thresholds stored with the legacy rojo/amarillo naming"
    )


class SemaforoResult(BaseModel):
    """Full semaforo evaluation for display"""
    band: SemaforoBand
    description: str
    hours_remaining: float
    threshold: float
    progress_percent: float = Field(..., ge=0, le=100)
    requires_attention: bool
    level: int
    color: str


class StatusResolution(BaseModel):
    """Freshly computed projection of a monitored state"""
    status: MonitoringStatus
    alert_active: bool
    current_value: float
    remaining: float
    alert_threshold: float
    next_overhaul_at: Optional[float] = None
    overhaul_required: Optional[bool] = None
    tso: Optional[float] = None
    hours_to_next_overhaul: Optional[float] = None
    legacy_hours_to_next_overhaul: Optional[float] = Field(
        None, description="interval - (TSO mod interval), differs after a late overhaul"
    )
    semaforo: Optional[SemaforoResult] = None
    violations: List[str] = Field(default_factory=list)


class OverhaulAlert(BaseModel):
    """Overhaul alert row for aircraft and fleet dashboards"""
    state_id: str
    component_id: str
    serial_number: Optional[str] = None
    name: Optional[str] = None
    current_value: float
    next_overhaul_at: float
    hours_to_next_overhaul: float
    alert_threshold: float
    status: MonitoringStatus
    overhaul_required: bool
    current_cycle: int
    max_cycles: int
    band: Optional[SemaforoBand] = None
    message: str


class AircraftMonitoringSummary(BaseModel):
    aircraft_id: str
    registration: Optional[str] = None
    total_states: int
    ok: int
    proximo: int
    vencido: int
    overhaul_requerido: int
    components: List[dict] = Field(default_factory=list)


# ============================================================
# INDEX DEFINITION
# ============================================================

MONITORED_STATE_INDEXES = [
    {
        "keys": [("component_id", 1), ("control_id", 1)],
        "unique": True,
        "name": "component_control_unique"
    },
    {
        "keys": [("component_id", 1)],
        "name": "component_id_idx"
    },
    {
        "keys": [("status", 1)],
        "name": "status_idx"
    },
    {
        "keys": [("alert_active", 1)],
        "name": "alert_active_idx"
    },
    {
        "keys": [("overhaul.enabled", 1)],
        "name": "overhaul_enabled_idx"
    },
]
