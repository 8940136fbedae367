"""
Life-Usage Accumulator

Produces the authoritative current value of a monitored state. States based on
parent usage follow the owning component's accumulated usage in the same unit,
shifted by the offset fixed when the state was linked:

    current_value = max(0, parent_accumulated + install_offset)

Any other state keeps whatever value was last written.
"""

import logging
from typing import Protocol

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from models.monitoring import DerivedValue, MonitoredState, UsageUnit, ValueSource
from services.errors import NotFoundError

logger = logging.getLogger(__name__)


class UsageSource(Protocol):
    async def get_accumulated_usage(self, component_id: str, unit: UsageUnit) -> float:
        """Accumulated usage of a component, NotFoundError when unknown"""
        ...


class MongoUsageSource:
    """Reads accumulated usage from the components collection"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def get_accumulated_usage(self, component_id: str, unit: UsageUnit) -> float:
        component = await self.db.components.find_one(
            {"_id": component_id},
            {"usage": 1}
        )
        if not component:
            raise NotFoundError(f"Component {component_id} not found")

        for record in component.get("usage", []):
            if record.get("unit") == unit.value:
                return float(record.get("accumulated", 0) or 0)

        raise NotFoundError(f"Component {component_id} has no {unit.value} usage record")


def parent_based_value(parent_usage: float, install_offset: float) -> float:
    return max(0.0, parent_usage + install_offset)


def install_offset_for(initial_value: float, parent_usage: float) -> float:
    """Offset that makes a newly linked state start at initial_value"""
    return initial_value - parent_usage


async def refresh_current_value(state: MonitoredState, source: UsageSource) -> bool:
    """
    Recompute current_value from the parent's usage.

    Returns True when the stored value was overwritten. A missing parent or
    usage record, or a failed lookup, keeps the last known value.
    """
    if not state.based_on_parent_usage:
        return False
    if state.current_value.source == ValueSource.MANUAL:
        # A value written explicitly in this change wins over recomputation
        return False

    try:
        parent_usage = await source.get_accumulated_usage(state.component_id, state.unit)
    except NotFoundError as e:
        logger.warning(f"Keeping last value {state.current_value.value} for state {state.id}: {e}")
        return False
    except PyMongoError as e:
        logger.warning(f"Usage lookup failed for state {state.id}, keeping last value: {e}")
        return False

    state.current_value = DerivedValue.computed(
        parent_based_value(parent_usage, state.install_offset)
    )
    return True
