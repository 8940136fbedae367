"""
Aircraft Hours Propagation

When an aircraft's flight hours move forward, every component installed on it
accumulates the same increment on its HOURS usage record, and every monitored
state of those components is re-saved so its status follows the new usage.

Hours never go backwards through this path; corrections are made on the
component or state directly.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from models.aircraft import ComponentPropagation, PropagationResult
from models.component import ComponentStatus
from models.monitoring import UsageUnit, ValueSource, utcnow
from services.errors import MonitoringError, NotFoundError
from services.monitoring_repository import MonitoredStateRepository

logger = logging.getLogger(__name__)


async def propagate_aircraft_hours(
    db: AsyncIOMotorDatabase,
    repo: MonitoredStateRepository,
    aircraft_id: str,
    new_hours: float,
) -> PropagationResult:
    aircraft = await db.aircrafts.find_one({"_id": aircraft_id})
    if not aircraft:
        raise NotFoundError(f"Aircraft {aircraft_id} not found")

    previous_hours = aircraft.get("flight_hours", 0.0) or 0.0
    increment = new_hours - previous_hours

    result = PropagationResult(
        aircraft_id=aircraft_id,
        previous_hours=previous_hours,
        new_hours=new_hours,
        increment=increment,
    )

    if increment < 0:
        result.errors.append(
            f"New flight hours ({new_hours}) cannot be lower than current hours ({previous_hours})"
        )
        return result

    if increment == 0:
        logger.info(f"No hour increment for aircraft {aircraft.get('registration')}")
        result.success = True
        return result

    cursor = db.components.find({
        "aircraft_id": aircraft_id,
        "status": ComponentStatus.INSTALLED.value
    })
    installed = await cursor.to_list(length=1000)
    logger.info(f"Propagating +{increment}h to {len(installed)} components of {aircraft.get('registration')}")

    for component in installed:
        info = ComponentPropagation(
            component_id=component["_id"],
            serial_number=component.get("serial_number", ""),
            name=component.get("name", ""),
        )

        usage = component.get("usage", [])
        if not any(record.get("unit") == UsageUnit.HOURS.value for record in usage):
            info.error = "Component has no HOURS usage record"
            result.components.append(info)
            continue

        try:
            for record in usage:
                if record.get("unit") == UsageUnit.HOURS.value:
                    record["accumulated"] = (record.get("accumulated", 0) or 0) + increment

            await db.components.update_one(
                {"_id": component["_id"]},
                {"$set": {"usage": usage, "updated_at": utcnow()}}
            )
            info.updated = True
            result.components_updated += 1
        except PyMongoError as e:
            info.error = str(e)
            result.errors.append(f"Error updating component {info.serial_number}: {e}")
            logger.error(f"Error updating component {info.serial_number}: {e}")
            result.components.append(info)
            continue

        for state in await repo.list_for_component(component["_id"]):
            try:
                if state.based_on_parent_usage:
                    # New usage supersedes an earlier manual correction
                    state.current_value.source = ValueSource.COMPUTED
                await repo.save(state)
                info.states_recomputed += 1
            except MonitoringError as e:
                # Keep going with the other states of the component
                logger.error(f"Error recomputing state {state.id}: {e}")
                info.error = f"State {state.id}: {e}"

        result.states_recomputed += info.states_recomputed
        result.components.append(info)

    result.success = not result.errors or result.components_updated > 0
    if result.success:
        await db.aircrafts.update_one(
            {"_id": aircraft_id},
            {"$set": {"flight_hours": new_hours, "updated_at": utcnow()}}
        )

    logger.info(
        f"Propagation done for {aircraft.get('registration')}: "
        f"{result.components_updated} components, {result.states_recomputed} states, "
        f"{len(result.errors)} errors"
    )
    return result
