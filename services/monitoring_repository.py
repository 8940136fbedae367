"""
Monitored State Repository

Loads and persists monitored states in the monitored_states collection. Every
write goes through apply_status() first, so the stored status, alert flag and
overhaul boundary always match the stored usage.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from models.monitoring import (
    DerivedValue,
    MonitoredState,
    MonitoredStateCreate,
    MonitoredStateUpdate,
    OverhaulPolicy,
    StatusResolution,
    ValueSource,
    utcnow,
)
from services.errors import ConfigurationError, DuplicateStateError, NotFoundError
from services.overhaul_tracker import complete_overhaul
from services.semaforo import validate_for_overhaul
from services.status_resolver import ResolverConfig, apply_status, resolve_status
from services.usage_accumulator import (
    MongoUsageSource,
    UsageSource,
    install_offset_for,
    refresh_current_value,
)

logger = logging.getLogger(__name__)


class MonitoredStateRepository:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        config: ResolverConfig,
        source: Optional[UsageSource] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.collection = db.monitored_states
        self.config = config
        self.source = source or MongoUsageSource(db)
        self.clock = clock

    # ============================================================
    # READS
    # ============================================================

    async def get(self, state_id: str) -> MonitoredState:
        doc = await self.collection.find_one({"_id": state_id})
        if not doc:
            raise NotFoundError(f"Monitored state {state_id} not found")
        return MonitoredState(**doc)

    async def find_for_pair(self, component_id: str, control_id: str) -> Optional[MonitoredState]:
        doc = await self.collection.find_one({
            "component_id": component_id,
            "control_id": control_id
        })
        return MonitoredState(**doc) if doc else None

    async def list_for_component(self, component_id: str) -> List[MonitoredState]:
        return await self.list_for_components([component_id])

    async def list_for_components(
        self,
        component_ids: List[str],
        overhaul_only: bool = False
    ) -> List[MonitoredState]:
        query = {"component_id": {"$in": component_ids}}
        if overhaul_only:
            query["overhaul.enabled"] = True
        cursor = self.collection.find(query).sort("created_at", 1)
        docs = await cursor.to_list(length=1000)
        return [MonitoredState(**doc) for doc in docs]

    async def project(self, state_id: str) -> Tuple[MonitoredState, StatusResolution]:
        """Freshly computed resolution of a stored state, nothing is saved"""
        state = (await self.get(state_id)).model_copy(deep=True)
        await refresh_current_value(state, self.source)
        return state, resolve_status(state, self.config)

    # ============================================================
    # WRITES
    # ============================================================

    async def _parent_usage_or_zero(self, state: MonitoredState) -> float:
        try:
            return await self.source.get_accumulated_usage(state.component_id, state.unit)
        except NotFoundError as e:
            logger.warning(f"No parent usage for state {state.id}, offset taken from zero: {e}")
            return 0.0
        except PyMongoError as e:
            logger.warning(f"Usage lookup failed for state {state.id}, offset taken from zero: {e}")
            return 0.0

    async def create(self, component_id: str, data: MonitoredStateCreate) -> MonitoredState:
        existing = await self.find_for_pair(component_id, data.control_id)
        if existing:
            raise DuplicateStateError(
                f"A monitored state already exists for component {component_id} "
                f"and control {data.control_id}"
            )

        initial = data.current_value or 0.0
        overhaul = data.overhaul
        if overhaul and overhaul.enabled and (overhaul.semaforo or data.auto_semaforo):
            overhaul.semaforo = validate_for_overhaul(
                overhaul.semaforo, overhaul.interval, self.config.semaforo_profile
            )

        now = self.clock()
        state = MonitoredState(
            _id=str(uuid.uuid4()),
            component_id=component_id,
            control_id=data.control_id,
            limit_value=data.limit_value,
            unit=data.unit,
            based_on_parent_usage=data.based_on_parent_usage,
            overhaul=overhaul,
            semaforo=data.semaforo,
            notes=data.notes,
            current_value=DerivedValue(
                value=initial,
                source=ValueSource.COMPUTED if data.based_on_parent_usage else ValueSource.MANUAL
            ),
            created_at=now,
            updated_at=now,
        )

        if state.based_on_parent_usage:
            parent_usage = await self._parent_usage_or_zero(state)
            state.install_offset = install_offset_for(initial, parent_usage)

        await apply_status(state, self.source, self.config, self.clock)

        try:
            await self.collection.insert_one(state.to_document())
        except DuplicateKeyError:
            raise DuplicateStateError(
                f"A monitored state already exists for component {component_id} "
                f"and control {data.control_id}"
            )

        logger.info(
            f"Monitored state {state.id} created for component {component_id}: "
            f"{state.status.value} ({state.current_value.value}/{state.limit_value} {state.unit.value})"
        )
        return state

    async def save(self, state: MonitoredState) -> StatusResolution:
        """Run the pre-persist hook and replace the stored document"""
        resolution = await apply_status(state, self.source, self.config, self.clock)
        await self.collection.replace_one({"_id": state.id}, state.to_document())
        return resolution

    async def update(self, state_id: str, data: MonitoredStateUpdate) -> MonitoredState:
        state = await self.get(state_id)
        fields = data.model_dump(exclude_unset=True)

        if "limit_value" in fields and data.limit_value is not None:
            state.limit_value = data.limit_value
        # The offset is tied to the parent's record in the state's unit
        relink = False
        if "unit" in fields and data.unit is not None:
            relink = data.unit != state.unit
            state.unit = data.unit
        if "notes" in fields:
            state.notes = data.notes
        if "semaforo" in fields:
            state.semaforo = data.semaforo

        if "overhaul" in fields:
            if data.overhaul is None:
                state.overhaul = None
            else:
                merged = state.overhaul.model_dump() if state.overhaul else {}
                merged.update(fields["overhaul"])
                state.overhaul = OverhaulPolicy(**merged)

        if "next_overhaul_at" in fields and data.next_overhaul_at is not None:
            if state.overhaul is None or not state.overhaul.enabled:
                raise ConfigurationError("next_overhaul_at requires an enabled overhaul policy")
            state.overhaul.next_overhaul_at = DerivedValue.manual(data.next_overhaul_at)

        if "based_on_parent_usage" in fields and data.based_on_parent_usage is not None:
            linking = data.based_on_parent_usage and not state.based_on_parent_usage
            state.based_on_parent_usage = data.based_on_parent_usage
            state.current_value.source = (
                ValueSource.COMPUTED if data.based_on_parent_usage else ValueSource.MANUAL
            )
            relink = relink or linking

        if "current_value" in fields and data.current_value is not None:
            # Later recomputations continue from the corrected value
            state.current_value = DerivedValue.manual(data.current_value)
            relink = True

        if relink and state.based_on_parent_usage:
            parent_usage = await self._parent_usage_or_zero(state)
            state.install_offset = install_offset_for(state.current_value.value, parent_usage)

        await self.save(state)
        logger.info(f"Monitored state {state_id} updated: {state.status.value}")
        return state

    async def complete_overhaul(self, state_id: str, notes: Optional[str] = None) -> MonitoredState:
        """Refresh the state, record the overhaul at its current value and persist"""
        state = await self.get(state_id)
        await apply_status(state, self.source, self.config, self.clock)
        complete_overhaul(state, self.clock(), notes)
        await self.save(state)
        return state

    async def delete(self, state_id: str):
        result = await self.collection.delete_one({"_id": state_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Monitored state {state_id} not found")

    async def delete_for_component(self, component_id: str) -> int:
        result = await self.collection.delete_many({"component_id": component_id})
        return result.deleted_count
