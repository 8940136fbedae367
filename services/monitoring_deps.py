"""
Monitoring dependencies
Shared FastAPI dependencies for the monitoring routes, kept apart to avoid circular imports
"""

from fastapi import Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from config import get_settings
from database.mongodb import get_database
from services.errors import (
    ConfigurationError,
    DuplicateStateError,
    InvariantViolation,
    MonitoringError,
    NotFoundError,
    OverhaulRejected,
)
from services.monitoring_repository import MonitoredStateRepository
from services.status_resolver import ResolverConfig, resolver_config_from_settings

ERROR_STATUS = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConfigurationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvariantViolation, status.HTTP_409_CONFLICT),
    (DuplicateStateError, status.HTTP_400_BAD_REQUEST),
    (OverhaulRejected, status.HTTP_400_BAD_REQUEST),
]


def get_resolver_config() -> ResolverConfig:
    return resolver_config_from_settings(get_settings())


async def get_state_repository(
    db: AsyncIOMotorDatabase = Depends(get_database),
    config: ResolverConfig = Depends(get_resolver_config)
) -> MonitoredStateRepository:
    return MonitoredStateRepository(db, config)


def http_error(error: MonitoringError) -> HTTPException:
    """HTTP response for an engine error"""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(error)
    )
