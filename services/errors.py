"""
Error taxonomy for the monitoring engine

Routes translate these into HTTP responses; the engine itself never imports
FastAPI.
"""


class MonitoringError(Exception):
    """Base class for monitoring engine failures"""


class NotFoundError(MonitoringError):
    """Referenced aircraft, component, usage record or state does not exist"""


class ConfigurationError(MonitoringError):
    """Overhaul policy or semaforo configuration cannot be evaluated"""


class InvariantViolation(MonitoringError):
    """Persisted data breaks an invariant of the overhaul policy"""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class DuplicateStateError(MonitoringError):
    """A state already exists for the (component, control) pair"""


class OverhaulRejected(MonitoringError):
    """Completing an overhaul is not allowed in the state's current situation"""
