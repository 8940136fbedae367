from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # MongoDB Configuration
    mongo_url: str
    db_name: str

    # Application Configuration
    environment: str = "development"

    # Monitoring engine
    default_alert_threshold_hours: float = 50.0  # PROXIMO margin when no semaforo is configured
    strict_invariants: bool = False  # Raise invariant violations instead of reporting them
    semaforo_default_profile: str = "ESTANDAR"  # ESTANDAR, CONSERVADOR or AGRESIVO

    class Config:
        env_file = ".env"
        case_sensitive = False

@lru_cache()
def get_settings():
    return Settings()
