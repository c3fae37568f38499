from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    project_name: str = "PharmaRoute API"
    api_prefix: str = "/api"

    use_mongo: bool = False
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "pharmaroute"

    # Route Oracle (Google Directions)
    google_maps_api_key: Optional[str] = None
    directions_url: str = "https://maps.googleapis.com/maps/api/directions/json"
    oracle_timeout_s: float = 20.0

    # caller tokens are issued elsewhere; we only verify them
    jwt_secret: str = "dev"
    jwt_alg: str = "HS256"

    # lifecycle policy
    lock_terminal_statuses: bool = True
    block_offline_couriers: bool = False

    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
