from pathlib import Path
from typing import ClassVar, List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "peerflex"

    # Realtime bus: in-process when empty, Redis pub/sub otherwise
    REDIS_URL: str = ""

    # JWT
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = ""

    # Geocoding
    GEOCODER_SEARCH_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_REVERSE_URL: str = "https://nominatim.openstreetmap.org/reverse"
    GEOCODER_PROXIES: List[str] = [
        "https://api.allorigins.win/raw?url=",
        "https://corsproxy.io/?",
    ]
    GEOCODER_DIRECT: bool = True
    GEOCODER_TIMEOUT: float = 10.0
    GEOCODER_RETRY_DELAY: float = 0.5
    IP_LOCATION_URL: str = "https://ipapi.co/json/"

    # App preferences file (theme/language)
    PREFERENCES_PATH: str = str(BASE_DIR / "preferences.json")


settings = Settings()
