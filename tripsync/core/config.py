"""Application configuration via environment variables."""
from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class DataMode(str, Enum):
    """Remote sync strategy, read once at startup."""

    SNAPSHOT = "snapshot"
    ENTITIES = "entities"


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Trip Sync"
    debug: bool = False
    log_dir: Path = Path.home() / ".logs" / "tripsync"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Local store
    database_url: str = "sqlite:///./tripsync.db"
    fallback_store_path: Path = Path("./tripsync-fallback.json")
    fallback_quota_bytes: int = 5_000_000
    mirror_photo_max_length: int = 512

    # Remote (Supabase)
    data_mode: DataMode = DataMode.SNAPSHOT
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_table: str = "travel_data"
    supabase_record_id: int = 1
    trip_id: int = 1

    # Sync settings
    sync_debounce_ms: int = 800
    reload_interval_minutes: int = 0  # 0 disables periodic reload

    # Trip defaults
    default_people: list[str] = ["You", "Friend 1", "Friend 2"]

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


settings = Settings()
