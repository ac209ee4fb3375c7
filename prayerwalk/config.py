"""Configuration settings"""

import os
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database - supports both SQLite and PostgreSQL
    database_url: str = "sqlite+aiosqlite:///./data/prayer-walk.db"

    # Application
    app_name: str = "Prayer Walk Trust"
    app_version: str = "1.0.0"
    debug: bool = False

    # GPS validation
    max_human_speed_ms: float = 10.0  # ~36 km/h
    teleport_threshold_m: float = 500.0
    mock_gps_penalty: int = 50
    teleport_penalty: int = 30
    low_accuracy_threshold_m: float = 100.0
    low_accuracy_check_enabled: bool = False

    # Route checkpoints
    checkpoint_spacing_m: float = 100.0
    checkpoint_radius_m: float = 50.0
    route_skip_threshold: int = 70

    # Completion gate
    checkpoint_penalty_max: int = 50
    flag_penalty: int = 20
    completion_threshold: int = 50
    open_walk_points: int = 50

    # Badges
    streak_timezone: str = "UTC"

    # Sample ingestion workers
    sample_queue_size: int = 32
    sample_timeout_seconds: float = 5.0
    worker_idle_seconds: float = 60.0

    @property
    def is_sqlite(self) -> bool:
        """Check if database is SQLite"""
        return self.database_url.startswith("sqlite")

    class Config:
        # Respect ENV_FILE environment variable, default to .env
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields for forward compatibility


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
