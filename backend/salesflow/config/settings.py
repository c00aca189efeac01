"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "salesflow_dev"

    # Auth (tokens issued by the hosted auth provider, HS256 shared secret)
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"
    admin_user_type: str = "Administrador"

    # Workflow
    payment_flow_template_name: str = "Flujo de Pago Principal"
    collapse_default_hours: int = 24

    # Realtime delivery
    realtime_delivery_timeout_seconds: float = 5.0
    realtime_max_workers: int = 4
    unassign_debounce_seconds: float = 0.2
    popup_clear_delay_seconds: float = 0.2
    notification_session_idle_seconds: float = 1800.0

    # Scheduler
    cleanup_interval_seconds: int = 300

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
