"""
Configuration module for the barbershop booking core.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase (appointment store and availability source)
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Business calendar
    timezone: str = "America/Sao_Paulo"
    slot_intervals: str = "08:00-11:30,14:00-19:00"  # Open intervals, inclusive
    slot_step_minutes: int = 30

    # Barber display
    media_base_url: str = "http://localhost:3000"  # Prefix for relative avatar paths
    default_specialty_label: str = "Especialista"

    # Cache
    services_cache_ttl_seconds: int = 300

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate_all_required(self) -> None:
        """
        Validate that the database settings are present.

        Raises:
            ValueError: If required fields are missing or still placeholders
        """
        required_fields = ["supabase_url", "supabase_key"]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)
            if not value or str(value).lower().startswith("your_"):
                missing.append(field)

        if self.slot_step_minutes <= 0:
            missing.append("slot_step_minutes")

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
