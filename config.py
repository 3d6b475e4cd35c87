"""
Configuration module for the services marketplace booking core.
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

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Email (Resend)
    resend_api_key: Optional[str] = None
    email_from: str = "MVP Usluge <noreply@mvp-usluge.com>"
    app_base_url: str = "http://localhost:8000"
    email_max_retries: int = 3
    email_retry_delay: float = 1.0

    # Cron endpoint protection
    cron_secret: Optional[str] = None

    # Scheduling rules
    timezone: str = "Europe/Belgrade"
    slot_granularity_minutes: int = 30
    default_service_duration_minutes: int = 60
    max_active_bookings: int = 10

    # Late cancellation penalties
    late_cancellation_hours: int = 24
    strike_threshold: int = 3
    ban_days: int = 7

    # Admin Settings
    admin_user_ids: str = ""  # Comma-separated user IDs

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"  # development, staging, production
    log_level: str = "INFO"

    # Redis Configuration (for APScheduler cluster support)
    redis_url: Optional[str] = (
        None  # Redis connection URL (e.g., redis://localhost:6379/0)
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def is_admin(self, user_id: Optional[str]) -> bool:
        """
        Check if a user ID is listed as a platform administrator.

        Args:
            user_id: User ID to check

        Returns:
            True if user is admin, False otherwise
        """
        if not self.admin_user_ids or not user_id:
            return False
        admin_ids = {id.strip() for id in self.admin_user_ids.split(",") if id.strip()}
        return user_id in admin_ids

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = ["supabase_url", "supabase_key"]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            if not value:
                missing.append(field)
                continue

            # Placeholder values copied from .env.example
            if str(value).lower().startswith("your_"):
                missing.append(field)

        if self.slot_granularity_minutes <= 0:
            missing.append("slot_granularity_minutes")

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
