"""
Application configuration loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Turn scheduling
    turn_duration_seconds: float = 4 * 60
    turn_cooldown_seconds: float = 2.0
    reboot_delay_seconds: float = 0.5

    # Maintenance sweeps
    expiry_check_interval: float = 10.0
    session_ttl_seconds: float = 24 * 60 * 60
    session_sweep_interval: float = 60 * 60

    # How many waiting identities are disclosed to observers
    snapshot_preview_size: int = 5
    status_preview_size: int = 10

    # Shared secret for POST /api/admin/clear-queue
    admin_secret: str = "admin123"

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
