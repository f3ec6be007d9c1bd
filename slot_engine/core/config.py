#slot_engine\core\config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class PoolSettings(BaseSettings):
    """Slot pool configuration from environment variables (SLOT_POOL_*)."""

    model_config = SettingsConfigDict(
        env_prefix="SLOT_POOL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Pool shape
    slots_per_account: int = 8
    account_domain: str = "nexusrs.com.br"
    max_accounts: Optional[int] = 625  # ceil(5000 / 8)

    # Allocation retries
    max_attempts: int = 5
    retry_delay_ms: int = 100
    allocation_timeout_seconds: Optional[float] = 10.0

    # Requests
    max_bulk_quantity: int = 50
    credential_length: int = 4

    # Hand out never-used slots before reclaimed ones
    prefer_unused_slots: bool = False

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000.0


pool_settings = PoolSettings()
