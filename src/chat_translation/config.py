"""Configuration management using pydantic-settings."""

import threading
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8766
    debug: bool = False

    # Redis (queue, cache and room notifications)
    redis_url: Optional[str] = "redis://localhost:6379/0"

    # Translation Pipeline Configuration
    translation_enabled: bool = True
    translation_queue_name: str = "translation:jobs"
    translation_max_concurrent_jobs: int = 5
    translation_max_retries: int = 3
    translation_retry_delay_seconds: int = 5  # delay = base * retry count
    translation_job_timeout_seconds: int = 30
    translation_dequeue_poll_seconds: float = 1.0  # pause when the queue is empty
    translation_cache_ttl_seconds: int = 3600  # 0 disables caching
    translation_shutdown_timeout_seconds: float = 30.0
    translation_manual_retry_priority: int = 10

    # Room broadcasts
    notification_channel_prefix: str = "chat:room:"

    # Azure AI Translator Configuration
    translator_endpoint: str = ""
    translator_subscription_key: str = ""
    translator_region: str = ""
    translator_api_version: str = "2025-10-01-preview"
    translator_deployment_name: Optional[str] = None
    translator_request_timeout: float = 10.0

    def get_translator_headers(self) -> dict[str, str]:
        """
        Get headers for Azure AI Translator requests.

        Returns:
            Headers dictionary for translator API requests
        """
        headers = {
            "Ocp-Apim-Subscription-Key": self.translator_subscription_key,
            "Content-Type": "application/json",
        }
        if self.translator_region:
            headers["Ocp-Apim-Subscription-Region"] = self.translator_region
        return headers

    @property
    def translator_configured(self) -> bool:
        """Whether both the translator endpoint and key are set."""
        return bool(self.translator_endpoint and self.translator_subscription_key)


# Global settings instance with lock for thread safety
_settings: Optional[Settings] = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """
    Get the settings instance.

    Values come from environment variables or the .env file and are read
    once per process; call reset_settings() to force a reload.

    Returns:
        Settings instance
    """
    global _settings
    with _settings_lock:
        if _settings is None:
            _settings = Settings()
        return _settings


def reset_settings() -> None:
    """Reset settings instance to force reload from environment."""
    global _settings
    with _settings_lock:
        _settings = None
