"""Pydantic Settings for the orchestration service.

All environment variables use the SCRAPER_ prefix.
Example: SCRAPER_PORT=8001, SCRAPER_PROVIDER_API_KEY=my-secret-key
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

_DEFAULT_PROFILES_PATH = str(Path(__file__).with_name("platform_profiles.yaml"))

_STRATEGY_ALIASES = {
    "random": "random",
    "round_robin": "round_robin",
    "round-robin": "round_robin",
    "smart": "smart",
    "adaptive": "smart",
}


class OrchestratorSettings(BaseSettings):
    """Orchestrator configuration validated from environment variables."""

    # Service
    port: int = 8001
    log_level: str = "INFO"
    log_json: bool = True

    # External scraping provider
    provider_api_url: str = "https://scraper-api.decodo.com/v2"
    provider_api_key: str  # Basic/Bearer credential, supplied out of band
    provider_auth_scheme: str = "Basic"
    provider_timeout_seconds: float = Field(default=60.0, gt=0)

    # Proxy pool
    proxy_endpoints: list[str] = []  # Loaded from env or config
    use_proxies: bool = False
    proxy_rotation_strategy: str = "random"
    proxy_blacklist_seconds: float = Field(default=600.0, gt=0)  # 10 minutes
    proxy_exploit_probability: float = Field(default=0.8, ge=0.0, le=1.0)
    proxy_recency_window_seconds: float = Field(default=300.0, gt=0)  # 5 minutes
    proxy_top_n: int = Field(default=5, ge=1)

    # Dispatcher polling
    poll_interval_seconds: float = Field(default=2.0, gt=0)

    # Recurrence scheduler
    scheduler_max_concurrency: int = Field(default=4, ge=1, le=64)
    scheduler_timezone: str = "UTC"
    scheduler_tick_interval_seconds: int | None = Field(default=None, ge=1)

    # Platform request profiles
    platform_profiles_path: str = _DEFAULT_PROFILES_PATH

    # Shutdown
    graceful_shutdown_seconds: int = Field(default=30, ge=0)

    model_config = {"env_prefix": "SCRAPER_"}

    @field_validator("proxy_rotation_strategy")
    @classmethod
    def _normalize_strategy(cls, value: str) -> str:
        normalized = _STRATEGY_ALIASES.get(value.strip().lower())
        if normalized is None:
            raise ValueError(
                f"Unknown proxy rotation strategy '{value}' "
                f"(expected one of: random, round_robin, smart)"
            )
        return normalized

    @field_validator("provider_auth_scheme")
    @classmethod
    def _check_auth_scheme(cls, value: str) -> str:
        scheme = value.strip().capitalize()
        if scheme not in ("Basic", "Bearer"):
            raise ValueError("provider_auth_scheme must be 'Basic' or 'Bearer'")
        return scheme
