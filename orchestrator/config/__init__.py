"""Configuration module: settings and platform request profiles."""

from orchestrator.config.platform_profiles import PlatformProfile, load_platform_profiles
from orchestrator.config.settings import OrchestratorSettings

__all__ = [
    "OrchestratorSettings",
    "PlatformProfile",
    "load_platform_profiles",
]
