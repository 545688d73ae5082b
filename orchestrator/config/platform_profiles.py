"""Platform request profile models and YAML loader.

Each platform (reddit, amazon, instagram, ...) carries default provider
options: rendering mode, geo, locale and device type. Request-level options
override these defaults field by field.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class PlatformProfile(BaseModel):
    """Default provider request options for a single platform."""

    headless: str = "html"
    geo: str = "us"
    locale: str = "en-US"
    device_type: str = "desktop"


_DEFAULT_PROFILE = PlatformProfile()


def load_platform_profiles(yaml_path: str) -> dict[str, PlatformProfile]:
    """Parse a platform profiles YAML file into typed PlatformProfile objects.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        A dict mapping platform names (and "default") to PlatformProfile
        instances. If the file is not found or is malformed, returns just the
        built-in default profile.
    """
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Platform profiles file not found at %s, using built-in defaults", yaml_path)
        return {"default": _DEFAULT_PROFILE}

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse platform profiles YAML at %s: %s", yaml_path, exc)
        return {"default": _DEFAULT_PROFILE}

    if not isinstance(raw, dict) or "platforms" not in raw:
        logger.warning("Platform profiles YAML missing 'platforms' key, using built-in defaults")
        return {"default": _DEFAULT_PROFILE}

    profiles: dict[str, PlatformProfile] = {}
    for platform, config in (raw["platforms"] or {}).items():
        try:
            profiles[str(platform).lower()] = PlatformProfile.model_validate(config or {})
        except Exception as exc:
            logger.error("Invalid profile for platform '%s': %s, skipping", platform, exc)

    if "default" not in profiles:
        profiles["default"] = _DEFAULT_PROFILE

    return profiles


def resolve_profile(profiles: dict[str, PlatformProfile], platform: str) -> PlatformProfile:
    """Return the profile for *platform*, falling back to the default one."""
    return profiles.get(platform.lower(), profiles.get("default", _DEFAULT_PROFILE))
