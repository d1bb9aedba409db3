"""
Config Loader — Load sync settings from environment variables.

Settings are read from the process environment. `main.py` loads a `.env`
file first, so local runs can keep them there.

## Environment Variables

- OPERATOR_NAME: Annotation prefix and field manager
  (default: cert-manager-sync.lestak.sh)
- CERTSYNC_HTTP_TIMEOUT: Store API timeout in seconds (default: 30)
- CERTSYNC_KUBE_TIMEOUT: Cluster API timeout in seconds (default: 30)
- CERTSYNC_RECREATE_MISSING: Create a new store object when the recorded
  one was deleted remotely (default: true)
- CERTSYNC_MOCK: Use in-memory stores instead of real providers (default: false)
- CLOUDFLARE_API_URL: Cloudflare API base URL
- DIGITALOCEAN_API_URL: DigitalOcean API base URL

## Usage

    from certsync.config.loader import get_settings

    settings = get_settings()
    print(settings.operator_name)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_OPERATOR_NAME = "cert-manager-sync.lestak.sh"

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class SyncSettings:
    """Process-wide sync settings."""

    operator_name: str = DEFAULT_OPERATOR_NAME
    http_timeout: float = 30.0
    kube_timeout: float = 30.0
    recreate_missing: bool = True
    mock_mode: bool = False
    cloudflare_api_url: str = "https://api.cloudflare.com/client/v4"
    digitalocean_api_url: str = "https://api.digitalocean.com"

    @property
    def field_manager(self) -> str:
        """Field manager identity used when persisting annotations."""
        return self.operator_name


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using {default}")
        return default


def load_settings() -> SyncSettings:
    """
    Load settings from environment variables.

    Unset or invalid values fall back to defaults.
    """
    defaults = SyncSettings()
    return SyncSettings(
        operator_name=os.environ.get("OPERATOR_NAME") or defaults.operator_name,
        http_timeout=_env_float("CERTSYNC_HTTP_TIMEOUT", defaults.http_timeout),
        kube_timeout=_env_float("CERTSYNC_KUBE_TIMEOUT", defaults.kube_timeout),
        recreate_missing=_env_bool("CERTSYNC_RECREATE_MISSING", defaults.recreate_missing),
        mock_mode=_env_bool("CERTSYNC_MOCK", defaults.mock_mode),
        cloudflare_api_url=(
            os.environ.get("CLOUDFLARE_API_URL") or defaults.cloudflare_api_url
        ).rstrip("/"),
        digitalocean_api_url=(
            os.environ.get("DIGITALOCEAN_API_URL") or defaults.digitalocean_api_url
        ).rstrip("/"),
    )


# Global settings instance (loaded on first access)
_settings: Optional[SyncSettings] = None


def get_settings() -> SyncSettings:
    """Get the global settings (loads on first access)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next access reloads them."""
    global _settings
    _settings = None
