"""Application settings loaded from environment variables."""

from __future__ import annotations

from ipaddress import ip_address
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings


def is_loopback_host(host: str) -> bool:
    """True for ``localhost`` and loopback IP literals."""
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


class Settings(BaseSettings):
    """HridayMitra health server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback only unless overridden: the tools trust the caller's user_id.
    hm_host: str = "127.0.0.1"
    hm_port: int = 8001
    hm_log_level: str = "info"
    hm_allow_insecure_bind: bool = False

    # Storage (health record bank)
    storage_backend: Literal["sqlite", "memory"] = "sqlite"
    db_path: str = "~/.hridaymitra/health.db"

    # Encryption at rest; empty disables it
    encryption_key: str = ""
    # Comma-separated keys still accepted for reads after a rotation
    encryption_retired_keys: str = ""

    @property
    def retired_keys(self) -> list[str]:
        return [k.strip() for k in self.encryption_retired_keys.split(",") if k.strip()]

    # Charts
    default_window_size: int = 7

    # Heart-rate capture; set for reproducible simulated readings
    sensor_seed: int | None = None

    @model_validator(mode="after")
    def _require_loopback_bind(self) -> Settings:
        if not self.hm_allow_insecure_bind and not is_loopback_host(self.hm_host):
            raise ValueError(
                f"HM_HOST={self.hm_host!r} is a non-loopback address and the health "
                "tools have no auth layer. Set HM_ALLOW_INSECURE_BIND=true to override (unsafe)."
            )
        return self


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
