"""
Centralized configuration management using Pydantic Settings.

Daemon settings are loaded from environment variables with sensible defaults.
The per-device registry lives in a separate INI file, see dispatch.registry.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DispatchConfig(BaseSettings):
    """Action dispatch configuration."""

    model_config = SettingsConfigDict(env_prefix="CANON_SSDP_DISPATCH_")

    placeholder: str = Field(
        default="$HOSTNAME",
        description="Token in a device command replaced by the discovered host",
    )
    log_file_name: str = Field(
        default="logfile",
        description="Name of the append-only log inside each device's working directory",
    )

    @field_validator("placeholder", "log_file_name")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v


class SSDPConfig(BaseSettings):
    """SSDP discovery client configuration."""

    model_config = SettingsConfigDict(env_prefix="CANON_SSDP_SSDP_")

    search_target: str = Field(default="ssdp:all", description="ST used by the resource browser")
    search_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between M-SEARCH refreshes (0=search once)",
    )
    mx: int = Field(default=3, description="MX value sent with M-SEARCH requests")
    default_max_age: int = Field(
        default=1800,
        description="Cache lifetime for announcements without CACHE-CONTROL",
    )
    ttl: int = Field(default=4, description="Multicast TTL for outgoing datagrams")


class AdvertiseConfig(BaseSettings):
    """Self-advertisement configuration."""

    model_config = SettingsConfigDict(env_prefix="CANON_SSDP_ADVERTISE_")

    enabled: bool = Field(default=True, description="Announce this daemon as a UPnP root device")
    description_file: Path = Field(
        default=Path("canon-ssdp.xml"),
        description="Device description document, created on first run",
    )
    http_port: int = Field(default=0, description="Port serving the description (0=any free port)")
    # Powershot cameras ignore root devices without Windows in the server string
    server_id: str = Field(
        default="Microsoft-Windows-NT/5.1 UPnP/1.0 UPnP-Device-Host/1.0",
        description="SERVER header sent with announcements and search responses",
    )
    max_age: int = Field(default=1800, description="CACHE-CONTROL max-age of our announcements")
    announce_interval_seconds: float = Field(
        default=900.0,
        description="Seconds between ssdp:alive re-announcements",
    )


class Settings(BaseSettings):
    """Application-wide settings."""

    model_config = SettingsConfigDict(
        env_prefix="CANON_SSDP_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # General
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Logging level")

    # Matches the command line defaults
    config_file: Path = Field(default=Path("canon-ssdp.conf"), description="Device registry file")
    interface: Optional[str] = Field(default=None, description="Network interface to listen on")

    # Nested configs
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    ssdp: SSDPConfig = Field(default_factory=SSDPConfig)
    advertise: AdvertiseConfig = Field(default_factory=AdvertiseConfig)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()


def get_settings(**overrides) -> Settings:
    """Build settings from the environment, applying non-None overrides."""
    settings = Settings()
    for key, value in overrides.items():
        if value is not None:
            setattr(settings, key, value)
    return settings
