import logging
import re

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Tuple


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"

    # Server
    BIND: str = "0.0.0.0:3000"
    CORS_ORIGINS: str = "*"  # comma-separated

    # Inventory scanning
    SCAN_KIND: str = "local"  # local | repo
    SCAN_ROOT: str = "/opt/docker/ant-parade/docker-compose"
    REFRESH_INTERVAL: str = "10m"

    # Licensing
    LICENSE_ENV: str = "DDUI_LICENSE"  # name of the env var holding the license JSON
    LICENSE_PATH: str = "/run/secrets/ddui_license"

    # Run streaming
    RUN_MIN_INTERVAL_MS: int = 200
    RUN_BUFFER_SIZE: int = 16

    model_config = SettingsConfigDict(
        env_prefix="DDUI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()


SCAN_KINDS = ("local", "repo")

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_bind(value: str) -> Tuple[str, int]:
    """Split a ``host:port`` bind address.

    IPv6 hosts must be bracketed (``[::]:3000``). Raises ValueError when the
    port is missing or out of range.
    """
    if not value or ":" not in value:
        raise ValueError(f"bind address must be host:port, got {value!r}")
    host, _, port_text = value.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not host:
        raise ValueError(f"bind address has no host: {value!r}")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"bind port is not a number: {value!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"bind port out of range: {value!r}")
    return host, port


def parse_duration(value: str) -> float:
    """Parse ``10m`` / ``30s`` / ``1h`` / ``250ms`` (bare numbers are seconds)."""
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[unit or "s"]


def cors_origins(settings_obj: Optional[Settings] = None) -> list[str]:
    cfg = settings_obj or settings
    return [origin.strip() for origin in cfg.CORS_ORIGINS.split(",") if origin.strip()]


def describe_config(settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> None:
    """Log the effective configuration at startup.

    The license payload itself is never logged, only where it is read from.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("ddui")
    log.info(
        "config.loaded",
        extra={
            "env": cfg.ENV,
            "bind": cfg.BIND,
            "scan_kind": cfg.SCAN_KIND,
            "scan_root": cfg.SCAN_ROOT,
            "refresh_interval": cfg.REFRESH_INTERVAL,
            "license_env": cfg.LICENSE_ENV,
            "license_path": cfg.LICENSE_PATH,
        },
    )
