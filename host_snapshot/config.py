"""Runtime configuration helpers."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


class ConfigError(ValueError):
    """Raised when the environment does not describe a usable service."""


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 5001
    log_level: str = "info"
    probe_timeout: float = 5.0
    sample_interval: float = 0.25
    upstream_host: str = ""
    upstream_port: int = 11434
    upstream_timeout: Optional[float] = None

    @property
    def upstream_url(self) -> str:
        return f"http://{self.upstream_host}:{self.upstream_port}"

    def validate(self) -> "Settings":
        """Check the settings once at startup and return them unchanged."""
        if not self.upstream_host:
            raise ConfigError("HOST_SNAPSHOT_UPSTREAM_HOST is required")
        if "://" in self.upstream_host or "/" in self.upstream_host or any(
            ch.isspace() for ch in self.upstream_host
        ):
            raise ConfigError(f"Malformed upstream host: {self.upstream_host!r}")
        for name, port in (("port", self.port), ("upstream_port", self.upstream_port)):
            if not 0 < port < 65536:
                raise ConfigError(f"{name} out of range: {port}")
        for name, value in (
            ("probe_timeout", self.probe_timeout),
            ("sample_interval", self.sample_interval),
            ("upstream_timeout", self.upstream_timeout),
        ):
            if value is not None and not math.isfinite(value):
                raise ConfigError(f"{name} must be a finite number: {value!r}")
        if self.probe_timeout <= 0:
            raise ConfigError("probe_timeout must be positive")
        if self.sample_interval < 0 or self.sample_interval >= self.probe_timeout:
            raise ConfigError("sample_interval must be in [0, probe_timeout)")
        if self.upstream_timeout is not None and self.upstream_timeout <= 0:
            raise ConfigError("upstream_timeout must be positive")
        return self


def _number(name: str, default: str, cast=float):
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} is not a valid number: {raw!r}") from exc
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be a finite number: {raw!r}")
    return value


def load_settings() -> Settings:
    """Build settings from environment variables with sensible defaults."""
    upstream_timeout = os.getenv("HOST_SNAPSHOT_UPSTREAM_TIMEOUT")
    return Settings(
        host=os.getenv("HOST_SNAPSHOT_HOST", "0.0.0.0"),
        port=_number("HOST_SNAPSHOT_PORT", "5001", int),
        log_level=os.getenv("HOST_SNAPSHOT_LOG_LEVEL", "info").lower(),
        probe_timeout=_number("HOST_SNAPSHOT_PROBE_TIMEOUT", "5.0"),
        sample_interval=_number("HOST_SNAPSHOT_SAMPLE_INTERVAL", "0.25"),
        upstream_host=os.getenv("HOST_SNAPSHOT_UPSTREAM_HOST", "").strip(),
        upstream_port=_number("HOST_SNAPSHOT_UPSTREAM_PORT", "11434", int),
        upstream_timeout=(
            _number("HOST_SNAPSHOT_UPSTREAM_TIMEOUT", upstream_timeout) if upstream_timeout else None
        ),
    ).validate()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and validate settings once per process."""
    return load_settings()
