"""Configuration for the device client."""

from pathlib import Path

from pydantic import BaseModel, Field

from .reconcile import ReconcileMode


def _default_cache_dir() -> Path:
    return Path.home() / ".slowdown" / "cache"


class Config(BaseModel):
    """Local configuration for this device."""

    api_base_url: str
    auth_token: str | None = None
    cache_dir: Path = Field(default_factory=_default_cache_dir)
    poll_interval_seconds: int = Field(default=45, gt=0)
    pending_refresh_seconds: int = Field(default=30, gt=0)
    timezone_offset_hours: int = 7
    reconcile_mode: ReconcileMode = ReconcileMode.RESYNC
    usage_snapshot_path: Path | None = None
    request_timeout_seconds: float = Field(default=10.0, gt=0)


def load_config(path: Path) -> Config:
    """Load configuration from a JSON file."""
    return Config.model_validate_json(path.read_text())
