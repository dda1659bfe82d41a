"""Configuration for lanscout.

Values come from, in increasing priority:
1. the defaults below
2. an optional YAML file
3. environment variables named ``LANSCOUT_<FIELD>`` (e.g. ``LANSCOUT_FOUND_TTL``)
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger("lanscout.config")

ENV_PREFIX = "LANSCOUT_"


class ScanSettings(BaseModel):
    """Scanner invocation, cache and queue settings."""
    nmap_path: str = Field("nmap", description="Scanner binary")
    converter: Optional[str] = Field(None, description="Optional XML-to-JSON binary piped after nmap")
    use_sudo: bool = Field(True, description="Prefix scanner commands with sudo")
    command_timeout: int = Field(1200, gt=0, description="Hard timeout for one scan, seconds")
    fast_host_timeout: str = Field("30s", description="nmap --host-timeout for the fast sweep")
    slow_host_timeout: str = Field("200s", description="nmap --host-timeout for the NetBIOS sweep")
    found_ttl: float = Field(600, gt=0, description="Lifetime of resolved neighbor entries, seconds")
    not_found_ttl: float = Field(60, gt=0, description="Lifetime of unresolved neighbor entries, seconds")
    max_outstanding: int = Field(3, ge=0, description="Scans rejected once more jobs than this are outstanding")
    health_interval: float = Field(60, gt=0, description="Seconds between queue health reports")
    require_mac: bool = Field(True, description="Drop hosts without a MAC address from range scans")
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".lanscout", description="Job store directory")
    queue_name: str = Field("nmap", description="Queue name, used as the job store file stem")

    @property
    def job_store_path(self) -> Path:
        return self.data_dir / f"{self.queue_name}-jobs.json"


def _env_overrides() -> dict[str, Any]:
    overrides = {}
    for name in ScanSettings.model_fields:
        value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = value
    return overrides


def load_settings(path: str | Path | None = None) -> ScanSettings:
    """Build settings from an optional YAML file plus environment overrides."""
    data: dict[str, Any] = {}

    if path:
        path = Path(path)
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        data.update(loaded)
        logger.debug(f"Loaded settings from {path}")

    data.update(_env_overrides())
    return ScanSettings(**data)
