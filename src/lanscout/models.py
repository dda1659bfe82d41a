# lanscout - Data Models
"""Host, port and job records produced and tracked by the scan subsystem."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ScanKind(str, Enum):
    """Scan categories. The value doubles as the job id prefix."""
    FAST = "fast"
    SLOW = "slow"
    SOLICIT = "solicit"

    def job_id(self, target: str) -> str:
        return f"{self.value}-{target}"


class JobState(str, Enum):
    """Job lifecycle states."""
    CREATED = "created"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class HostRecord:
    """A host discovered by a single scan invocation."""
    uid: str
    ipv4_addr: str | None = None
    ipv6_addr: str | None = None
    mac: str | None = None
    mac_vendor: str | None = None
    hostname: str | None = None
    hostname_type: str | None = None
    last_active_timestamp: float | None = None
    first_found_timestamp: float | None = None
    os_match: str | None = None
    os_accuracy: str | None = None
    os_class: str | None = None
    uptime: int | None = None
    nname: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, leaving out fields that were never set."""
        data = {
            "uid": self.uid,
            "ipv4_addr": self.ipv4_addr,
            "ipv6_addr": self.ipv6_addr,
            "mac": self.mac,
            "mac_vendor": self.mac_vendor,
            "hostname": self.hostname,
            "hostname_type": self.hostname_type,
            "last_active_timestamp": self.last_active_timestamp,
            "first_found_timestamp": self.first_found_timestamp,
            "os_match": self.os_match,
            "os_accuracy": self.os_accuracy,
            "os_class": self.os_class,
            "uptime": self.uptime,
            "nname": self.nname,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class PortRecord:
    """A port observed on a host. ``uid`` is ``<host_id>.<portid>``."""
    host_id: str
    uid: str
    protocol: str | None = None
    portid: int | str | None = None
    state: str | None = None
    service_name: str | None = None
    last_active_timestamp: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "host_id": self.host_id,
            "uid": self.uid,
            "protocol": self.protocol,
            "portid": self.portid,
            "state": self.state,
            "service_name": self.service_name,
            "last_active_timestamp": self.last_active_timestamp,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class ScanResult:
    """Hosts and ports from one scan."""
    hosts: list[HostRecord] = field(default_factory=list)
    ports: list[PortRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hosts": [h.to_dict() for h in self.hosts],
            "ports": [p.to_dict() for p in self.ports],
        }


@dataclass
class Job:
    """
    A unit of scan work keyed by a deterministic id.

    The future is shared by every caller attached to the job and is
    resolved exactly once by the queue worker.
    """
    id: str
    kind: ScanKind
    target: str
    command: str
    timeout: float
    require_mac: bool = True
    state: JobState = JobState.CREATED
    created_at: float = field(default_factory=time.time)
    started_at: float | None = None
    finished_at: float | None = None
    error: str | None = None
    future: asyncio.Future | None = field(default=None, repr=False, compare=False)

    @property
    def done(self) -> bool:
        return self.state in (JobState.SUCCEEDED, JobState.FAILED)

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for the job store (the future is not persisted)."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "target": self.target,
            "command": self.command,
            "timeout": self.timeout,
            "require_mac": self.require_mac,
            "state": self.state.value,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            kind=ScanKind(data["kind"]),
            target=data["target"],
            command=data["command"],
            timeout=data["timeout"],
            require_mac=data.get("require_mac", True),
            state=JobState(data.get("state", "created")),
            created_at=data.get("created_at", time.time()),
            started_at=data.get("started_at"),
            finished_at=data.get("finished_at"),
            error=data.get("error"),
        )
