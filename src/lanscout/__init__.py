"""
lanscout - deduplicated nmap orchestration for local network discovery.

Finds live hosts, open ports, MAC addresses and IPv6 neighbor mappings by
driving nmap, without scanning the same target twice at once.
"""

__version__ = "0.1.0"

from lanscout.cache import ResultCache
from lanscout.config import ScanSettings, load_settings
from lanscout.errors import (
    InvalidInput,
    LanscoutError,
    ParseError,
    PartialRecordSkipped,
    ProcessError,
    QueueFull,
)
from lanscout.events import EventBus, MappingDeletedEvent
from lanscout.executor import ScanExecutor, build_command
from lanscout.models import HostRecord, Job, JobState, PortRecord, ScanKind, ScanResult
from lanscout.orchestrator import NetworkScanner
from lanscout.parser import OutputParser
from lanscout.queue import KeyedLock, ScanQueue
from lanscout.store import JobStore

__all__ = [
    # Orchestration
    "NetworkScanner",
    "ScanQueue",
    "KeyedLock",
    "JobStore",
    "ScanExecutor",
    "build_command",
    "OutputParser",
    "ResultCache",
    # Events
    "EventBus",
    "MappingDeletedEvent",
    # Models
    "HostRecord",
    "PortRecord",
    "ScanResult",
    "Job",
    "JobState",
    "ScanKind",
    # Config
    "ScanSettings",
    "load_settings",
    # Errors
    "LanscoutError",
    "InvalidInput",
    "QueueFull",
    "ProcessError",
    "ParseError",
    "PartialRecordSkipped",
]
