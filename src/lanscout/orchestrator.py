# lanscout - Network Scanner
"""
Public entry point for range scans and IPv6 neighbor resolution.

Composes the result caches, the named queue lock and the scan queue:
cache lookup first, then lookup-or-create of a deterministic job under the
lock, then a wait on the job outside the lock.
"""

import ipaddress
import logging
from typing import Callable

from .cache import ResultCache
from .config import ScanSettings
from .errors import InvalidInput, QueueFull
from .events import EventBus, MappingDeletedEvent
from .executor import build_command
from .models import HostRecord, ScanKind, ScanResult
from .queue import KeyedLock, ScanQueue

logger = logging.getLogger("lanscout.orchestrator")

QUEUE_LOCK = "NMAP_QUEUE"


class NetworkScanner:
    """
    Deduplicating front end to the scan queue.

    Example:
        >>> settings = load_settings()
        >>> queue = ScanQueue(ScanExecutor(), JobStore(settings.job_store_path))
        >>> async with NetworkScanner(queue, settings) as scanner:
        ...     result = await scanner.scan("192.168.1.0/24", fast=True)
        ...     mac = await scanner.neighbor_solicit("fe80::1")
    """

    def __init__(
        self,
        queue: ScanQueue,
        settings: ScanSettings | None = None,
        found_cache: ResultCache | None = None,
        not_found_cache: ResultCache | None = None,
        event_bus: EventBus | None = None,
        subnet_filter: Callable[[str], str] | None = None,
        lock: KeyedLock | None = None,
    ):
        """
        Args:
            queue: Scan queue that owns job execution
            settings: Command and cache settings (defaults if omitted)
            found_cache: Cache of resolved neighbor MACs
            not_found_cache: Cache of addresses that recently resolved to nothing
            event_bus: Bus carrying MappingDeletedEvent for cache invalidation
            subnet_filter: Caps or rewrites a validated CIDR before scanning
            lock: Named lock guarding job lookup-or-create
        """
        self.queue = queue
        self.settings = settings or ScanSettings()
        self.found_cache = found_cache or ResultCache("foundCache", self.settings.found_ttl)
        self.not_found_cache = not_found_cache or ResultCache("notFoundCache", self.settings.not_found_ttl)
        self.event_bus = event_bus
        self.subnet_filter = subnet_filter
        self.lock = lock or KeyedLock()
        self._unsubscribe: Callable[[], None] | None = None

    async def start(self) -> None:
        if self.event_bus is not None and self._unsubscribe is None:
            self._unsubscribe = self.event_bus.subscribe(MappingDeletedEvent, self.on_mapping_deleted)
        await self.queue.start()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.queue.stop()

    async def __aenter__(self) -> "NetworkScanner":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    def _normalize_range(self, range_: str) -> str:
        if not range_ or not isinstance(range_, str):
            raise InvalidInput(f"Invalid scan range: {range_!r}")
        try:
            network = ipaddress.ip_network(range_.strip(), strict=False)
        except ValueError as e:
            raise InvalidInput(f"Invalid scan range {range_!r}: {e}") from e
        if network.version != 4:
            raise InvalidInput(f"Scan range must be IPv4: {range_}")

        cidr = str(network)
        if self.subnet_filter is not None:
            try:
                cidr = self.subnet_filter(cidr)
            except Exception as e:
                logger.error(f"Subnet filter rejected {cidr}: {e}")
                raise InvalidInput(f"Scan range rejected: {e}") from e
        return cidr

    async def scan(self, range_: str, fast: bool = True) -> ScanResult:
        """
        Scan an IPv4 CIDR range.

        Raises InvalidInput for a malformed range and QueueFull when too many
        scans are already outstanding. Concurrent calls for the same range
        and speed share one scan.
        """
        cidr = self._normalize_range(range_)
        kind = ScanKind.FAST if fast else ScanKind.SLOW
        job_id = kind.job_id(cidr)

        async with self.lock.acquire(QUEUE_LOCK):
            job = await self.queue.get_job(job_id)
            if job is None:
                if self.queue.outstanding > self.settings.max_outstanding:
                    logger.info(f"Rejecting scan of {cidr}: {self.queue.outstanding} jobs outstanding")
                    raise QueueFull(f"{self.queue.outstanding} scans outstanding")
                job = await self.queue.enqueue_or_attach(
                    job_id,
                    kind,
                    cidr,
                    build_command(kind, cidr, self.settings),
                    self.settings.command_timeout,
                    require_mac=self.settings.require_mac,
                )
            else:
                logger.debug(f"Job {job_id} already scheduled")

        return await self.queue.wait(job)

    async def scan_async(self, range_: str, fast: bool = True) -> list[HostRecord]:
        """Like scan(), returning hosts only."""
        result = await self.scan(range_, fast)
        return result.hosts

    async def neighbor_solicit(self, address: str) -> str | None:
        """
        Resolve the MAC address of an IPv6 neighbor.

        Returns None immediately for anything that is not an IPv6 address.
        Results are cached: found MACs for ``found_ttl`` seconds, misses for
        the shorter ``not_found_ttl``.
        """
        try:
            addr = ipaddress.ip_address(address)
        except (TypeError, ValueError):
            return None
        if addr.version != 6:
            return None
        key = str(addr)

        mac = self.found_cache.lookup(key)
        if mac is not None:
            logger.debug(f"{key} found in cache: {mac}")
            return mac
        if self.not_found_cache.lookup(key):
            logger.debug(f"{key} not found recently, skip")
            return None

        kind = ScanKind.SOLICIT
        async with self.lock.acquire(QUEUE_LOCK):
            job = await self.queue.enqueue_or_attach(
                kind.job_id(key),
                kind,
                key,
                build_command(kind, key, self.settings),
                self.settings.command_timeout,
                require_mac=True,
            )

        result = await self.queue.wait(job)
        for host in result.hosts:
            if host.mac:
                self.found_cache.insert(key, host.mac)
                return host.mac

        self.not_found_cache.insert(key, True)
        return None

    def on_mapping_deleted(self, event: MappingDeletedEvent) -> None:
        """Drop cached IPv6 entries whose value matches the removed mapping."""
        if not event.ip or not event.mac or event.family != 6:
            return
        try:
            key = str(ipaddress.ip_address(event.ip))
        except ValueError:
            key = event.ip
        self.found_cache.delete_if(key, event.mac)
        self.not_found_cache.delete_if(key, event.mac)
