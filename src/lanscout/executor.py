# lanscout - Scan Executor
"""
Builds nmap command lines and runs them.

Every command is wrapped in ``timeout`` so a hung scanner cannot hold the
queue worker forever. The process runs in its own session, which lets a
timeout or cancellation kill the shell, nmap, and any converter in one go.
"""

import asyncio
import logging
import os
import shlex
import signal

from .config import ScanSettings
from .errors import ProcessError
from .models import ScanKind, ScanResult
from .parser import OutputParser

logger = logging.getLogger("lanscout.executor")


def build_command(kind: ScanKind, target: str, settings: ScanSettings) -> str:
    """
    Build the shell command line for a scan.

    - fast: ICMP/ARP host discovery only, no port scan
    - slow: UDP probe of the NetBIOS name service to recover broadcast names
    - solicit: IPv6 neighbor discovery against a single address
    """
    nmap = shlex.quote(settings.nmap_path)
    quoted = shlex.quote(target)

    if kind == ScanKind.FAST:
        args = f"-sn -n -PO --host-timeout {settings.fast_host_timeout} {quoted}"
    elif kind == ScanKind.SLOW:
        args = f"-sU -n --host-timeout {settings.slow_host_timeout} --script nbstat.nse -p 137 {quoted}"
    elif kind == ScanKind.SOLICIT:
        args = f"-6 -PR -sn -n {quoted}"
    else:
        raise ValueError(f"Unknown scan kind: {kind}")

    cmd = f"timeout {settings.command_timeout}s {nmap} {args} -oX -"
    if settings.use_sudo:
        cmd = f"sudo {cmd}"
    if settings.converter:
        cmd = f"{cmd} | {shlex.quote(settings.converter)}"
    return cmd


class ScanExecutor:
    """Runs one scanner process per call and parses its output."""

    def __init__(self, parser: OutputParser | None = None):
        self.parser = parser or OutputParser()
        self.spawn_count = 0

    async def execute(self, command: str, require_mac: bool = False) -> ScanResult:
        """
        Run a scanner command line and parse its output.

        Raises ProcessError if the process cannot be spawned or exits
        non-zero, and ParseError if its output cannot be decoded. If the
        calling task is cancelled (for example by a job timeout) the whole
        process group is killed before the cancellation propagates.
        """
        logger.info(f"Running commandline: {command}")

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise ProcessError(f"Failed to spawn scanner: {e}") from e
        self.spawn_count += 1

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        err_text = (stderr or b"").decode("utf-8", errors="replace").strip()
        if proc.returncode != 0:
            logger.error(f"Scan failed (exit {proc.returncode}): {err_text[-500:]}")
            raise ProcessError(
                f"Scanner exited with status {proc.returncode}",
                returncode=proc.returncode,
                stderr=err_text,
            )

        return self.parser.parse(stdout or b"", require_mac=require_mac)

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        logger.warning(f"Killing scanner process group {proc.pid}")
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        except PermissionError:
            # sudo-owned children; the shell's own timeout reaps them
            proc.kill()
        await proc.wait()
