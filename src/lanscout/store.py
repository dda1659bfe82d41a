"""Crash-safe job store.

Mirrors the queue's outstanding jobs to a JSON file so that a restarted
process can see which scans were in flight when it died. The file is
rewritten atomically (temp file + rename) on every change.
"""

import asyncio
import json
import logging
import os
from pathlib import Path

import aiofiles

from .models import Job

logger = logging.getLogger("lanscout.store")


class JobStore:
    """JSON file of outstanding jobs. ``path=None`` keeps it in memory only."""

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path else None
        self._jobs: dict[str, dict] = {}
        self._lock = asyncio.Lock()

    async def load(self) -> list[Job]:
        """Read jobs left on disk by a previous process."""
        if not self.path or not self.path.exists():
            return []
        try:
            async with aiofiles.open(self.path) as f:
                content = await f.read()
            data = json.loads(content) if content.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load job store {self.path}: {e}")
            return []

        jobs = []
        for job_id, job_data in data.items():
            try:
                jobs.append(Job.from_dict(job_data))
            except (KeyError, ValueError) as e:
                logger.warning(f"Discarding unreadable job {job_id}: {e}")
        return jobs

    async def save(self, job: Job) -> None:
        async with self._lock:
            self._jobs[job.id] = job.to_dict()
            await self._flush()

    async def remove(self, job_id: str) -> None:
        async with self._lock:
            if self._jobs.pop(job_id, None) is not None:
                await self._flush()

    async def clear(self) -> None:
        async with self._lock:
            self._jobs.clear()
            await self._flush()

    def ids(self) -> list[str]:
        return list(self._jobs)

    async def _flush(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        async with aiofiles.open(tmp, "w") as f:
            await f.write(json.dumps(self._jobs, indent=2))
        os.replace(tmp, self.path)
