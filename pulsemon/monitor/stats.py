"""System stats providers polled by the CollectionScheduler."""

from __future__ import annotations

import abc
import asyncio

import psutil

from pulsemon.core.types import SystemStats


class SystemStatsProvider(abc.ABC):
    """Source of current resource figures."""

    @abc.abstractmethod
    async def sample(self) -> SystemStats:
        """Return the current figures."""


def memory_snapshot(process: psutil.Process | None = None) -> dict[str, float]:
    """Memory figures of this process for the health endpoint."""
    process = process or psutil.Process()
    info = process.memory_info()
    return {
        "rss_bytes": float(info.rss),
        "vms_bytes": float(info.vms),
        "percent": process.memory_percent(),
    }


class ProcessStatsProvider(SystemStatsProvider):
    """CPU and resident memory of this process only.

    Host-wide, database, and cache figures are left unset; deployments that
    have them supply their own provider.

    CPU percent is measured since the previous sample (psutil semantics), so
    the first sample reads 0 and values can exceed 100 on multiple cores.
    """

    def __init__(self, process: psutil.Process | None = None) -> None:
        self._process = process or psutil.Process()

    async def sample(self) -> SystemStats:
        return await asyncio.to_thread(self._read)

    def _read(self) -> SystemStats:
        with self._process.oneshot():
            cpu = self._process.cpu_percent(interval=None)
            rss = self._process.memory_info().rss
        return SystemStats(cpu_percent=cpu, memory_bytes=float(rss))
