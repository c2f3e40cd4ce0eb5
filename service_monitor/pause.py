from __future__ import annotations

import asyncio
from enum import Enum


class PauseTick(Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    REMIND = "remind"


class PauseState:
    """Shared pause flag for the periodic monitor.

    Every read and write goes through one lock that is never held across an
    I/O await.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._paused = False
        self._elapsed = 0.0

    async def is_paused(self) -> bool:
        async with self._lock:
            return self._paused

    async def set_paused(self, paused: bool) -> None:
        async with self._lock:
            self._paused = bool(paused)
            if not self._paused:
                self._elapsed = 0.0

    async def elapsed_while_paused(self) -> float:
        async with self._lock:
            return self._elapsed

    async def tick(self, interval: float, reminder_interval: float) -> PauseTick:
        """Account one monitor cycle.

        While paused, ``interval`` is added to the elapsed counter; once it
        reaches ``reminder_interval`` the counter resets and ``REMIND`` is
        returned so the caller sends one reminder.
        """
        async with self._lock:
            if not self._paused:
                return PauseTick.ACTIVE
            self._elapsed += float(interval)
            if self._elapsed >= float(reminder_interval):
                self._elapsed = 0.0
                return PauseTick.REMIND
            return PauseTick.PAUSED
