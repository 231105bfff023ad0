"""
Connectivity probe.
Polls a health URL and reports ONLINE/OFFLINE transitions to a callback
(normally OfflineEventManager.set_online).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

import requests

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    def __init__(
        self,
        url: str,
        on_change: Callable[[bool], Any],
        interval: float = 15.0,
        timeout: float = 3.0,
    ):
        self.url = url
        self.on_change = on_change
        self.interval = interval
        self.timeout = timeout
        self.online: bool | None = None
        self._task: asyncio.Task | None = None

    def _probe(self) -> bool:
        try:
            resp = requests.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"Connectivity probe failed: {e}")
            return False
        return resp.status_code < 500

    async def check(self) -> bool:
        online = await asyncio.to_thread(self._probe)
        if online != self.online:
            logger.info(f"Connectivity: {'online' if online else 'offline'}")
            self.online = online
            result = self.on_change(online)
            if inspect.isawaitable(result):
                await result
        return online

    async def _run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
