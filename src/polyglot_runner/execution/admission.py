from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..errors import AdmissionRejectedError
from ..log import get_logger

QUEUE_FULL = "Execution queue is full; retry later"


class AdmissionController:
    """Bound the number of executions in flight with a counting semaphore.

    `max_queued` limits how many requests may wait for a slot; 0 means the
    waiting room is unbounded.

    Example:
        ```python
        admission = AdmissionController(max_concurrency=4, max_queued=16)
        async with admission.slot():
            ...
        ```
    """

    def __init__(self, max_concurrency: int, max_queued: int = 0) -> None:
        """Validate the limits; the semaphore is created on first use.

        Example:
            ```python
            admission = AdmissionController(2)
            ```
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if max_queued < 0:
            raise ValueError("max_queued must be 0 (unbounded) or positive")
        self._max_concurrency = max_concurrency
        self._max_queued = max_queued
        self._semaphore: asyncio.Semaphore | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._waiting = 0
        self._in_flight = 0
        self._logger = get_logger("admission")

    @property
    def in_flight(self) -> int:
        """Number of executions currently holding a slot.

        Example:
            ```python
            admission.in_flight
            ```
        """
        return self._in_flight

    @property
    def waiting(self) -> int:
        """Number of executions queued for a slot.

        Example:
            ```python
            admission.waiting
            ```
        """
        return self._waiting

    def _semaphore_for_loop(self) -> asyncio.Semaphore:
        """Return the semaphore bound to the running loop, creating it if needed.

        Example:
            ```python
            semaphore = admission._semaphore_for_loop()
            ```
        """
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
            self._loop = loop
            self._waiting = 0
            self._in_flight = 0
        return self._semaphore

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one execution slot for the duration of the block.

        Raises `AdmissionRejectedError` immediately when the waiting room is full.

        Example:
            ```python
            async with admission.slot():
                outcome = await run()
            ```
        """
        semaphore = self._semaphore_for_loop()
        if self._max_queued and semaphore.locked() and self._waiting >= self._max_queued:
            self._logger.warning(
                "Rejecting execution: %s in flight, %s waiting", self._in_flight, self._waiting
            )
            raise AdmissionRejectedError(QUEUE_FULL)
        self._waiting += 1
        try:
            await semaphore.acquire()
        finally:
            self._waiting -= 1
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1
            semaphore.release()
