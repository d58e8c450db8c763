"""
Cooperative request scheduler.

This module provides the Scheduler that owns the request queue and the
in-flight flag, and starts at most one transport session at a time
from its ``tick()`` step.
"""

import logging
from collections import deque
from typing import Deque, Optional

from .exceptions import FetchError
from .http_primitives import RequestDescriptor, Response
from .session import TransportSession
from .transport.provider import TransportProvider

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Single-flight FIFO scheduler.

    Requests complete in the order they were enqueued because a new one
    is only dequeued after the previous one's terminal callback. Nothing
    here times out: a request that never completes blocks the queue.
    """

    def __init__(
        self,
        provider: TransportProvider,
        connect_timeout: Optional[float] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            provider: Transport provider handed to each session
            connect_timeout: Connect timeout for each session
        """
        self._provider = provider
        self._connect_timeout = connect_timeout
        self._queue: Deque[RequestDescriptor] = deque()
        self._in_flight = False
        self._current: Optional[TransportSession] = None

        # Metrics
        self._total_started = 0
        self._total_completed = 0
        self._total_failed = 0

    def enqueue(self, descriptor: RequestDescriptor) -> None:
        """Append a request to the tail of the queue."""
        self._queue.append(descriptor)
        logger.debug(f"Queued {descriptor.method} {descriptor.url} ({len(self._queue)} pending)")

    def tick(self) -> None:
        """
        Run one cooperative scheduling step.

        Does nothing if the queue is empty or a request is in flight.
        Otherwise dequeues the head request and starts it; its callback
        may fire before this returns.
        """
        if not self._queue or self._in_flight:
            return

        descriptor = self._queue.popleft()
        self._in_flight = True
        self._total_started += 1
        logger.debug(f"Starting {descriptor.method} {descriptor.url} ({len(self._queue)} still queued)")

        session = TransportSession(descriptor, self._provider, self._connect_timeout)
        self._current = session

        def on_terminal(response: Optional[Response], error: Optional[FetchError]) -> None:
            self._in_flight = False
            self._current = None
            if error is not None:
                self._total_failed += 1
            else:
                self._total_completed += 1
            descriptor.on_complete(response, error)

        session.run(on_terminal)

    @property
    def in_flight(self) -> bool:
        """Check if a request is currently being driven."""
        return self._in_flight

    @property
    def pending(self) -> int:
        """Number of requests waiting to start."""
        return len(self._queue)

    @property
    def current(self) -> Optional[TransportSession]:
        """The session in flight, if any."""
        return self._current

    @property
    def provider(self) -> TransportProvider:
        """The transport provider sessions are opened on."""
        return self._provider

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def metrics(self) -> dict:
        """
        Get scheduler metrics.

        Returns:
            Dictionary with request counters
        """
        return {
            "pending": len(self._queue),
            "in_flight": self._in_flight,
            "total_started": self._total_started,
            "total_completed": self._total_completed,
            "total_failed": self._total_failed,
        }
