"""
Public client API for tickfetch.

The HTTPClient is what application code holds: ``fetch`` queues a
request, ``tick`` must be called once per iteration of the host loop,
and the completion callback fires from inside some later ``tick``.

    client = HTTPClient(SocketTransportProvider())
    client.fetch("http://example.com", lambda res, err: print(res.body))

    while running:
        client.tick()
"""

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional, Union

from .exceptions import FetchError
from .http_primitives import FetchOptions, RequestDescriptor, Response
from .scheduler import Scheduler
from .transport.provider import TransportProvider

logger = logging.getLogger(__name__)

FetchCallback = Callable[[Optional[Response], Optional[str]], None]


class HTTPClient:
    """
    Cooperative HTTP client.

    Owns a Scheduler and forwards host loop ticks to it and, while a
    request is in flight, to the transport provider.
    """

    DEFAULT_METHOD = "GET"

    def __init__(
        self,
        provider: TransportProvider,
        connect_timeout: Optional[float] = None,
    ):
        """
        Initialize the client.

        Args:
            provider: Transport provider used for every request
            connect_timeout: Override for the per-request connect timeout
        """
        self._provider = provider
        self._scheduler = Scheduler(provider, connect_timeout=connect_timeout)

    def fetch(
        self,
        url: str,
        options: Union[FetchOptions, Mapping[str, Any], FetchCallback, None] = None,
        on_complete: Union[FetchCallback, str, None] = None,
        access_reason: Optional[str] = None,
    ) -> None:
        """
        Queue a request.

        The options argument may be left out: ``fetch(url, callback)`` and
        ``fetch(url, callback, reason)`` are accepted. Nothing is sent
        until the next ``tick()``, and nothing is raised here; a malformed
        URL or unusable options are reported to the callback like any
        other failure.

        Args:
            url: Full URL including the scheme
            options: ``method``, ``headers`` and ``body``, all optional
            on_complete: Called with ``(response, error_message)``
            access_reason: Text for the provider's permission prompt
        """
        if callable(options):
            options, on_complete, access_reason = {}, options, on_complete

        options = options or {}
        callback = on_complete

        def complete(response: Optional[Response], error: Optional[FetchError]) -> None:
            if callback is not None:
                callback(response, str(error) if error is not None else None)

        self._enqueue(url, options, complete, access_reason)

    async def afetch(
        self,
        url: str,
        options: Optional[FetchOptions] = None,
        access_reason: Optional[str] = None,
    ) -> Response:
        """
        Queue a request and wait for its response.

        The host loop must keep calling ``tick()`` for the request to make
        progress.

        Returns:
            The response, whatever its status

        Raises:
            FetchError: The request failed; the subclass names the cause.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def complete(response: Optional[Response], error: Optional[FetchError]) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(response)

        self._enqueue(url, options or {}, complete, access_reason)
        return await future

    def _enqueue(
        self,
        url: str,
        options: Mapping[str, Any],
        on_complete: Callable[[Optional[Response], Optional[FetchError]], None],
        access_reason: Optional[str],
    ) -> None:
        try:
            if not isinstance(options, Mapping):
                raise TypeError(f"options must be a mapping, not {type(options).__name__}")
            descriptor = RequestDescriptor.from_url(
                url,
                method=options.get("method") or self.DEFAULT_METHOD,
                headers=options.get("headers"),
                body=options.get("body"),
                access_reason=access_reason,
                on_complete=on_complete,
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Queued invalid request for {url!r}: {e}")
            descriptor = RequestDescriptor.rejected(
                url,
                str(e),
                access_reason=access_reason,
                on_complete=on_complete,
            )

        if descriptor.malformed:
            logger.warning(f"Queued request with malformed URL {descriptor.url!r}")
        self._scheduler.enqueue(descriptor)

    def tick(self) -> None:
        """Advance the client by one step of the host loop."""
        self._scheduler.tick()
        if self._scheduler.in_flight:
            self._provider.poll()

    @property
    def is_loading(self) -> bool:
        """Check if a request is currently in flight."""
        return self._scheduler.in_flight

    @property
    def pending(self) -> int:
        """Number of queued requests not yet started."""
        return self._scheduler.pending

    @property
    def scheduler(self) -> Scheduler:
        """The underlying scheduler."""
        return self._scheduler
