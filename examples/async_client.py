"""
Awaitable requests with tickfetch.

This example drives the client from an asyncio task while coroutines
await their responses with ``afetch``.
"""

import asyncio
import logging

from tickfetch import FetchError, HTTPClient, SocketTransportProvider

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def drive(client: HTTPClient, interval: float = 1 / 60) -> None:
    """Tick the client forever, as a host loop would."""
    while True:
        client.tick()
        await asyncio.sleep(interval)


async def main():
    """Fetch a few pages in order and report each result."""
    client = HTTPClient(SocketTransportProvider())
    driver = asyncio.create_task(drive(client))

    try:
        for url in (
            "https://httpbin.org/get",
            "https://httpbin.org/status/503",
            "not-a-url",
        ):
            try:
                response = await client.afetch(url)
            except FetchError as e:
                logger.error(f"{url}: {e.__class__.__name__}: {e}")
                continue
            logger.info(f"{url}: {response.status} {response.status_text}")
    finally:
        driver.cancel()
        try:
            await driver
        except asyncio.CancelledError:
            pass


if __name__ == "__main__":
    asyncio.run(main())
