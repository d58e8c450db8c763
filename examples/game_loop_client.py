"""
Game loop example using tickfetch.

This example demonstrates how to queue requests from a fixed-rate
update loop and handle the results in callbacks, without the loop ever
blocking on the network.
"""

import json
import logging
import time

from tickfetch import HTTPClient, SocketTransportProvider

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FRAME_TIME = 1 / 30


def on_get(response, error):
    """Handle the GET response."""
    if error:
        logger.error(f"GET failed: {error}")
        return
    logger.info(f"GET {response.status} {response.status_text}: {len(response.body)} bytes")


def on_post(response, error):
    """Handle the POST response."""
    if error:
        logger.error(f"POST failed: {error}")
        return
    if response.ok:
        logger.info(f"Server echoed: {json.loads(response.body).get('json')}")
    else:
        logger.warning(f"POST rejected: {response.status} {response.status_text}")


def on_missing(response, error):
    """A 404 is still a response, not an error."""
    if response is not None:
        logger.info(f"Missing page: ok={response.ok} status={response.status}")


def main():
    """Run the update loop until every request has completed."""
    client = HTTPClient(SocketTransportProvider())

    client.fetch("http://httpbin.org/get", on_get, "Check the server")
    client.fetch(
        "http://httpbin.org/post",
        {
            "method": "POST",
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"username": "crankles", "score": 42}),
        },
        on_post,
        "Submit your high score",
    )
    client.fetch("http://httpbin.org/status/404", on_missing)

    frame = 0
    while client.pending or client.is_loading:
        # Game update and drawing would happen here
        client.tick()
        frame += 1
        time.sleep(FRAME_TIME)

    logger.info(f"All requests finished after {frame} frames")


if __name__ == "__main__":
    main()
