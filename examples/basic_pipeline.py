"""
Basic HTTP/1.1 pipelining example using http_pipeline.

This example sends a handful of requests over one connection without
waiting for each response, printing responses as they arrive.
"""

import asyncio
import logging
import sys

from http_pipeline import HTTP11Connection, PipelineError, Request
from http_pipeline.network import AsyncioNetworkBackend

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def print_response(response):
    """Print a response as soon as it has been read."""
    print(response.status_code)
    print(repr(response.content[:60]))
    print()


async def two_get(host: str, port: int = 80):
    """Pipeline two GET requests to ``host``."""
    backend = AsyncioNetworkBackend()
    stream = await backend.connect_tcp(host, port)
    connection = HTTP11Connection(stream)

    try:
        requests = [
            Request.create("GET", f"http://{host}:{port}/"),
            Request.create("GET", f"http://{host}:{port}/"),
        ]

        responses = await connection.pipeline(requests, on_response=print_response)
        logger.info(f"Received {len(responses)} responses")
        logger.info(f"Pipelining: {connection.pipelining.value}")

    except PipelineError as e:
        # The server could not be pipelined to; the error says how far we got.
        logger.error(f"{e.message}: {len(e.responses)} received, {len(e.requests)} not sent")

    finally:
        await connection.close()


async def mixed_methods(host: str, port: int = 80):
    """Pipeline GETs around a POST; the POST is sent in a batch of its own."""
    backend = AsyncioNetworkBackend()
    stream = await backend.connect_tcp(host, port)
    connection = HTTP11Connection(stream, pipelining=True)

    try:
        base = f"http://{host}:{port}"
        requests = [
            Request.create("GET", f"{base}/get"),
            Request.create("GET", f"{base}/headers"),
            Request.create(
                "POST",
                f"{base}/post",
                headers=[(b"Content-Type", b"application/json")],
                content=b'{"message": "Hello, World!"}',
            ),
            Request.create("GET", f"{base}/get"),
        ]

        responses = await connection.pipeline(requests)
        for request, response in zip(requests, responses):
            logger.info(f"{request.method.decode()} {request.path.decode()} -> {response.status_code}")

        logger.info(f"Metrics: {connection.metrics}")

    finally:
        await connection.close()


async def main():
    """Run all examples."""
    host = sys.argv[1] if len(sys.argv) > 1 else "localhost"

    await two_get(host)
    await mixed_methods(host)


if __name__ == "__main__":
    asyncio.run(main())
