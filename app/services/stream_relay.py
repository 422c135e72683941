"""
Streaming relay between the completion service and the HTTP response
"""

import asyncio
from typing import AsyncIterator

import httpx

from app.utils.logging import get_logger

logger = get_logger(__name__)


class CompletionStream:
    """Open upstream completion response, consumed chunk by chunk"""

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._response.aiter_bytes():
            yield chunk

    async def aclose(self):
        await self._response.aclose()


async def relay_stream(upstream) -> AsyncIterator[bytes]:
    """
    Forward upstream chunks unchanged, as they arrive.

    The upstream is closed however the relay ends: exhausted, failed, or
    cancelled because the caller went away.
    """
    chunk_count = 0
    try:
        async for chunk in upstream:
            chunk_count += 1
            yield chunk
        logger.info(f"Completion stream finished after {chunk_count} chunks")
    except asyncio.CancelledError:
        logger.info(f"Client disconnected after {chunk_count} chunks, aborting completion stream")
        raise
    except Exception as e:
        logger.error(f"Completion stream failed after {chunk_count} chunks: {str(e)}")
        raise
    finally:
        await upstream.aclose()
