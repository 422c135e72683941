"""
Unit tests for the completion stream relay.
"""

import asyncio
import unittest

from app.services.stream_relay import relay_stream


class FakeUpstream:
    """Async chunk source that remembers whether it was closed"""

    def __init__(self, chunks, fail_after=None, delay=0):
        self.chunks = chunks
        self.fail_after = fail_after
        self.delay = delay
        self.closed = False
        self.sent = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            if self.fail_after is not None and self.sent >= self.fail_after:
                raise ConnectionError("upstream reset")
            if self.delay:
                await asyncio.sleep(self.delay)
            self.sent += 1
            yield chunk

    async def aclose(self):
        self.closed = True


class TestRelayStream(unittest.IsolatedAsyncioTestCase):
    """Test cases for relay_stream."""

    async def test_forwards_chunks_in_order(self):
        upstream = FakeUpstream([b"data: a\n\n", b"data: b\n\n", b"data: [DONE]\n\n"])

        received = [chunk async for chunk in relay_stream(upstream)]

        self.assertEqual(received, [b"data: a\n\n", b"data: b\n\n", b"data: [DONE]\n\n"])
        self.assertTrue(upstream.closed)

    async def test_chunks_are_not_buffered(self):
        """The first chunk is available before the upstream is exhausted."""
        upstream = FakeUpstream([b"first", b"second", b"third"])
        relay = relay_stream(upstream)

        first = await relay.__anext__()

        self.assertEqual(first, b"first")
        self.assertEqual(upstream.sent, 1)
        await relay.aclose()
        self.assertTrue(upstream.closed)

    async def test_upstream_error_propagates(self):
        upstream = FakeUpstream([b"a", b"b", b"c"], fail_after=1)
        received = []

        with self.assertRaises(ConnectionError):
            async for chunk in relay_stream(upstream):
                received.append(chunk)

        self.assertEqual(received, [b"a"])
        self.assertTrue(upstream.closed)

    async def test_cancellation_closes_upstream(self):
        """A disconnecting caller aborts the in-flight completion."""
        upstream = FakeUpstream([b"a", b"b", b"c"], delay=0.05)

        async def consume():
            async for _ in relay_stream(upstream):
                pass

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        task.cancel()

        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertTrue(upstream.closed)


if __name__ == '__main__':
    unittest.main()
