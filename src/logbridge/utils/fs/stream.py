"""Readable stream shared by the local and SFTP providers."""

import asyncio
import codecs
import logging
import threading
from collections.abc import AsyncIterator
from collections.abc import Callable
from typing import IO


logger = logging.getLogger(__name__)

ChunkSource = Callable[[], AsyncIterator[bytes]]

_EOF = object()


class ReadStream:
    """Async iterator over the chunks of one file.

    Nothing is opened until the first read, so a file that cannot be opened
    shows up as an exception raised from ``async for`` (or ``read_all``)
    rather than from ``open_read_stream`` itself. With an ``encoding`` the
    chunks are decoded incrementally and yielded as ``str``.
    """

    def __init__(self, source: ChunkSource, encoding: str | None = None, path: str = ""):
        self.path = path
        self.encoding = encoding
        self._source = source
        self._chunks: AsyncIterator[bytes] | None = None
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace") if encoding else None
        self._closed = False
        self._exhausted = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "ReadStream":
        return self

    async def __anext__(self) -> bytes | str:
        if self._closed or self._exhausted:
            raise StopAsyncIteration

        if self._chunks is None:
            self._chunks = self._source()

        while True:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                if self._decoder:
                    tail = self._decoder.decode(b"", final=True)
                    if tail:
                        return tail
                raise
            except Exception as e:
                logger.debug(f"Read stream for {self.path} failed: {e}")
                await self.aclose()
                raise

            if self._decoder is None:
                return chunk

            text = self._decoder.decode(chunk)
            if text:
                return text

    async def read_all(self) -> bytes | str:
        """Read the remaining stream into memory."""
        parts = [chunk async for chunk in self]
        if self.encoding:
            return "".join(parts)
        return b"".join(parts)

    async def lines(self) -> AsyncIterator[str]:
        """Yield decoded lines without their line terminators."""
        if not self.encoding:
            raise ValueError("lines() requires a stream opened with an encoding")

        pending = ""
        async for chunk in self:
            pending += chunk
            *complete, pending = pending.split("\n")
            for line in complete:
                yield line.rstrip("\r")

        if pending:
            yield pending.rstrip("\r")

    async def aclose(self) -> None:
        """Stop reading and release the underlying file handle."""
        if self._closed:
            return

        self._closed = True
        if self._chunks is not None:
            aclose = getattr(self._chunks, "aclose", None)
            if aclose is not None:
                await aclose()

    async def __aenter__(self) -> "ReadStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


async def pump_blocking_reader(
    opener: Callable[[], IO[bytes]],
    start: int = 0,
    chunk_size: int = 32768,
    max_pending: int = 8,
) -> AsyncIterator[bytes]:
    """Bridge a blocking file object into an async chunk iterator.

    A worker thread opens the file, seeks to ``start`` and pushes chunks into a
    bounded queue as they arrive; the caller pulls from the queue. Errors from
    the worker are re-raised to the caller in order, after any chunks that
    were delivered before the failure.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
    stop = threading.Event()

    def _put(item) -> None:
        asyncio.run_coroutine_threadsafe(queue.put(item), loop).result()

    def _pump() -> None:
        try:
            with opener() as handle:
                if start > 0:
                    handle.seek(start)
                while not stop.is_set():
                    data = handle.read(chunk_size)
                    if not data:
                        break
                    _put(data)
        except Exception as e:
            _put(e)
        finally:
            _put(_EOF)

    worker = loop.run_in_executor(None, _pump)
    try:
        while True:
            item = await queue.get()
            if item is _EOF:
                break
            if isinstance(item, BaseException):
                raise item
            yield item
    finally:
        stop.set()
        # Free queue space so a blocked producer can observe ``stop``
        while not worker.done():
            while not queue.empty():
                queue.get_nowait()
            await asyncio.wait({worker}, timeout=0.05)
