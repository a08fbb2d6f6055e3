"""Event stream multiplexer for one chat turn.

Every producer of a turn (the model loop, document drafts, suggestions)
writes typed records to one DataStream; the HTTP layer drains it as
server-sent events. Writes never block, so producers and persistence do not
wait on the client.
"""
from typing import Any, AsyncIterator, Awaitable, Callable, Optional
import asyncio
import json
import logging

logger = logging.getLogger(__name__)

_CLOSED = object()


class DataStream:
    """Ordered, fire-and-forget channel of `{"type", "content"}` records."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write_data(self, type: str, content: Any = "") -> None:
        """Queue one record; records written after close are dropped."""
        if self._closed:
            logger.debug(f"Dropping '{type}' record written after stream close")
            return
        self._queue.put_nowait({"type": type, "content": content})

    def write_message_annotation(self, annotation: dict[str, Any]) -> None:
        """Out-of-band annotation about a persisted message."""
        self.write_data("annotation", annotation)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def records(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            record = await self._queue.get()
            if record is _CLOSED:
                return
            yield record


def encode_event(record: dict[str, Any]) -> str:
    """Serialize one record as a server-sent event."""
    return f"data: {json.dumps(record, default=str)}\n\n"


async def run_data_stream(
    execute: Callable[[DataStream], Awaitable[None]],
    timeout: Optional[float] = None,
) -> AsyncIterator[str]:
    """
    Run `execute` against a fresh DataStream and yield its encoded events.

    `execute` runs as its own task so producers never wait for the reader.
    If the reader goes away (client disconnect) the task is cancelled. A
    timeout or unexpected failure is logged and reported with an `error`
    record followed by a terminal `finish` record.
    """
    stream = DataStream()

    async def _runner() -> None:
        try:
            if timeout:
                await asyncio.wait_for(execute(stream), timeout=timeout)
            else:
                await execute(stream)
        except asyncio.TimeoutError:
            logger.error(f"Turn exceeded {timeout}s and was stopped")
            stream.write_data("error", "Turn timed out")
            stream.write_data("finish", "")
        except Exception as e:
            logger.exception(f"Unexpected error while streaming turn: {str(e)}")
            stream.write_data("error", "An error occurred while processing your request")
            stream.write_data("finish", "")
        finally:
            stream.close()

    task = asyncio.create_task(_runner())
    try:
        async for record in stream.records():
            yield encode_event(record)
    finally:
        if not task.done():
            logger.info("Client disconnected, cancelling turn")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
