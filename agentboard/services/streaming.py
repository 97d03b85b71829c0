#  AgentBoard - Streaming Transport
#
#  Frames progress events as server-sent events, pumps an executor run into
#  an HTTP response body, and turns a client disconnect into run
#  cancellation. Also decodes the framing for Python consumers.
#
#  Depends on: models/schemas.py, services/run_handle.py
#  Used by:    routes/execute.py, tests

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import aclosing

from agentboard.models.schemas import ProgressEvent
from agentboard.services.run_handle import RunHandle

logger = logging.getLogger("agentboard.streaming")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_END = object()

# Runs whose client went away keep going until they observe cancellation
_detached_runs: set[asyncio.Task] = set()


def format_sse(event: ProgressEvent) -> str:
    return f"data: {event.to_json()}\n\n"


def parse_sse_stream(chunks: Iterable[str]):
    """Yield decoded event dicts from SSE text chunks.

    Frames are split on blank lines; anything that is not a ``data:`` line
    with a JSON object is skipped.
    """
    buffer = ""
    for chunk in chunks:
        buffer += chunk
        frames = buffer.split("\n\n")
        buffer = frames.pop()
        for frame in frames:
            event = _decode_frame(frame)
            if event is not None:
                yield event
    if buffer.strip():
        event = _decode_frame(buffer)
        if event is not None:
            yield event


def parse_sse(text: str) -> list[dict]:
    return list(parse_sse_stream([text]))


def _decode_frame(frame: str) -> dict | None:
    if not frame.startswith("data: "):
        return None
    try:
        payload = json.loads(frame[len("data: "):])
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


async def _watch_disconnect(is_disconnected: Callable[[], Awaitable[bool]], handle: RunHandle, interval: float):
    while not handle.cancelled:
        if await is_disconnected():
            logger.info("Client disconnected from run %s", handle.run_id)
            handle.cancel()
            return
        await asyncio.sleep(interval)


async def stream_run(
    events: AsyncIterator[ProgressEvent],
    handle: RunHandle,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    poll_interval: float = 1.0,
) -> AsyncIterator[str]:
    """Response body for one run.

    The run is driven by its own task so a vanished client cannot freeze it
    mid-step; the body generator only relays. Closing or cancelling the body
    before the run ends cancels the run through ``handle``.
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def pump():
        try:
            async with aclosing(events) as run_events:
                async for event in run_events:
                    queue.put_nowait(event)
        finally:
            queue.put_nowait(_END)

    producer = asyncio.create_task(pump())
    _detached_runs.add(producer)
    producer.add_done_callback(_detached_runs.discard)

    watcher = None
    if is_disconnected is not None:
        watcher = asyncio.create_task(_watch_disconnect(is_disconnected, handle, poll_interval))

    ended = False
    try:
        while True:
            item = await queue.get()
            if item is _END:
                ended = True
                break
            yield format_sse(item)
        await asyncio.wait({producer})
        if not producer.cancelled() and producer.exception() is not None:
            logger.error("Run %s ended abnormally: %s", handle.run_id, producer.exception())
    finally:
        if watcher is not None:
            watcher.cancel()
        if not ended:
            handle.cancel()
