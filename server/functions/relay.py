# --- Streaming Relay ---
import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional, Protocol

from functions.validator import validate_html_output
from models.convert_models import (
    ChunkEvent, DoneEvent, ErrorEvent, StreamEvent, ValidationEvent, ValidationResult
)

logger = logging.getLogger(__name__)


class SinkClosed(Exception):
    """Raised by a sink that no longer accepts events (client went away)."""


class EventSink(Protocol):
    async def send(self, event: StreamEvent) -> None: ...

    async def close(self) -> None: ...


class RelayState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


_CLOSED = object()


class QueueEventSink:
    """
    Bounded queue between the relay task and the HTTP response body.
    A full queue makes send() wait, so a slow client slows the relay down.
    """

    def __init__(self, maxsize: int = 64):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    async def send(self, event: StreamEvent) -> None:
        if self.closed:
            raise SinkClosed("sink is closed")
        await self._queue.put(event)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # never block here: a full queue means the reader is not waiting
        # and will see the closed flag once it has drained
        if not self._queue.full():
            self._queue.put_nowait(_CLOSED)

    async def events(self) -> AsyncIterator[StreamEvent]:
        while True:
            if self.closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class StreamingRelay:
    """
    Forwards completion fragments to a sink one by one, in arrival order,
    then validates the accumulated text. One relay per request.
    """

    def __init__(self, validator: Callable[[str], ValidationResult] = validate_html_output):
        self._validator = validator
        self._parts: List[str] = []
        self.state = RelayState.IDLE
        self.result: Optional[ValidationResult] = None

    @property
    def output(self) -> str:
        return "".join(self._parts)

    async def run(self, stream: AsyncIterator[str], sink: EventSink) -> str:
        if self.state is not RelayState.IDLE:
            raise RuntimeError("relay already used")
        self.state = RelayState.STREAMING
        try:
            try:
                async for fragment in stream:
                    self._parts.append(fragment)
                    await sink.send(ChunkEvent(content=fragment))
            except SinkClosed:
                self.state = RelayState.FAILED
                logger.info("Client stopped receiving after %d chunks", len(self._parts))
                await _close_stream(stream)
                return self.output
            except asyncio.CancelledError:
                self.state = RelayState.FAILED
                logger.info("Relay cancelled after %d chunks", len(self._parts))
                await _close_stream(stream)
                raise
            except Exception as e:
                self.state = RelayState.FAILED
                logger.error("Conversion stream failed after %d chunks: %s", len(self._parts), e)
                await sink.send(ErrorEvent(message=str(e) or e.__class__.__name__))
                return self.output

            self.state = RelayState.COMPLETED
            self.result = self._validator(self.output)
            logger.info(
                "Conversion completed: %d chunks, valid=%s", len(self._parts), self.result.valid
            )
            await sink.send(ValidationEvent.from_result(self.result))
            await sink.send(DoneEvent())
            return self.output
        finally:
            await sink.close()


async def _close_stream(stream) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.warning("Upstream stream did not close cleanly: %s", e)
