"""Live, ordered trace of reasoning-loop activity.

The loop appends events; one consumer reads them in emission order through a
bounded queue. Closing the trace pushes a terminal marker so the consumer's
``async for`` ends exactly once.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, AsyncIterator


class EventKind(StrEnum):
    MODEL_OUTPUT = "model_output"
    FINAL_ANSWER = "final_answer"
    TOOL_OUTPUT = "tool_output"
    BOOKKEEPING = "bookkeeping"


class PatchOp(StrEnum):
    ADD = "add"
    REPLACE = "replace"


@dataclass(frozen=True)
class TraceEvent:
    kind: EventKind
    path: str
    value: Any
    op: PatchOp = PatchOp.ADD
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_CLOSED = object()


class AgentTrace:
    """Append-only event channel between the reasoning loop and its consumer."""

    def __init__(self, maxsize: int = 256):
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._consumed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: TraceEvent) -> None:
        if self._closed:
            raise RuntimeError("Cannot emit to a closed trace")
        await self._queue.put(event)

    async def model_output(self, text: str, model: str = "model") -> None:
        await self.emit(TraceEvent(EventKind.MODEL_OUTPUT, f"/logs/{model}/streamed_output_str/-", text))

    async def final_answer(self, text: str) -> None:
        await self.emit(TraceEvent(EventKind.FINAL_ANSWER, "/final_output/streamed_output_str/-", text))

    async def tool_output(self, tool: str, observation: str) -> None:
        await self.emit(TraceEvent(EventKind.TOOL_OUTPUT, f"/logs/{tool}/final_output", observation))

    async def bookkeeping(self, path: str, value: Any, op: PatchOp = PatchOp.REPLACE) -> None:
        await self.emit(TraceEvent(EventKind.BOOKKEEPING, path, value, op))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    def close_nowait(self) -> None:
        """Close without waiting for queue space. Used when the producer is torn down."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    async def __aiter__(self) -> AsyncIterator[TraceEvent]:
        if self._consumed:
            raise RuntimeError("AgentTrace can only be consumed once")
        self._consumed = True
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
