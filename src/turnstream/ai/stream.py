"""Turn the live agent trace into an ordered byte stream for HTTP responses."""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Literal, Sequence

from turnstream.ai.agent import AgentExecutor
from turnstream.ai.messages import InternalMessage
from turnstream.ai.trace import AgentTrace, EventKind, PatchOp
from turnstream.log import get_logger

logger = get_logger(__name__)

StreamMode = Literal["answer", "raw"]

_STREAMED_KIND: dict[str, EventKind] = {
    "answer": EventKind.FINAL_ANSWER,
    "raw": EventKind.MODEL_OUTPUT,
}


async def stream_bytes(trace: AgentTrace, mode: StreamMode = "answer") -> AsyncIterator[bytes]:
    """Forward text additions of the streamed kind, in arrival order, as UTF-8 chunks.

    ``answer`` streams only the decoded final answer. ``raw`` streams every
    model token, tool-call JSON included. Tool output and bookkeeping events
    are never forwarded.
    """
    kind = _STREAMED_KIND[mode]
    async for event in trace:
        if event.kind is not kind or event.op is not PatchOp.ADD:
            continue
        if isinstance(event.value, str) and event.value:
            yield event.value.encode("utf-8", errors="replace")


async def run_turn_stream(
    executor: AgentExecutor,
    input_text: str,
    chat_history: Sequence[InternalMessage],
    mode: StreamMode = "answer",
    queue_size: int = 256,
    error_sentinel: str | None = None,
) -> AsyncIterator[bytes]:
    """Run the loop as a producer task and yield its output while it runs.

    If the consumer stops early (client disconnect), the producer is
    cancelled. A failed loop re-raises its error after whatever was already
    sent, so the transport aborts the response instead of completing it.
    When output was already sent, *error_sentinel* (if configured) is yielded
    before the error.
    """
    trace = AgentTrace(maxsize=queue_size)
    failures: list[Exception] = []

    async def _produce() -> None:
        try:
            await executor.run(input_text, chat_history, trace)
        except asyncio.CancelledError:
            trace.close_nowait()
            raise
        except Exception as e:
            failures.append(e)
        finally:
            await trace.close()

    task = asyncio.create_task(_produce())
    sent = False
    try:
        async for chunk in stream_bytes(trace, mode):
            sent = True
            yield chunk
        await task
        if failures:
            error = failures[0]
            logger.warning(
                "turn_stream_failed",
                error=str(error),
                error_type=type(error).__name__,
                output_sent=sent,
            )
            if sent and error_sentinel:
                yield error_sentinel.encode("utf-8")
            raise error
    finally:
        if not task.done():
            logger.info("turn_stream_cancelled")
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
