"""Persist the conversation once the reasoning loop produces a final answer."""

from __future__ import annotations

import asyncio
import secrets
import string
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

from turnstream.ai.output_parser import AgentFinish
from turnstream.errors import PersistenceError
from turnstream.log import get_logger
from turnstream.storage.chat_repo import ChatRepository
from turnstream.storage.models import ChatRecord

logger = get_logger(__name__)

TITLE_LENGTH = 100
CHAT_ID_LENGTH = 7
_ID_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_chat_id(size: int = CHAT_ID_LENGTH) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(size))


def derive_title(messages: Sequence[Mapping[str, str]]) -> str:
    """First TITLE_LENGTH characters (code points) of the first message."""
    if not messages:
        return ""
    return messages[0]["content"][:TITLE_LENGTH]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CompletionContext:
    """Everything the recorder needs, fixed when the request is set up."""

    original_messages: tuple[Mapping[str, str], ...]
    user_id: str
    conversation_id: str | None = None


class CompletionRecorder:
    """Completion listener that writes the chat snapshot, then upserts the user index.

    The record write is idempotent by id, so only the index upsert is retried.
    A failed record write raises PersistenceError; the already-streamed
    answer is unaffected but the turn is not durable.
    """

    def __init__(
        self,
        repo: ChatRepository,
        context: CompletionContext,
        index_retries: int = 3,
        retry_backoff: float = 0.2,
        clock: Callable[[], int] = _now_ms,
    ):
        self._repo = repo
        self._context = context
        self._index_retries = max(1, index_retries)
        self._retry_backoff = retry_backoff
        self._clock = clock
        self.chat_id = context.conversation_id or generate_chat_id()

    def build_record(self, answer: str) -> ChatRecord:
        messages = [
            {"role": m["role"], "content": m["content"]}
            for m in self._context.original_messages
        ]
        messages.append({"role": "assistant", "content": answer})
        return ChatRecord(
            id=self.chat_id,
            title=derive_title(self._context.original_messages),
            user_id=self._context.user_id,
            created_at=self._clock(),
            messages=messages,
        )

    async def __call__(self, finish: AgentFinish) -> ChatRecord:
        record = self.build_record(finish.output)

        try:
            await self._repo.save_chat(record)
        except Exception as e:
            logger.error("chat_record_write_failed", chat_id=record.id, error=str(e))
            raise PersistenceError(f"Failed to write chat {record.id}: {e}") from e

        await self._index_with_retry(record)
        logger.info("chat_recorded", chat_id=record.id, message_count=len(record.messages))
        return record

    async def _index_with_retry(self, record: ChatRecord) -> None:
        for attempt in range(1, self._index_retries + 1):
            try:
                await self._repo.index_chat(record)
                return
            except Exception as e:
                logger.warning(
                    "chat_index_write_failed",
                    chat_id=record.id,
                    user_id=record.user_id,
                    attempt=attempt,
                    error=str(e),
                )
                if attempt == self._index_retries:
                    raise PersistenceError(
                        f"Failed to index chat {record.id} for user {record.user_id}: {e}"
                    ) from e
                await asyncio.sleep(self._retry_backoff * 2 ** (attempt - 1))
