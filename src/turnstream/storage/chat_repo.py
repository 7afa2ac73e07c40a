"""Chat record persistence and the per-user recency index."""

from __future__ import annotations

from typing import Optional

from turnstream.log import get_logger
from turnstream.storage.chat_store import KeyValueStore
from turnstream.storage.models import ChatRecord, chat_key, user_chat_index_key

logger = get_logger(__name__)


class ChatRepository:
    """Chat snapshots keyed by id, indexed per user by creation time."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def save_chat(self, record: ChatRecord) -> None:
        """Write the full snapshot; an existing snapshot with the same id is overwritten."""
        await self._store.hset(chat_key(record.id), record.to_fields())

    async def index_chat(self, record: ChatRecord) -> None:
        await self._store.zadd(
            user_chat_index_key(record.user_id), chat_key(record.id), record.created_at
        )

    async def get_chat(self, chat_id: str) -> Optional[ChatRecord]:
        data = await self._store.hgetall(chat_key(chat_id))
        if not data:
            return None
        return ChatRecord.from_fields(data)

    async def list_user_chats(self, user_id: str, limit: int = 50) -> list[ChatRecord]:
        """The user's chats, most recent first."""
        members = await self._store.zrevrange(user_chat_index_key(user_id), 0, limit - 1)
        records: list[ChatRecord] = []
        for member in members:
            data = await self._store.hgetall(member)
            if not data:
                logger.warning("dangling_chat_index_entry", user_id=user_id, member=member)
                continue
            record = ChatRecord.from_fields(data)
            if record.user_id != user_id:
                # the id was reused by another user; last write owns the record
                logger.warning("foreign_chat_index_entry", user_id=user_id, member=member)
                continue
            records.append(record)
        return records
