"""Hash and sorted-set primitives over SQLite.

Values are JSON-encoded per field, so a hash round-trips ints, strings and
lists. Both write operations are upserts: ``hset`` overwrites the given fields
and ``zadd`` updates the score of an existing member instead of duplicating it.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from turnstream.storage.database import Database


class KeyValueStore:
    def __init__(self, db: Database):
        self._db = db

    async def hset(self, key: str, mapping: Mapping[str, Any]) -> int:
        """Set fields of the hash at *key*. Returns the number of fields written."""
        rows = [(key, name, json.dumps(value, ensure_ascii=False)) for name, value in mapping.items()]
        await self._db.conn.executemany(
            """INSERT INTO kv_hash (key, field, value) VALUES (?, ?, ?)
               ON CONFLICT(key, field) DO UPDATE SET
                   value = excluded.value,
                   updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
            rows,
        )
        await self._db.conn.commit()
        return len(rows)

    async def hgetall(self, key: str) -> dict[str, Any]:
        cursor = await self._db.conn.execute(
            "SELECT field, value FROM kv_hash WHERE key = ?", (key,)
        )
        rows = await cursor.fetchall()
        return {row["field"]: json.loads(row["value"]) for row in rows}

    async def zadd(self, key: str, member: str, score: float) -> None:
        await self._db.conn.execute(
            """INSERT INTO kv_zset (key, member, score) VALUES (?, ?, ?)
               ON CONFLICT(key, member) DO UPDATE SET score = excluded.score""",
            (key, member, score),
        )
        await self._db.conn.commit()

    async def zscore(self, key: str, member: str) -> float | None:
        cursor = await self._db.conn.execute(
            "SELECT score FROM kv_zset WHERE key = ? AND member = ?", (key, member)
        )
        row = await cursor.fetchone()
        return row["score"] if row else None

    async def zrevrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        """Members ordered by score, highest first; *stop* is inclusive, -1 means all."""
        limit = -1 if stop < 0 else stop - start + 1
        cursor = await self._db.conn.execute(
            """SELECT member FROM kv_zset WHERE key = ?
               ORDER BY score DESC, member DESC
               LIMIT ? OFFSET ?""",
            (key, limit, start),
        )
        rows = await cursor.fetchall()
        return [row["member"] for row in rows]

    async def zcard(self, key: str) -> int:
        cursor = await self._db.conn.execute(
            "SELECT COUNT(*) AS n FROM kv_zset WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        return row["n"]
