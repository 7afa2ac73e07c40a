"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def chat_key(chat_id: str) -> str:
    return f"chat:{chat_id}"


def user_chat_index_key(user_id: str) -> str:
    return f"user:chat:{user_id}"


@dataclass(frozen=True)
class ChatRecord:
    id: str
    title: str
    user_id: str
    created_at: int  # epoch milliseconds
    messages: list[dict[str, str]] = field(default_factory=list)

    @property
    def path(self) -> str:
        return f"/chat/{self.id}"

    def to_fields(self) -> dict[str, Any]:
        """Hash fields as stored at ``chat:{id}``."""
        return {
            "id": self.id,
            "title": self.title,
            "userId": self.user_id,
            "createdAt": self.created_at,
            "path": self.path,
            "messages": self.messages,
        }

    @classmethod
    def from_fields(cls, data: dict[str, Any]) -> ChatRecord:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            user_id=data["userId"],
            created_at=int(data["createdAt"]),
            messages=list(data.get("messages", [])),
        )
