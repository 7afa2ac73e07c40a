"""Shared fixtures: scripted model client, throwaway database, sample tools."""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio

from turnstream.ai.client import AIClient
from turnstream.ai.tools.base import Tool
from turnstream.ai.trace import AgentTrace, TraceEvent
from turnstream.config import ModelConfig
from turnstream.storage.chat_repo import ChatRepository
from turnstream.storage.chat_store import KeyValueStore
from turnstream.storage.database import Database


def chunked(text: str, size: int = 5) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


def action_blob(action: str, action_input: str) -> str:
    return (
        "Thought: working on it\nAction:\n```json\n"
        + json.dumps({"action": action, "action_input": action_input})
        + "\n```"
    )


class FakeAIClient(AIClient):
    """Replays scripted responses, one per model call, in small chunks."""

    def __init__(self, responses: list[str], chunk_size: int = 5):
        super().__init__(ModelConfig(model="fake-model"))
        self._responses = list(responses)
        self._chunk_size = chunk_size
        self.calls: list[dict[str, Any]] = []

    async def stream(self, system: str, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        self.calls.append({"system": system, "messages": messages})
        if not self._responses:
            raise AssertionError("FakeAIClient ran out of scripted responses")
        text = self._responses.pop(0)
        for piece in chunked(text, self._chunk_size):
            await asyncio.sleep(0)
            yield piece


class EchoTool(Tool):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Repeats its input."

    async def _run(self, tool_input: str) -> str:
        return f"echo: {tool_input}"


class BrokenTool(Tool):
    @property
    def name(self) -> str:
        return "broken"

    @property
    def description(self) -> str:
        return "Always fails like a dropped network connection."

    async def _run(self, tool_input: str) -> str:
        raise ConnectionError("network unreachable")


async def collect(trace: AgentTrace) -> list[TraceEvent]:
    await trace.close()
    return [event async for event in trace]


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def store(db):
    return KeyValueStore(db)


@pytest.fixture
def repo(store):
    return ChatRepository(store)
