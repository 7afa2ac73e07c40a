"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Mapping, Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from turnstream.ai.agent import AgentExecutor
from turnstream.ai.client import AIClient, create_ai_client
from turnstream.ai.prompt import PromptTemplate
from turnstream.ai.recorder import CompletionContext, CompletionRecorder
from turnstream.ai.tools.registry import build_roster
from turnstream.config import AppConfig
from turnstream.log import get_logger
from turnstream.storage.chat_repo import ChatRepository
from turnstream.storage.chat_store import KeyValueStore
from turnstream.storage.database import Database

logger = get_logger(__name__)


class TurnstreamApp:
    """Process-wide components: database, store, model client.

    Everything request-scoped (roster, executor, recorder, trace) is built
    fresh by ``build_turn``.
    """

    def __init__(self, config: AppConfig, ai_client: AIClient | None = None):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.store = KeyValueStore(self.db)
        self.chat_repo = ChatRepository(self.store)
        self._ai_client = ai_client
        self.prompt = PromptTemplate(config.agent.system_template, config.agent.human_template)

    @property
    def ai_client(self) -> AIClient:
        if self._ai_client is None:
            raise RuntimeError("Application not started. Call start() first.")
        return self._ai_client

    async def start(self) -> None:
        """Initialize and start all components."""
        await self.db.initialize()
        if self._ai_client is None:
            self._ai_client = create_ai_client(self.config.model)
        logger.info(
            "turnstream_started",
            backend=self.config.model.backend,
            model=self.ai_client.model_name,
            tools=self.config.agent.tools,
        )

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        if self._ai_client is not None:
            try:
                await self._ai_client.close()
            except Exception as e:
                logger.error("ai_client_close_error", error=str(e))
        await self.db.close()
        logger.info("turnstream_stopped")

    def build_turn(
        self,
        messages: Sequence[Mapping[str, Any]],
        user_id: str,
        conversation_id: str | None = None,
    ) -> tuple[AgentExecutor, CompletionRecorder]:
        """Assemble the per-request executor with its completion recorder registered."""
        recorder = CompletionRecorder(
            self.chat_repo,
            CompletionContext(
                original_messages=tuple(messages),
                user_id=user_id,
                conversation_id=conversation_id,
            ),
            index_retries=self.config.storage.index_retries,
            retry_backoff=self.config.storage.retry_backoff,
        )
        executor = AgentExecutor(
            client=self.ai_client,
            roster=build_roster(self.config.agent.tools, self.config.tools),
            prompt=self.prompt,
            max_iterations=self.config.agent.max_iterations,
            listeners=[recorder],
        )
        return executor, recorder


def create_api(services: TurnstreamApp) -> FastAPI:
    """Build the FastAPI application around a TurnstreamApp."""
    from turnstream.api.routes import router

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.start()
        try:
            yield
        finally:
            await services.stop()

    api = FastAPI(title="turnstream", lifespan=lifespan)
    api.state.services = services
    if services.config.server.cors_origins:
        api.add_middleware(
            CORSMiddleware,
            allow_origins=services.config.server.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Chat-Id"],
        )
    api.include_router(router)
    return api
