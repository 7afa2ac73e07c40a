"""Structured-chat reasoning loop: think, act, observe until a final answer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Awaitable, Callable, Sequence

from turnstream.ai.answer_stream import FinalAnswerExtractor
from turnstream.ai.client import AIClient
from turnstream.ai.messages import InternalMessage
from turnstream.ai.output_parser import AgentAction, AgentDecision, AgentFinish, parse_agent_output
from turnstream.ai.prompt import PromptTemplate
from turnstream.ai.tools.registry import ToolRoster
from turnstream.ai.trace import AgentTrace, PatchOp
from turnstream.errors import IterationLimitExceeded, OutputParseError
from turnstream.log import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 10


class AgentState(StrEnum):
    IDLE = "idle"
    THINKING = "thinking"
    ACTION_PROPOSED = "action_proposed"
    TOOL_INVOKED = "tool_invoked"
    OBSERVATION_RECORDED = "observation_recorded"
    FINISHED = "finished"
    FAILED = "failed"


@dataclass(frozen=True)
class AgentStep:
    action: AgentAction
    observation: str


@dataclass
class AgentResult:
    output: str
    steps: list[AgentStep] = field(default_factory=list)


CompletionListener = Callable[[AgentFinish], Awaitable[None]]


class AgentExecutor:
    """Drives one turn of the reasoning loop against a fixed tool roster.

    Every model token, tool observation and state change is written to the
    supplied AgentTrace as it happens. Completion listeners run only when the
    loop reaches FINISHED.
    """

    def __init__(
        self,
        client: AIClient,
        roster: ToolRoster,
        prompt: PromptTemplate | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        listeners: Sequence[CompletionListener] = (),
    ):
        self._client = client
        self._roster = roster
        self._prompt = prompt or PromptTemplate()
        self._max_iterations = max_iterations
        self._listeners = tuple(listeners)
        self._state = AgentState.IDLE

    @property
    def state(self) -> AgentState:
        return self._state

    async def _transition(self, state: AgentState, trace: AgentTrace) -> None:
        self._state = state
        logger.debug("agent_state", state=state.value)
        await trace.bookkeeping("/state", state.value)

    async def invoke(self, input_text: str, chat_history: Sequence[InternalMessage] = ()) -> AgentResult:
        """Run the loop without a consumer; the trace is unbounded and discarded."""
        trace = AgentTrace(maxsize=0)
        try:
            return await self.run(input_text, chat_history, trace)
        finally:
            await trace.close()

    async def run(
        self,
        input_text: str,
        chat_history: Sequence[InternalMessage],
        trace: AgentTrace,
    ) -> AgentResult:
        """Execute the loop until FINISHED. Raises on FAILED."""
        steps: list[AgentStep] = []
        tool_rounds = 0

        try:
            while True:
                await self._transition(AgentState.THINKING, trace)
                decision = await self._think(input_text, chat_history, steps, trace)

                if isinstance(decision, AgentFinish):
                    await self._transition(AgentState.FINISHED, trace)
                    await trace.bookkeeping("/final_output", {"output": decision.output})
                    logger.info("agent_finished", tool_rounds=tool_rounds, output_length=len(decision.output))
                    await self._notify(decision)
                    return AgentResult(output=decision.output, steps=steps)

                if tool_rounds >= self._max_iterations:
                    raise IterationLimitExceeded(self._max_iterations)

                await self._transition(AgentState.ACTION_PROPOSED, trace)
                await trace.bookkeeping(
                    "/logs/agent/actions/-",
                    {"tool": decision.tool, "tool_input": decision.tool_input},
                    op=PatchOp.ADD,
                )

                await self._transition(AgentState.TOOL_INVOKED, trace)
                observation = await self._roster.invoke(decision.tool, decision.tool_input)
                await trace.tool_output(decision.tool, observation)

                steps.append(AgentStep(action=decision, observation=observation))
                tool_rounds += 1
                await self._transition(AgentState.OBSERVATION_RECORDED, trace)

        except asyncio.CancelledError:
            # cancelled while listeners run: the answer is already final
            if self._state is not AgentState.FINISHED:
                self._state = AgentState.FAILED
            logger.info("agent_cancelled", tool_rounds=tool_rounds)
            raise
        except (OutputParseError, IterationLimitExceeded) as e:
            await self._fail(trace, e)
            raise
        except Exception as e:
            logger.error("agent_error", error=str(e), error_type=type(e).__name__)
            await self._fail(trace, e)
            raise

    async def _fail(self, trace: AgentTrace, error: Exception) -> None:
        logger.warning("agent_failed", error=str(error), error_type=type(error).__name__)
        await self._transition(AgentState.FAILED, trace)
        await trace.bookkeeping("/error", {"type": type(error).__name__, "message": str(error)})

    async def _think(
        self,
        input_text: str,
        chat_history: Sequence[InternalMessage],
        steps: Sequence[AgentStep],
        trace: AgentTrace,
    ) -> AgentDecision:
        rendered = self._prompt.render(self._roster, input_text, chat_history, steps)
        extractor = FinalAnswerExtractor()
        parts: list[str] = []

        async for chunk in self._client.stream(rendered.system, rendered.messages):
            parts.append(chunk)
            await trace.model_output(chunk, model=self._client.model_name)
            answer_text = extractor.feed(chunk)
            if answer_text:
                await trace.final_answer(answer_text)

        decision = parse_agent_output("".join(parts))

        if isinstance(decision, AgentFinish):
            streamed = extractor.streamed
            if decision.output.startswith(streamed):
                remainder = decision.output[len(streamed):]
                if remainder:
                    await trace.final_answer(remainder)
            else:
                logger.warning("final_answer_stream_mismatch", streamed_length=len(streamed))
                raise OutputParseError(
                    "Streamed final answer does not match the parsed directive",
                    llm_output="".join(parts),
                )
        return decision

    async def _notify(self, finish: AgentFinish) -> None:
        for listener in self._listeners:
            try:
                # a client disconnect must not abort a write already in progress
                await asyncio.shield(listener(finish))
            except Exception as e:
                logger.error("completion_listener_failed", error=str(e), error_type=type(e).__name__)
