"""Extract the structured action directive from free-form model output."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from turnstream.errors import OutputParseError

FINAL_ANSWER_ACTION = "Final Answer"

_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class AgentAction:
    tool: str
    tool_input: str
    log: str


@dataclass(frozen=True)
class AgentFinish:
    output: str
    log: str


AgentDecision = Union[AgentAction, AgentFinish]


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def find_action_blob(text: str) -> dict[str, Any] | None:
    """Return the first JSON object in *text* that carries ``action`` and ``action_input``.

    Objects may sit inside ``` fences or appear bare; scanning is left to
    right, so when the model emits several blobs only the first well-formed
    one counts.
    """
    pos = text.find("{")
    while pos != -1:
        try:
            obj, end = _decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos = text.find("{", pos + 1)
            continue
        if isinstance(obj, dict) and "action" in obj and "action_input" in obj:
            return obj
        pos = text.find("{", pos + 1)
    return None


def parse_agent_output(text: str) -> AgentDecision:
    """Decode model output into a tool action or a final answer.

    Raises OutputParseError when no well-formed directive is present.
    """
    blob = find_action_blob(text)
    if blob is None:
        raise OutputParseError(
            f"Could not parse LLM output: {text[:200]!r}", llm_output=text
        )
    action = blob["action"]
    if not isinstance(action, str) or not action:
        raise OutputParseError(f"Invalid action value: {action!r}", llm_output=text)

    action_input = _stringify(blob["action_input"])
    if action == FINAL_ANSWER_ACTION:
        return AgentFinish(output=action_input, log=text)
    return AgentAction(tool=action, tool_input=action_input, log=text)
