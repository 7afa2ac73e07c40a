"""Prompt assembly for the structured-chat agent.

The system template is plain configuration. It may reference four
placeholders: ``{tools}``, ``{tool_names}``, ``{agent_scratchpad}`` and
``{input}``. Doubled braces render as literal braces, so JSON examples in the
template are written as ``{{ ... }}``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from turnstream.ai.messages import InternalMessage, to_api_messages

if TYPE_CHECKING:
    from turnstream.ai.agent import AgentStep
    from turnstream.ai.tools.registry import ToolRoster

PLACEHOLDERS = frozenset({"tools", "tool_names", "agent_scratchpad", "input"})

DEFAULT_SYSTEM_TEMPLATE = """Respond to the human as helpfully and accurately as possible. You have access to the following tools:

{tools}

Use a json blob to specify a tool by providing an action key (tool name) and an action_input key (tool input).

Valid "action" values: "Final Answer" or {tool_names}

Provide only ONE action per $JSON_BLOB, as shown:

```
{{
  "action": $TOOL_NAME,
  "action_input": $INPUT
}}
```

Follow this format:

Question: input question to answer
Thought: consider previous and subsequent steps
Action:
```
$JSON_BLOB
```
Observation: action result
... (repeat Thought/Action/Observation N times)
Thought: I know what to respond
Action:
```
{{
  "action": "Final Answer",
  "action_input": "Final response to human"
}}
```

Begin! Reminder to ALWAYS respond with a valid json blob of a single action. Use tools if necessary. Respond directly if appropriate. Format is Action:```$JSON_BLOB```then Observation

{agent_scratchpad}"""

_FIELD_PATTERN = re.compile(r"\{\{|\}\}|\{(\w+)\}")


def render_template(template: str, values: dict[str, str]) -> str:
    """Substitute recognized placeholders; leave unknown ``{name}`` fields verbatim."""

    def _replace(match: re.Match) -> str:
        token = match.group(0)
        if token == "{{":
            return "{"
        if token == "}}":
            return "}"
        name = match.group(1)
        if name in PLACEHOLDERS and name in values:
            return values[name]
        return token

    return _FIELD_PATTERN.sub(_replace, template)


def format_scratchpad(steps: Sequence[AgentStep]) -> str:
    """Render prior thought/action/observation cycles of the current turn."""
    if not steps:
        return ""
    parts: list[str] = []
    for step in steps:
        parts.append(step.action.log)
        parts.append(f"\nObservation: {step.observation}\nThought: ")
    body = "".join(parts)
    return (
        "This was your previous work (but I haven't seen any of it! "
        "I only see what you return as final answer):\n" + body
    )


@dataclass(frozen=True)
class RenderedPrompt:
    system: str
    messages: list[dict[str, str]]


class PromptTemplate:
    """Two-part prompt: a system segment and a human segment."""

    def __init__(
        self,
        system_template: str | None = None,
        human_template: str = "{input}",
    ):
        self.system_template = system_template or DEFAULT_SYSTEM_TEMPLATE
        self.human_template = human_template

    def render(
        self,
        roster: ToolRoster,
        input_text: str,
        chat_history: Sequence[InternalMessage] = (),
        steps: Sequence[AgentStep] = (),
    ) -> RenderedPrompt:
        values = {
            "tools": roster.render_descriptions(),
            "tool_names": ", ".join(roster.names()),
            "agent_scratchpad": format_scratchpad(steps),
            "input": input_text,
        }
        system = render_template(self.system_template, values)
        human = render_template(self.human_template, values)
        messages = to_api_messages(chat_history)
        messages.append({"role": "user", "content": human})
        return RenderedPrompt(system=system, messages=messages)
