"""Convert externally supplied chat messages into internal message variants."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union


@dataclass(frozen=True)
class HumanMessage:
    content: str
    role: str = "user"


@dataclass(frozen=True)
class AssistantMessage:
    content: str
    role: str = "assistant"


@dataclass(frozen=True)
class GenericMessage:
    """Message with a role the model API has no dedicated variant for (system, tool, ...)."""

    content: str
    role: str


InternalMessage = Union[HumanMessage, AssistantMessage, GenericMessage]


def normalize_message(message: Mapping[str, Any]) -> InternalMessage:
    """Map one ``{role, content}`` message to its internal variant."""
    role = message["role"]
    content = message["content"]
    if role == "user":
        return HumanMessage(content)
    if role == "assistant":
        return AssistantMessage(content)
    return GenericMessage(content, role)


def split_conversation(
    messages: Sequence[Mapping[str, Any]],
) -> tuple[list[InternalMessage], str]:
    """Split a conversation into normalized history and the current turn's input.

    The last message is the current input and is passed to the model raw;
    everything before it is normalized in order.
    """
    if not messages:
        raise ValueError("conversation must contain at least one message")
    history = [normalize_message(m) for m in messages[:-1]]
    return history, messages[-1]["content"]


def to_api_messages(history: Sequence[InternalMessage]) -> list[dict[str, str]]:
    """Render internal messages in the ``{role, content}`` shape chat APIs accept.

    Generic roles that chat APIs reject are folded into a user message
    prefixed with the original role.
    """
    result: list[dict[str, str]] = []
    for msg in history:
        if isinstance(msg, GenericMessage) and msg.role != "system":
            result.append({"role": "user", "content": f"{msg.role}: {msg.content}"})
        else:
            result.append({"role": msg.role, "content": msg.content})
    return result
