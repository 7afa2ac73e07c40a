"""Exception hierarchy for the chat turn pipeline."""

from __future__ import annotations


class TurnstreamError(Exception):
    """Base class for all turnstream errors."""


class ConfigError(TurnstreamError):
    """Configuration is present but unusable (missing credentials, unknown backend)."""


class AuthenticationError(TurnstreamError):
    """No user identity could be resolved for the request."""


class OutputParseError(TurnstreamError):
    """Model output did not contain a well-formed action directive."""

    def __init__(self, message: str, llm_output: str = ""):
        super().__init__(message)
        self.llm_output = llm_output


class ToolInvocationError(TurnstreamError):
    """A tool's underlying call failed. Converted to an observation at the tool boundary."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name


class IterationLimitExceeded(TurnstreamError):
    """The reasoning loop ran out of tool cycles before producing a final answer."""

    def __init__(self, max_iterations: int):
        super().__init__(f"Agent stopped after {max_iterations} iterations without a final answer")
        self.max_iterations = max_iterations


class PersistenceError(TurnstreamError):
    """Writing a chat record or the user chat index failed."""
