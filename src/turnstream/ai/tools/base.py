"""Abstract tool interface for the reasoning loop."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod

from turnstream.errors import ToolInvocationError
from turnstream.log import get_logger

logger = get_logger(__name__)


class Tool(ABC):
    """Base class for all model-callable tools.

    Tools take one text input and return text. Failures never escape
    ``invoke``: they come back as an ``Error ...`` observation so the model
    can see the tool failed and try something else.
    """

    # When the model sends a JSON object instead of plain text, this key is used as the input.
    input_key: str = "input"

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name shown to the model."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description for the model."""
        ...

    @abstractmethod
    async def _run(self, tool_input: str) -> str:
        """Run the tool. May raise; ``invoke`` converts failures to text."""
        ...

    def _coerce_input(self, tool_input: str) -> str:
        stripped = tool_input.strip()
        if not stripped.startswith("{"):
            return tool_input
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            return tool_input
        if isinstance(data, dict):
            if self.input_key in data:
                return str(data[self.input_key])
            if len(data) == 1:
                return str(next(iter(data.values())))
        return tool_input

    async def invoke(self, tool_input: str) -> str:
        try:
            return await self._run(self._coerce_input(tool_input))
        except ToolInvocationError as e:
            logger.warning("tool_invocation_error", tool=self.name, error=str(e))
            return f"Error executing {self.name}: {e}"
        except Exception as e:
            logger.error("tool_execution_error", tool=self.name, error=str(e))
            return f"Error executing {self.name}: {e}"

    def describe(self) -> str:
        return f"{self.name}: {self.description}"
