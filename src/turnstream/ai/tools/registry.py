"""Per-request tool roster and the factory that builds it from configuration."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from turnstream.ai.tools.base import Tool
from turnstream.config import ToolsConfig
from turnstream.errors import ConfigError
from turnstream.log import get_logger

logger = get_logger(__name__)


class ToolRoster:
    """Immutable name -> tool mapping resolved once per request."""

    def __init__(self, tools: Iterable[Tool] = ()):
        by_name: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in by_name:
                raise ValueError(f"Duplicate tool name in roster: {tool.name}")
            by_name[tool.name] = tool
        self._tools: Mapping[str, Tool] = MappingProxyType(by_name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def render_descriptions(self) -> str:
        return "\n".join(t.describe() for t in self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def invoke(self, name: str, tool_input: str) -> str:
        """Run the named tool; an unknown name comes back as an observation."""
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("unknown_tool", tool=name)
            return f"{name} is not a valid tool, try one of [{', '.join(self.names())}]."
        logger.info("tool_execute", tool=name)
        return await tool.invoke(tool_input)


def build_roster(names: Iterable[str], config: ToolsConfig) -> ToolRoster:
    """Instantiate the configured built-in tools by name."""
    from turnstream.ai.tools.calculator import CalculatorTool
    from turnstream.ai.tools.search import BingSearchTool

    tools: list[Tool] = []
    for name in names:
        match name:
            case "search":
                tools.append(BingSearchTool(config.search))
            case "calculator":
                tools.append(CalculatorTool())
            case _:
                raise ConfigError(f"Unknown tool: {name}")
    return ToolRoster(tools)
