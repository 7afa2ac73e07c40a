"""Web search tool backed by the Bing Web Search API."""

from __future__ import annotations

import httpx

from turnstream.ai.tools.base import Tool
from turnstream.config import SearchToolConfig
from turnstream.errors import ToolInvocationError


class BingSearchTool(Tool):
    """Search the web and return titles, URLs and snippets."""

    input_key = "query"

    def __init__(self, config: SearchToolConfig, transport: httpx.AsyncBaseTransport | None = None):
        self._config = config
        self._transport = transport

    @property
    def name(self) -> str:
        return "search"

    @property
    def description(self) -> str:
        return (
            "a search engine. useful for when you need to answer questions about "
            "current events. input should be a search query."
        )

    async def _run(self, tool_input: str) -> str:
        query = tool_input.strip()
        if not query:
            raise ToolInvocationError(self.name, "query is required")
        if not self._config.api_key:
            raise ToolInvocationError(self.name, "search API key not configured")

        async with httpx.AsyncClient(transport=self._transport, timeout=self._config.timeout) as client:
            response = await client.get(
                self._config.endpoint,
                params={"q": query, "count": self._config.max_results, "textDecorations": "false"},
                headers={"Ocp-Apim-Subscription-Key": self._config.api_key},
            )
            response.raise_for_status()

        results = response.json().get("webPages", {}).get("value", [])
        if not results:
            return "No good results found."
        lines = []
        for item in results[: self._config.max_results]:
            lines.append(f"{item.get('name', '')}\n{item.get('url', '')}\n{item.get('snippet', '')}")
        return "\n\n".join(lines)
