"""Tests for tool adapters and the per-request roster."""
import httpx
import pytest

from turnstream.ai.tools.calculator import CalculatorTool
from turnstream.ai.tools.registry import ToolRoster, build_roster
from turnstream.ai.tools.search import BingSearchTool
from turnstream.config import SearchToolConfig, ToolsConfig
from turnstream.errors import ConfigError

from conftest import BrokenTool, EchoTool


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "expression,expected",
    [
        ("2+2", "4"),
        (" 3 * (4 - 1) ", "9"),
        ("2^10", "1024"),
        ("sqrt(16) / 8", "0.5"),
        ('{"expression": "7 * 6"}', "42"),
    ],
)
async def test_calculator_evaluates(expression, expected):
    assert await CalculatorTool().invoke(expression) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("expression", ["1/0", "__import__('os').getcwd()", "2**99999", "two plus two"])
async def test_calculator_errors_are_observations(expression):
    result = await CalculatorTool().invoke(expression)
    assert result.startswith("Error executing calculator")


@pytest.mark.asyncio
async def test_search_formats_results():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["q"] = request.url.params["q"]
        seen["key"] = request.headers["Ocp-Apim-Subscription-Key"]
        return httpx.Response(200, json={"webPages": {"value": [
            {"name": "Result A", "url": "https://a.example", "snippet": "About A"},
            {"name": "Result B", "url": "https://b.example", "snippet": "About B"},
        ]}})

    tool = BingSearchTool(SearchToolConfig(api_key="k-123"), transport=httpx.MockTransport(handler))
    result = await tool.invoke('{"query": "python asyncio"}')

    assert seen == {"q": "python asyncio", "key": "k-123"}
    assert result == "Result A\nhttps://a.example\nAbout A\n\nResult B\nhttps://b.example\nAbout B"


@pytest.mark.asyncio
async def test_search_no_results():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
    tool = BingSearchTool(SearchToolConfig(api_key="k"), transport=transport)
    assert await tool.invoke("nothing") == "No good results found."


@pytest.mark.asyncio
async def test_search_http_failure_is_observation():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    tool = BingSearchTool(SearchToolConfig(api_key="k"), transport=transport)
    result = await tool.invoke("anything")
    assert result.startswith("Error executing search")
    assert "503" in result


@pytest.mark.asyncio
async def test_search_without_key_is_observation():
    result = await BingSearchTool(SearchToolConfig(api_key=None)).invoke("anything")
    assert result == "Error executing search: search: search API key not configured"


@pytest.mark.asyncio
async def test_broken_tool_never_raises():
    assert (await BrokenTool().invoke("x")).startswith("Error executing broken")


def test_roster_rejects_duplicate_names():
    with pytest.raises(ValueError):
        ToolRoster([EchoTool(), EchoTool()])


@pytest.mark.asyncio
async def test_roster_lookup_and_unknown_tool():
    roster = ToolRoster([EchoTool(), CalculatorTool()])
    assert roster.names() == ["echo", "calculator"]
    assert "echo" in roster and "search" not in roster
    assert len(roster) == 2
    assert await roster.invoke("echo", "hi") == "echo: hi"
    assert await roster.invoke("nope", "hi") == "nope is not a valid tool, try one of [echo, calculator]."


def test_build_roster_from_config():
    roster = build_roster(["search", "calculator"], ToolsConfig())
    assert roster.names() == ["search", "calculator"]
    with pytest.raises(ConfigError):
        build_roster(["teleport"], ToolsConfig())
