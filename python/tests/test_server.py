"""
Tests for MCP server wiring: tool registry, dispatch and error conversion.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from mcp.server import Server
from mcp.types import CallToolResult, TextContent

from conftest import ScriptedOracle, complete
from file_context_mcp import server
from file_context_mcp.errors import AccessDenied
from file_context_mcp.responses import ToolResult
from file_context_mcp.skills import SkillLoader


@pytest.fixture
def patched_instances(monkeypatch, config, server_config, sandbox):
    oracle = ScriptedOracle([complete("All good.")])
    instances = (config, server_config, sandbox, SkillLoader(), oracle)
    monkeypatch.setattr(server, "get_instances", lambda: instances)
    return instances


class TestToolRegistry:
    """Tests for the advertised tools."""

    def test_tool_names(self):
        names = [tool.name for tool in server.tool_definitions()]
        assert names == ["file_context", "read_file", "grep", "glob", "list_files"]

    def test_required_arguments(self):
        tools = {tool.name: tool for tool in server.tool_definitions()}

        assert tools["file_context"].inputSchema["required"] == ["query"]
        assert tools["read_file"].inputSchema["required"] == ["file_path"]
        assert tools["grep"].inputSchema["required"] == ["pattern"]
        assert tools["glob"].inputSchema["required"] == ["pattern"]
        assert "required" not in tools["list_files"].inputSchema

    def test_create_server(self):
        assert isinstance(server.create_server(), Server)


class TestDispatch:
    """Tests for dispatch_tool."""

    @pytest.mark.asyncio
    async def test_file_context(self, patched_instances):
        result = await server.dispatch_tool("file_context", {"query": "Status?"})

        assert not result.is_error
        assert result.text == "All good."
        assert result.structured["stop_reason"] == "complete"

    @pytest.mark.asyncio
    async def test_standalone_tool(self, patched_instances, project: Path):
        result = await server.dispatch_tool("list_files", {"depth": 1})

        assert result.text.startswith(f"Directory listing for: {project}")

    @pytest.mark.asyncio
    async def test_unknown_tool(self, patched_instances):
        result = await server.dispatch_tool("write_file", {"file_path": "x"})

        assert result.is_error
        assert result.text == "Error: Unknown tool: write_file"
        assert result.structured["error"]["reason"] == "unknown_tool"

    @pytest.mark.asyncio
    async def test_domain_error(self, patched_instances, outside_dir: Path):
        result = await server.dispatch_tool("read_file", {"file_path": str(outside_dir / "secret.txt")})

        assert result.is_error
        assert result.text.startswith("Error: Access denied:")
        assert result.structured["error"]["reason"] == "access_denied"

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, patched_instances):
        result = await server.dispatch_tool("file_context", None)

        assert result.structured["error"]["reason"] == "invalid_arguments"

    @pytest.mark.asyncio
    async def test_unexpected_error(self, patched_instances, monkeypatch):
        monkeypatch.setattr(server, "handle_grep", AsyncMock(side_effect=RuntimeError("disk on fire")))

        result = await server.dispatch_tool("grep", {"pattern": "x"})

        assert result.is_error
        assert result.structured["error"] == {
            "reason": "internal_error",
            "message": "RuntimeError: disk on fire",
        }


class TestToolResult:
    """Tests for the MCP result conversion."""

    def test_structured_result(self):
        result = ToolResult(text="hi", structured={"a": 1}).to_mcp()

        assert isinstance(result, CallToolResult)
        assert result.content == [TextContent(type="text", text="hi")]
        assert result.structuredContent == {"a": 1}
        assert result.isError is False

    def test_text_only(self):
        result = ToolResult(text="hi").to_mcp()

        assert result.content == [TextContent(type="text", text="hi")]
        assert result.structuredContent is None
        assert result.isError is False

    def test_error_flagged(self):
        result = ToolResult.from_error(AccessDenied("/etc/passwd")).to_mcp()

        assert result.isError is True
        assert result.content[0].text.startswith("Error: Access denied")
        assert result.structuredContent["error"]["reason"] == "access_denied"

    @pytest.mark.asyncio
    async def test_failed_dispatch_flagged(self, patched_instances):
        result = (await server.dispatch_tool("write_file", {})).to_mcp()

        assert result.isError is True
        assert result.structuredContent["error"]["reason"] == "unknown_tool"


class TestCleanup:
    """Tests for shutdown cleanup."""

    @pytest.mark.asyncio
    async def test_closes_oracle(self, monkeypatch):
        oracle = AsyncMock()
        monkeypatch.setattr(server, "_oracle", oracle)

        await server.cleanup_resources()

        oracle.close.assert_awaited_once()
