#!/usr/bin/env python3
"""
File Context MCP Server

An MCP stdio server that answers questions about a codebase by letting a model
drive an iterative, budget-bounded exploration of the filesystem.

KEY INSIGHT: The model never sees the whole tree at once.
- Each iteration it sees the context gathered so far
- It either answers, or asks for specific reads, searches and listings
- Iterations and context size are hard-capped, so every call terminates

Performance Optimizations:
- Actions of one iteration gathered concurrently, folded in order
- Async file reads, blocking walks off the event loop
- Connection pooling for model calls
- Graceful shutdown with resource cleanup

Tools provided:
- file_context: Iterative, model-driven context gathering
- read_file: Read a file with line numbers
- grep: Regex search over file contents
- glob: Find files by pattern
- list_files: Directory tree
"""

import asyncio
import logging
import signal
import sys
import time
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool

from .config import FileContextConfig, ServerConfig, get_config
from .errors import FileContextError
from .handlers import (
    handle_file_context,
    handle_glob,
    handle_grep,
    handle_list_files,
    handle_read_file,
)
from .oracle import OpenAIDecisionOracle
from .responses import ToolResult
from .sandbox import PathSandbox
from .skills import SkillLoader

logger = logging.getLogger(__name__)


_config: FileContextConfig | None = None
_server_config: ServerConfig | None = None
_sandbox: PathSandbox | None = None
_skill_loader: SkillLoader | None = None
_oracle: OpenAIDecisionOracle | None = None

# Shutdown flag for graceful termination
_shutdown_event: asyncio.Event | None = None


def get_instances() -> tuple[FileContextConfig, ServerConfig, PathSandbox, SkillLoader, OpenAIDecisionOracle]:
    """Get or create singleton instances."""
    global _config, _server_config, _sandbox, _skill_loader, _oracle

    if _config is None:
        _config, _server_config = get_config()
        for problem in _config.validate():
            logger.warning(f"Configuration: {problem}")
        _sandbox = PathSandbox(_config.file_roots)
        _skill_loader = SkillLoader(_config.skills_dir)
        _oracle = OpenAIDecisionOracle(_config)
        logger.info(
            f"Initialized: model={_config.model}, roots={[str(r) for r in _sandbox.roots]}"
        )

    return _config, _server_config, _sandbox, _skill_loader, _oracle


def get_sandbox() -> PathSandbox:
    _, _, sandbox, _, _ = get_instances()
    return sandbox


async def cleanup_resources() -> None:
    """Cleanup resources on shutdown."""
    global _oracle

    if _oracle is not None:
        try:
            await _oracle.close()
        except Exception as e:
            logger.error(f"Error closing oracle client: {e}")


def _log_timing(operation: str, start_time: float, **extra: Any) -> None:
    """Log operation timing."""
    elapsed_ms = int((time.time() - start_time) * 1000)
    details = " ".join(f"{k}={v}" for k, v in extra.items())
    logger.info(f"[TOOL] {operation} {elapsed_ms}ms {details}".rstrip())


def tool_definitions() -> list[Tool]:
    return [
        Tool(
            name="file_context",
            description=(
                "Gather comprehensive context about a codebase using AI-powered reasoning. "
                "Iteratively explores directory structure, reads relevant files, and searches "
                "for patterns to answer questions about the code."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": (
                            "What context to gather (e.g., 'understand the authentication system', "
                            "'find how API routes are defined')"
                        ),
                    },
                    "path": {
                        "type": "string",
                        "description": "Starting directory path (defaults to FILE_ROOT)",
                    },
                    "max_iterations": {
                        "type": "integer",
                        "description": "Maximum reasoning iterations (default: 5, max: 10)",
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="read_file",
            description=(
                "Read the contents of a file. Supports reading specific line ranges "
                "with offset and limit parameters."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "file_path": {
                        "type": "string",
                        "description": "Absolute path to the file to read",
                    },
                    "offset": {
                        "type": "integer",
                        "description": "Line number to start reading from (1-based, default: 1)",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of lines to read (default: 2000)",
                    },
                },
                "required": ["file_path"],
            },
        ),
        Tool(
            name="grep",
            description=(
                "Search file contents using regex patterns. Can search a single file "
                "or recursively search a directory."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "pattern": {
                        "type": "string",
                        "description": "Regex pattern to search for in file contents",
                    },
                    "path": {
                        "type": "string",
                        "description": "File or directory to search in",
                    },
                    "glob": {
                        "type": "string",
                        "description": "Glob pattern to filter files by name (e.g., '*.py', 'test_*')",
                    },
                    "case_insensitive": {
                        "type": "boolean",
                        "description": "Perform case-insensitive search (default: false)",
                    },
                },
                "required": ["pattern"],
            },
        ),
        Tool(
            name="glob",
            description=(
                "Find files matching a glob pattern (e.g., '**/*.py', 'src/**/*.ts'). "
                "Returns file paths sorted by modification time."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "pattern": {
                        "type": "string",
                        "description": "Glob pattern to match files (e.g., '**/*.py', 'src/**/*.ts')",
                    },
                    "path": {
                        "type": "string",
                        "description": "Base directory to search in (default: current root)",
                    },
                },
                "required": ["pattern"],
            },
        ),
        Tool(
            name="list_files",
            description=(
                "List files and directories in a tree structure. Shows the directory "
                "hierarchy with configurable depth. Use this to understand the file "
                "structure before reading files."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Directory path to list (default: root directory)",
                    },
                    "depth": {
                        "type": "integer",
                        "description": "Maximum depth to traverse (default: 3, max: 5)",
                    },
                },
            },
        ),
    ]


async def dispatch_tool(name: str, arguments: dict[str, Any] | None) -> ToolResult:
    """Run one tool call and convert every failure into an error result."""
    arguments = arguments or {}
    start_time = time.time()
    try:
        if name == "file_context":
            result = await handle_file_context(arguments, get_instances)
        elif name == "read_file":
            result = await handle_read_file(arguments, get_sandbox())
        elif name == "grep":
            result = await handle_grep(arguments, get_sandbox())
        elif name == "glob":
            result = await handle_glob(arguments, get_sandbox())
        elif name == "list_files":
            result = await handle_list_files(arguments, get_sandbox())
        else:
            result = ToolResult(
                text=f"Error: Unknown tool: {name}",
                structured={"error": {"reason": "unknown_tool", "message": f"Unknown tool: {name}"}},
                is_error=True,
            )

        _log_timing(f"tool:{name}", start_time, success=not result.is_error)
        return result

    except FileContextError as e:
        _log_timing(f"tool:{name}", start_time, success=False, reason=e.reason)
        logger.warning(f"[TOOL] {name} failed: {e.message}")
        return ToolResult.from_error(e)

    except Exception as e:
        _log_timing(f"tool:{name}", start_time, success=False, reason="internal_error")
        logger.exception(f"[TOOL] {name} raised an unexpected error")
        return ToolResult.internal_error(e)


def create_server() -> Server:
    """Create and configure the MCP server."""
    server = Server("file-context")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return tool_definitions()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]):
        """Handle tool calls."""
        result = await dispatch_tool(name, arguments)
        return result.to_mcp()

    return server


async def run_server():
    """Run the MCP server with graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    server = create_server()

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def handle_shutdown(sig):
        logger.info(f"Received {sig.name}, shutting down gracefully...")
        _shutdown_event.set()

    # Register signal handlers (Unix only)
    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: handle_shutdown(s))

    try:
        async with stdio_server() as (read_stream, write_stream):
            server_task = asyncio.create_task(
                server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                )
            )

            # Wait for either server completion or shutdown signal
            done, pending = await asyncio.wait(
                [server_task, asyncio.create_task(_shutdown_event.wait())],
                return_when=asyncio.FIRST_COMPLETED,
            )

            # Cancel pending tasks
            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    finally:
        await cleanup_resources()


def main():
    """Main entry point."""
    _, server_config = get_config()

    # stdout carries the MCP protocol; logs go to stderr
    logging.basicConfig(
        level=getattr(logging, server_config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
