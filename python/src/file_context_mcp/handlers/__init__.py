"""
Request Handlers for the File Context MCP Server.

This package contains the tool handlers dispatched by server.py:
- context: file_context, the iterative reasoning tool
- files: standalone filesystem tools (read_file, grep, glob, list_files)
"""

from .context import handle_file_context
from .files import (
    handle_read_file,
    handle_grep,
    handle_glob,
    handle_list_files,
)

__all__ = [
    "handle_file_context",
    "handle_read_file",
    "handle_grep",
    "handle_glob",
    "handle_list_files",
]
