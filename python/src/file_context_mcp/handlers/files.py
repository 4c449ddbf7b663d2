"""
File Tool Handlers for the File Context MCP Server.

Provides handlers for the standalone, read-only filesystem tools:
- read_file: Read a file with line numbers
- grep: Regex search over file contents
- glob: Find files by pattern, newest first
- list_files: Directory tree

All paths go through the PathSandbox; nothing here calls the model.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from ..config import (
    DEFAULT_LINE_LIMIT,
    DEFAULT_LINE_OFFSET,
    MAX_GLOB_RESULTS,
    MAX_GREP_FILES,
    MAX_GREP_MATCHES,
    MAX_LINE_DISPLAY_LENGTH,
    MAX_LIST_FILES_DEPTH,
)
from ..errors import FileReadFailed, NotAFile
from ..fs_tools import build_directory_tree, compile_regex, glob_paths, grep_tree, read_lines
from ..responses import ToolResult
from ..sandbox import PathSandbox
from .arguments import (
    optional_bool,
    optional_int,
    optional_path,
    optional_string,
    require_string,
    required_path,
)

logger = logging.getLogger(__name__)


DEFAULT_LIST_FILES_DEPTH = 3


async def handle_read_file(arguments: dict[str, Any], sandbox: PathSandbox) -> ToolResult:
    """
    Handle read_file tool call.

    Lines are numbered from 1; ``offset``/``limit`` select a window.
    """
    file_path = required_path(arguments, "file_path")
    offset = max(optional_int(arguments, "offset", DEFAULT_LINE_OFFSET), 1)
    limit = max(optional_int(arguments, "limit", DEFAULT_LINE_LIMIT), 1)

    canonical = sandbox.validate_path(file_path)
    if not canonical.is_file():
        raise NotAFile(str(canonical))

    try:
        result = await asyncio.to_thread(read_lines, canonical, offset, limit, MAX_LINE_DISPLAY_LENGTH)
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadFailed(str(canonical), str(e)) from e

    if result.is_partial:
        header = (
            f"Showing lines {result.start_line}-{result.end_line} of "
            f"{result.total_lines} total lines from {canonical}\n\n"
        )
    else:
        header = f"File: {canonical} ({result.total_lines} lines)\n\n"

    body = str(result)
    return ToolResult(
        text=header + (body + "\n" if body else ""),
        structured={
            "file_path": str(canonical),
            "total_lines": result.total_lines,
            "start_line": result.start_line,
            "end_line": result.end_line,
        },
    )


async def handle_grep(arguments: dict[str, Any], sandbox: PathSandbox) -> ToolResult:
    """Handle grep tool call."""
    pattern = require_string(arguments, "pattern")
    path = optional_path(arguments)
    file_glob = optional_string(arguments, "glob")
    case_insensitive = optional_bool(arguments, "case_insensitive")

    base = sandbox.validate_path(path) if path else sandbox.default_root()
    regex = compile_regex(pattern, case_insensitive)

    result = await asyncio.to_thread(
        grep_tree,
        base,
        regex,
        glob=file_glob,
        max_matches=MAX_GREP_MATCHES,
        max_files=MAX_GREP_FILES,
        line_truncate=MAX_LINE_DISPLAY_LENGTH,
        sandbox=sandbox,
    )

    structured = {
        "pattern": pattern,
        "path": str(base),
        "match_count": len(result.matches),
        "files_matched": result.files_matched,
        "files_searched": result.files_searched,
        "truncated": result.truncated,
    }

    if not result.matches:
        return ToolResult(
            text=f"No matches found for pattern '{pattern}' in {base} ({result.files_searched} files searched)",
            structured=structured,
        )

    if result.truncated:
        header = (
            f"Found {len(result.matches)} matches for '{pattern}' "
            f"(truncated, showing first {MAX_GREP_MATCHES}):\n\n"
        )
    else:
        header = f"Found {len(result.matches)} matches for '{pattern}' in {result.files_searched} files:\n\n"

    return ToolResult(text=header + str(result), structured=structured)


def _newest_first(paths: list[Path]) -> list[Path]:
    dated = []
    for path in paths:
        try:
            dated.append((path.stat().st_mtime, path))
        except OSError:
            continue
    dated.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in dated]


async def handle_glob(arguments: dict[str, Any], sandbox: PathSandbox) -> ToolResult:
    """Handle glob tool call. Matches are ordered by modification time, newest first."""
    pattern = require_string(arguments, "pattern")
    path = optional_path(arguments)

    base = sandbox.resolve_root(path)
    matches = await asyncio.to_thread(
        glob_paths, base, pattern, max_results=MAX_GREP_FILES, sandbox=sandbox
    )
    matches = await asyncio.to_thread(_newest_first, matches)
    count = len(matches)

    if count == 0:
        return ToolResult(
            text=f"No files found matching pattern '{pattern}' in {base}",
            structured={"pattern": pattern, "path": str(base), "count": 0, "files": []},
        )

    shown = [str(m) for m in matches[:MAX_GLOB_RESULTS]]
    if count > MAX_GLOB_RESULTS:
        header = f"Found {count} files matching '{pattern}' (showing first {MAX_GLOB_RESULTS}):\n\n"
    else:
        header = f"Found {count} files matching '{pattern}':\n\n"

    return ToolResult(
        text=header + "\n".join(shown),
        structured={"pattern": pattern, "path": str(base), "count": count, "files": shown},
    )


async def handle_list_files(arguments: dict[str, Any], sandbox: PathSandbox) -> ToolResult:
    """Handle list_files tool call."""
    path = optional_path(arguments)
    depth = optional_int(arguments, "depth", DEFAULT_LIST_FILES_DEPTH)
    depth = max(0, min(depth, MAX_LIST_FILES_DEPTH))

    target = sandbox.resolve_root(path)
    listing = await asyncio.to_thread(build_directory_tree, target, depth)

    header = (
        f"Directory listing for: {target}\n"
        f"Depth: {depth} | Directories: {listing.dir_count} | Files: {listing.file_count}\n\n"
    )
    return ToolResult(
        text=header + listing.text,
        structured={
            "path": str(target),
            "depth": depth,
            "directories": listing.dir_count,
            "files": listing.file_count,
        },
    )
